"""Workload cluster kubeconfig retrieval.

Cluster API stores the admin kubeconfig of each workload cluster in a
Secret named ``<cluster>-kubeconfig`` in the cluster's namespace. The
payload is returned as-is after base64 decoding; it is never parsed.
"""

import base64
import binascii

from capi_ops.context import RequestContext
from capi_ops.exceptions import NotFoundError, StoreError
from capi_ops.logging_config import get_logger
from capi_ops.store import ResourceKind, ResourceStore

logger = get_logger(__name__)

KUBECONFIG_KEYS = ("value", "data")


def kubeconfig_secret_name(cluster_name: str) -> str:
    return f"{cluster_name}-kubeconfig"


def get_kubeconfig(store: ResourceStore, ctx: RequestContext, namespace: str, cluster_name: str) -> str:
    """Return the kubeconfig of a workload cluster.

    Raises:
        NotFoundError: If the secret or its kubeconfig field is missing
        StoreError: If the payload is not valid base64
    """
    secret_name = kubeconfig_secret_name(cluster_name)
    try:
        secret = store.get(ResourceKind.SECRET, namespace, secret_name, ctx)
    except StoreError as e:
        raise e.wrap("failed to get kubeconfig secret") from e

    data = secret.get("data") or {}
    for key in KUBECONFIG_KEYS:
        if key in data:
            logger.debug(f"Found kubeconfig in {namespace}/{secret_name} under '{key}'")
            try:
                return base64.b64decode(data[key]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise StoreError(f"Kubeconfig in secret {namespace}/{secret_name} is not decodable: {e}")

    raise NotFoundError(
        f"kubeconfig not found in secret {namespace}/{secret_name}",
        f"available keys: {sorted(data)}",
    )
