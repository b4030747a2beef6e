"""Access to the declarative resource store (the management cluster API server).

Objects cross this boundary as plain unstructured dicts. Writes carry the
resourceVersion they were read at; the API server rejects stale writes with
409, which surfaces as ConflictError and is never retried here.
"""

import copy
import os
from enum import Enum
from pathlib import Path
from typing import Protocol

from capi_ops.context import RequestContext
from capi_ops.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    OperationCancelledError,
    StoreError,
)
from capi_ops.logging_config import get_logger

logger = get_logger(__name__)


class ResourceKind(Enum):
    """Kinds handled by capi-ops, with their API coordinates."""

    CLUSTER = ("Cluster", "cluster.x-k8s.io", "v1beta1", "clusters", True)
    MACHINE = ("Machine", "cluster.x-k8s.io", "v1beta1", "machines", True)
    MACHINE_DEPLOYMENT = (
        "MachineDeployment",
        "cluster.x-k8s.io",
        "v1beta1",
        "machinedeployments",
        True,
    )
    MACHINE_SET = ("MachineSet", "cluster.x-k8s.io", "v1beta1", "machinesets", True)
    KUBEADM_CONTROL_PLANE = (
        "KubeadmControlPlane",
        "controlplane.cluster.x-k8s.io",
        "v1beta1",
        "kubeadmcontrolplanes",
        True,
    )
    NODE = ("Node", "", "v1", "nodes", False)
    SECRET = ("Secret", "", "v1", "secrets", True)

    def __init__(self, kind: str, group: str, version: str, plural: str, namespaced: bool):
        self.kind = kind
        self.group = group
        self.version = version
        self.plural = plural
        self.namespaced = namespaced

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def is_custom(self) -> bool:
        return bool(self.group)


class ResourceStore(Protocol):
    """Operations capi-ops needs from the resource store."""

    def get(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext) -> dict:
        ...

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        ctx: RequestContext,
        label_selector: str | None = None,
    ) -> list[dict]:
        ...

    def create(self, kind: ResourceKind, obj: dict, ctx: RequestContext) -> dict:
        ...

    def update(self, kind: ResourceKind, obj: dict, ctx: RequestContext) -> dict:
        ...

    def delete(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext) -> None:
        ...


def describe(kind: ResourceKind, namespace: str | None, name: str) -> str:
    """Human-readable object identity, e.g. 'Machine default/web-md-0'."""
    return f"{kind.kind} {namespace}/{name}" if namespace else f"{kind.kind} {name}"


def _metadata(obj: dict) -> tuple[str | None, str]:
    metadata = obj.get("metadata") or {}
    return metadata.get("namespace"), metadata.get("name", "")


def _parse_selector(label_selector: str | None) -> dict[str, str | None]:
    """Parse equality-based selectors ('a=b,c') into a mapping."""
    requirements: dict[str, str | None] = {}
    if not label_selector:
        return requirements
    for part in label_selector.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" in part:
            key, value = part.split("=", 1)
            requirements[key.strip().rstrip("=")] = value.strip()
        else:
            requirements[part] = None
    return requirements


class InMemoryStore:
    """Resource store kept in process memory.

    Implements the same optimistic concurrency contract as the API server:
    every write bumps metadata.resourceVersion and an update carrying an
    older resourceVersion raises ConflictError. All calls are recorded in
    ``calls`` as ``(verb, kind, namespace, name)`` tuples.
    """

    def __init__(self, objects: list[tuple[ResourceKind, dict]] | None = None):
        self._objects: dict[tuple[ResourceKind, str | None, str], dict] = {}
        self._revision = 0
        self.calls: list[tuple[str, ResourceKind, str | None, str | None]] = []
        for kind, obj in objects or []:
            self.add(kind, obj)

    def add(self, kind: ResourceKind, obj: dict) -> dict:
        """Seed an object without recording a call."""
        obj = copy.deepcopy(obj)
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.kind)
        namespace, name = _metadata(obj)
        self._revision += 1
        obj["metadata"]["resourceVersion"] = str(self._revision)
        self._objects[(kind, namespace if kind.namespaced else None, name)] = obj
        return copy.deepcopy(obj)

    def peek(self, kind: ResourceKind, namespace: str | None, name: str) -> dict | None:
        """Read an object without recording a call."""
        obj = self._objects.get((kind, namespace if kind.namespaced else None, name))
        return copy.deepcopy(obj) if obj else None

    def writes(self) -> list[tuple[str, ResourceKind, str | None, str | None]]:
        return [call for call in self.calls if call[0] in ("create", "update", "delete")]

    def _key(self, kind: ResourceKind, namespace: str | None, name: str):
        return (kind, namespace if kind.namespaced else None, name)

    def get(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext) -> dict:
        ctx.check(f"get {describe(kind, namespace, name)}")
        self.calls.append(("get", kind, namespace, name))
        obj = self._objects.get(self._key(kind, namespace, name))
        if obj is None:
            raise NotFoundError(f"{describe(kind, namespace, name)} not found")
        return copy.deepcopy(obj)

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        ctx: RequestContext,
        label_selector: str | None = None,
    ) -> list[dict]:
        ctx.check(f"list {kind.plural}")
        self.calls.append(("list", kind, namespace, None))
        requirements = _parse_selector(label_selector)
        items = []
        for (obj_kind, obj_namespace, _), obj in sorted(
            self._objects.items(), key=lambda item: (str(item[0][1]), item[0][2])
        ):
            if obj_kind is not kind:
                continue
            if namespace and kind.namespaced and obj_namespace != namespace:
                continue
            labels = (obj.get("metadata") or {}).get("labels") or {}
            if all(
                key in labels and (value is None or labels[key] == value)
                for key, value in requirements.items()
            ):
                items.append(copy.deepcopy(obj))
        return items

    def create(self, kind: ResourceKind, obj: dict, ctx: RequestContext) -> dict:
        namespace, name = _metadata(obj)
        ctx.check(f"create {describe(kind, namespace, name)}")
        self.calls.append(("create", kind, namespace, name))
        if self._key(kind, namespace, name) in self._objects:
            raise ConflictError(f"{describe(kind, namespace, name)} already exists")
        return self.add(kind, obj)

    def update(self, kind: ResourceKind, obj: dict, ctx: RequestContext) -> dict:
        namespace, name = _metadata(obj)
        ctx.check(f"update {describe(kind, namespace, name)}")
        self.calls.append(("update", kind, namespace, name))
        current = self._objects.get(self._key(kind, namespace, name))
        if current is None:
            raise NotFoundError(f"{describe(kind, namespace, name)} not found")
        sent_version = (obj.get("metadata") or {}).get("resourceVersion")
        if sent_version and sent_version != current["metadata"]["resourceVersion"]:
            raise ConflictError(
                f"the object has been modified; please apply your changes to the latest version "
                f"({describe(kind, namespace, name)})"
            )
        return self.add(kind, obj)

    def delete(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext) -> None:
        ctx.check(f"delete {describe(kind, namespace, name)}")
        self.calls.append(("delete", kind, namespace, name))
        if self._objects.pop(self._key(kind, namespace, name), None) is None:
            raise NotFoundError(f"{describe(kind, namespace, name)} not found")


class KubernetesStore:
    """Resource store backed by the official kubernetes client."""

    def __init__(self, api_client):
        from kubernetes import client

        self.api_client = api_client
        self.custom = client.CustomObjectsApi(api_client)
        self.core = client.CoreV1Api(api_client)

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str | None = None, context: str | None = None):
        """Connect using the first kubeconfig source that works.

        Order: explicit path, in-cluster service account, $KUBECONFIG,
        ~/.kube/config.

        Raises:
            ConfigurationError: If no configuration can be loaded
        """
        from kubernetes import client, config

        try:
            if kubeconfig:
                logger.debug(f"Loading kubeconfig from {kubeconfig}")
                return cls(config.new_client_from_config(config_file=kubeconfig, context=context))

            try:
                config.load_incluster_config()
                logger.debug("Using in-cluster configuration")
                return cls(client.ApiClient())
            except config.ConfigException:
                pass

            env_path = os.environ.get("KUBECONFIG")
            if env_path:
                return cls(config.new_client_from_config(config_file=env_path, context=context))

            default_path = Path.home() / ".kube" / "config"
            if default_path.exists():
                return cls(
                    config.new_client_from_config(config_file=str(default_path), context=context)
                )
        except (config.ConfigException, OSError, ValueError) as e:
            raise ConfigurationError(
                f"Failed to load kubeconfig: {e}",
                "Check the --kubeconfig path and --context name",
            )

        raise ConfigurationError(
            "No kubeconfig found",
            "Set KUBECONFIG, pass --kubeconfig, or run inside the management cluster",
        )

    def _call(self, action: str, ctx: RequestContext, func, *args, **kwargs):
        from kubernetes.client.rest import ApiException
        from urllib3.exceptions import MaxRetryError, TimeoutError

        ctx.check(action)
        remaining = ctx.remaining()
        if remaining is not None:
            kwargs["_request_timeout"] = remaining
        try:
            return func(*args, **kwargs)
        except ApiException as e:
            logger.debug(f"{action} failed with status {e.status}: {e.reason}")
            if e.status == 404:
                raise NotFoundError(f"{action}: not found")
            if e.status == 409:
                raise ConflictError(
                    f"{action}: conflict ({e.reason})",
                    "The object changed since it was read; run the command again",
                )
            raise StoreError(f"{action} failed: {e.status} {e.reason}", e.body)
        except (TimeoutError, MaxRetryError) as e:
            if ctx.expired:
                raise OperationCancelledError(f"{action} exceeded its deadline")
            raise StoreError(f"{action} failed: {e}")

    def _to_dict(self, obj) -> dict:
        return self.api_client.sanitize_for_serialization(obj)

    def get(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext) -> dict:
        action = f"get {describe(kind, namespace, name)}"
        if kind is ResourceKind.NODE:
            return self._to_dict(self._call(action, ctx, self.core.read_node, name))
        if kind is ResourceKind.SECRET:
            return self._to_dict(
                self._call(action, ctx, self.core.read_namespaced_secret, name, namespace)
            )
        return self._call(
            action,
            ctx,
            self.custom.get_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
        )

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        ctx: RequestContext,
        label_selector: str | None = None,
    ) -> list[dict]:
        action = f"list {kind.plural}"
        kwargs = {"label_selector": label_selector} if label_selector else {}
        if kind is ResourceKind.NODE:
            return self._to_dict(self._call(action, ctx, self.core.list_node, **kwargs))["items"]
        if kind is ResourceKind.SECRET:
            return self._to_dict(
                self._call(action, ctx, self.core.list_namespaced_secret, namespace, **kwargs)
            )["items"]
        if namespace:
            result = self._call(
                action,
                ctx,
                self.custom.list_namespaced_custom_object,
                kind.group,
                kind.version,
                namespace,
                kind.plural,
                **kwargs,
            )
        else:
            result = self._call(
                action,
                ctx,
                self.custom.list_cluster_custom_object,
                kind.group,
                kind.version,
                kind.plural,
                **kwargs,
            )
        return result.get("items", [])

    def create(self, kind: ResourceKind, obj: dict, ctx: RequestContext) -> dict:
        namespace, name = _metadata(obj)
        if not kind.is_custom:
            raise StoreError(f"Creating {kind.kind} objects is not supported")
        return self._call(
            f"create {describe(kind, namespace, name)}",
            ctx,
            self.custom.create_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            obj,
        )

    def update(self, kind: ResourceKind, obj: dict, ctx: RequestContext) -> dict:
        namespace, name = _metadata(obj)
        action = f"update {describe(kind, namespace, name)}"
        if kind is ResourceKind.NODE:
            return self._to_dict(self._call(action, ctx, self.core.replace_node, name, obj))
        if not kind.is_custom:
            raise StoreError(f"Updating {kind.kind} objects is not supported")
        return self._call(
            action,
            ctx,
            self.custom.replace_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
            obj,
        )

    def delete(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext) -> None:
        if not kind.is_custom:
            raise StoreError(f"Deleting {kind.kind} objects is not supported")
        self._call(
            f"delete {describe(kind, namespace, name)}",
            ctx,
            self.custom.delete_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
        )
