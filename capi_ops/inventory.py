"""Read access to the Cluster API objects of the management cluster.

Every method performs fresh reads; nothing is cached between calls.
"""

from capi_ops.context import RequestContext
from capi_ops.exceptions import StoreError
from capi_ops.logging_config import get_logger
from capi_ops.models.resources import (
    CLUSTER_NAME_LABEL,
    Cluster,
    ControlPlane,
    Machine,
    MachineDeployment,
    MachineSet,
)
from capi_ops.providers import control_plane_resource
from capi_ops.store import ResourceKind, ResourceStore

logger = get_logger(__name__)


def cluster_selector(cluster_name: str | None) -> str | None:
    """Label selector matching objects that belong to a cluster."""
    return f"{CLUSTER_NAME_LABEL}={cluster_name}" if cluster_name else None


class Inventory:
    """Typed reads of clusters, machines, replica controllers and control planes."""

    def __init__(self, store: ResourceStore):
        """Initialize the inventory.

        Args:
            store: Resource store shared with the mutating operations
        """
        self.store = store

    def _get(self, kind: ResourceKind, namespace: str | None, name: str, ctx: RequestContext):
        try:
            return self.store.get(kind, namespace, name, ctx)
        except StoreError as e:
            label = f"{namespace}/{name}" if namespace else name
            raise e.wrap(f"failed to get {kind.kind.lower()} {label}") from e

    def _list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        ctx: RequestContext,
        label_selector: str | None = None,
    ):
        try:
            items = self.store.list(kind, namespace, ctx, label_selector=label_selector)
        except StoreError as e:
            raise e.wrap(f"failed to list {kind.plural}") from e
        logger.debug(f"Listed {len(items)} {kind.plural} (namespace={namespace or '*'})")
        return items

    def list_clusters(self, ctx: RequestContext, namespace: str | None = None) -> list[Cluster]:
        """List clusters, across all namespaces when namespace is empty."""
        return [Cluster.from_object(o) for o in self._list(ResourceKind.CLUSTER, namespace, ctx)]

    def get_cluster(self, ctx: RequestContext, namespace: str, name: str) -> Cluster:
        return Cluster.from_object(self._get(ResourceKind.CLUSTER, namespace, name, ctx))

    def list_machines(
        self, ctx: RequestContext, namespace: str, cluster_name: str | None = None
    ) -> list[Machine]:
        """List machines in a namespace, optionally only those of one cluster."""
        return [
            Machine.from_object(o)
            for o in self._list(
                ResourceKind.MACHINE, namespace, ctx, label_selector=cluster_selector(cluster_name)
            )
        ]

    def get_machine(self, ctx: RequestContext, namespace: str, name: str) -> Machine:
        return Machine.from_object(self._get(ResourceKind.MACHINE, namespace, name, ctx))

    def list_machine_deployments(
        self, ctx: RequestContext, namespace: str, cluster_name: str | None = None
    ) -> list[MachineDeployment]:
        return [
            MachineDeployment.from_object(o)
            for o in self._list(
                ResourceKind.MACHINE_DEPLOYMENT,
                namespace,
                ctx,
                label_selector=cluster_selector(cluster_name),
            )
        ]

    def get_machine_deployment(
        self, ctx: RequestContext, namespace: str, name: str
    ) -> MachineDeployment:
        return MachineDeployment.from_object(
            self._get(ResourceKind.MACHINE_DEPLOYMENT, namespace, name, ctx)
        )

    def list_machine_sets(
        self, ctx: RequestContext, namespace: str, cluster_name: str | None = None
    ) -> list[MachineSet]:
        return [
            MachineSet.from_object(o)
            for o in self._list(
                ResourceKind.MACHINE_SET,
                namespace,
                ctx,
                label_selector=cluster_selector(cluster_name),
            )
        ]

    def get_control_plane(self, ctx: RequestContext, cluster: Cluster) -> ControlPlane | None:
        """Read the control-plane object a cluster references.

        Returns None when the cluster has no reference or the kind is not one
        capi-ops can read.
        """
        ref = cluster.control_plane_ref
        kind = control_plane_resource(ref.kind) if ref else None
        if kind is None:
            return None
        namespace = ref.namespace or cluster.namespace
        return ControlPlane.from_object(self._get(kind, namespace, ref.name, ctx))
