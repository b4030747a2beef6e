"""Node schedulability transitions for machines that have joined a cluster."""

from capi_ops.context import RequestContext
from capi_ops.exceptions import StoreError
from capi_ops.logging_config import get_logger
from capi_ops.models.resources import Node
from capi_ops.models.results import DrainOptions, DrainResult, NodeTransition
from capi_ops.resolver import resolve_node_name
from capi_ops.store import ResourceKind, ResourceStore

logger = get_logger(__name__)


class NodeLifecycle:
    """Cordon, uncordon, drain and inspect nodes.

    Nodes are addressed either by name or by the (namespace, machine) pair
    of the machine bound to them.
    """

    def __init__(self, store: ResourceStore):
        self.store = store

    def _read_node(self, ctx: RequestContext, node_name: str) -> dict:
        try:
            return self.store.get(ResourceKind.NODE, None, node_name, ctx)
        except StoreError as e:
            raise e.wrap(f"failed to get node {node_name}") from e

    def _set_unschedulable(
        self, ctx: RequestContext, node_name: str, unschedulable: bool
    ) -> NodeTransition:
        obj = self._read_node(ctx, node_name)
        spec = obj.setdefault("spec", {})
        if bool(spec.get("unschedulable")) == unschedulable:
            logger.debug(f"Node {node_name} already has unschedulable={unschedulable}")
            return NodeTransition(node_name=node_name, unschedulable=unschedulable, changed=False)

        spec["unschedulable"] = unschedulable
        action = "cordon" if unschedulable else "uncordon"
        try:
            self.store.update(ResourceKind.NODE, obj, ctx)
        except StoreError as e:
            logger.error(f"Failed to {action} node {node_name}: {e.message}")
            raise e.wrap(f"failed to {action} node {node_name}") from e

        logger.info(f"Node {node_name} {action}ed")
        return NodeTransition(node_name=node_name, unschedulable=unschedulable, changed=True)

    def cordon(
        self,
        ctx: RequestContext,
        node_name: str | None = None,
        namespace: str | None = None,
        machine_name: str | None = None,
    ) -> NodeTransition:
        """Mark a node unschedulable. Cordoning a cordoned node succeeds."""
        name = resolve_node_name(self.store, ctx, node_name, namespace, machine_name)
        return self._set_unschedulable(ctx, name, True)

    def uncordon(
        self,
        ctx: RequestContext,
        node_name: str | None = None,
        namespace: str | None = None,
        machine_name: str | None = None,
    ) -> NodeTransition:
        """Mark a node schedulable again."""
        name = resolve_node_name(self.store, ctx, node_name, namespace, machine_name)
        return self._set_unschedulable(ctx, name, False)

    def drain(
        self,
        ctx: RequestContext,
        node_name: str | None = None,
        namespace: str | None = None,
        machine_name: str | None = None,
        options: DrainOptions | None = None,
    ) -> DrainResult:
        """
        Cordon a node ahead of maintenance.

        Pods are not evicted. The returned result echoes the requested
        options and sets eviction_performed=False so callers never mistake
        this for a completed drain.
        """
        options = options or DrainOptions()
        name = resolve_node_name(self.store, ctx, node_name, namespace, machine_name)
        transition = self._set_unschedulable(ctx, name, True)

        logger.warning(f"Node {name} cordoned; pod eviction was not performed")
        return DrainResult(
            node_name=name,
            cordoned=True,
            already_cordoned=not transition.changed,
            eviction_performed=False,
            options=options,
        )

    def status(
        self,
        ctx: RequestContext,
        node_name: str | None = None,
        namespace: str | None = None,
        machine_name: str | None = None,
    ) -> Node:
        """Read-only snapshot of a node."""
        name = resolve_node_name(self.store, ctx, node_name, namespace, machine_name)
        return Node.from_object(self._read_node(ctx, name))
