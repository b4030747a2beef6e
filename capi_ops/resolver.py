"""Resolve the node an operation should act on."""

from capi_ops.context import RequestContext
from capi_ops.exceptions import InvalidAddressingError, NodeNotBoundError, StoreError
from capi_ops.logging_config import get_logger
from capi_ops.models.resources import Machine
from capi_ops.store import ResourceKind, ResourceStore

logger = get_logger(__name__)


def resolve_node_name(
    store: ResourceStore,
    ctx: RequestContext,
    node_name: str | None = None,
    namespace: str | None = None,
    machine_name: str | None = None,
) -> str:
    """
    Turn a node name or a (namespace, machine) pair into a node name.

    A direct node name wins and is returned without checking that the node
    exists; the caller's read of the node does that.

    Returns:
        Name of the node to operate on

    Raises:
        InvalidAddressingError: If neither addressing mode is usable
        NodeNotBoundError: If the machine has no node reference yet
        NotFoundError: If the machine does not exist
    """
    if node_name:
        return node_name

    if not namespace or not machine_name:
        raise InvalidAddressingError(
            "Either node_name or both namespace and machine_name are required",
            "Pass --node NAME, or --namespace NS --machine NAME",
        )

    try:
        machine = Machine.from_object(store.get(ResourceKind.MACHINE, namespace, machine_name, ctx))
    except StoreError as e:
        raise e.wrap(f"failed to resolve node for machine {namespace}/{machine_name}") from e

    if machine.node_ref is None:
        raise NodeNotBoundError(
            f"Machine {namespace}/{machine_name} has no node yet",
            f"The machine is in phase '{machine.display_phase}' and has not joined the cluster",
        )

    logger.debug(f"Machine {namespace}/{machine_name} is bound to node {machine.node_ref.name}")
    return machine.node_ref.name
