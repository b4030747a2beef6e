"""Cluster health and status evaluation."""

from capi_ops.context import RequestContext
from capi_ops.exceptions import NotFoundError
from capi_ops.inventory import Inventory
from capi_ops.logging_config import get_logger
from capi_ops.models.health import ClusterStatus, HealthVerdict
from capi_ops.models.resources import Cluster, Machine
from capi_ops.providers import classify_provider

logger = get_logger(__name__)

EXPECTED_PHASE = "Provisioned"


def evaluate_health(cluster: Cluster, machines: list[Machine]) -> HealthVerdict:
    """
    Combine cluster readiness, machine readiness and conditions into a verdict.

    Issues and warnings keep the order they are found in: control plane,
    infrastructure, workers, conditions, phase.

    Args:
        cluster: Cluster snapshot
        machines: Machines owned by the cluster, read at the same time

    Returns:
        HealthVerdict for this snapshot
    """
    verdict = HealthVerdict(
        healthy=True,
        control_plane_ready=cluster.control_plane_ready,
        infra_ready=cluster.infrastructure_ready,
    )

    if not cluster.control_plane_ready:
        verdict.healthy = False
        verdict.issues.append("Control plane is not ready")

    if not cluster.infrastructure_ready:
        verdict.healthy = False
        verdict.issues.append("Infrastructure is not ready")

    # An empty cluster is never worker-ready
    total = len(machines)
    ready = sum(1 for m in machines if m.ready)
    verdict.workers_ready = total > 0 and ready == total
    if not verdict.workers_ready:
        verdict.healthy = False
        verdict.issues.append(f"Only {ready}/{total} machines are ready")

    for condition in cluster.conditions:
        if condition.is_true:
            continue
        if condition.severity == "Error":
            verdict.healthy = False
            verdict.issues.append(f"{condition.type}: {condition.message}")
        elif condition.severity == "Warning":
            verdict.warnings.append(f"{condition.type}: {condition.message}")

    if cluster.phase and cluster.phase != EXPECTED_PHASE:
        verdict.warnings.append(
            f"Cluster phase is '{cluster.phase}', expected '{EXPECTED_PHASE}'"
        )

    return verdict


def get_cluster_health(
    inventory: Inventory, ctx: RequestContext, namespace: str, name: str
) -> HealthVerdict:
    """Read a cluster and its machines and evaluate their health."""
    cluster = inventory.get_cluster(ctx, namespace, name)
    machines = inventory.list_machines(ctx, namespace, cluster_name=name)
    verdict = evaluate_health(cluster, machines)
    logger.debug(
        f"Cluster {namespace}/{name} healthy={verdict.healthy} "
        f"issues={len(verdict.issues)} warnings={len(verdict.warnings)}"
    )
    return verdict


def build_cluster_status(
    inventory: Inventory, ctx: RequestContext, cluster: Cluster
) -> ClusterStatus:
    """Summarise a cluster snapshot, reading its machines and control plane."""
    machines = inventory.list_machines(ctx, cluster.namespace, cluster_name=cluster.name)

    try:
        control_plane = inventory.get_control_plane(ctx, cluster)
    except NotFoundError:
        logger.debug(f"Control plane of cluster {cluster.namespace}/{cluster.name} not found")
        control_plane = None

    version = cluster.version or ""
    control_plane_status = ""
    if control_plane is not None:
        version = version or control_plane.version
        control_plane_status = control_plane.display_status

    infra_kind = cluster.infrastructure_ref.kind if cluster.infrastructure_ref else None
    return ClusterStatus(
        name=cluster.name,
        namespace=cluster.namespace,
        phase=cluster.phase,
        ready=cluster.ready,
        control_plane_ready=cluster.control_plane_ready,
        infra_ready=cluster.infrastructure_ready,
        version=version,
        control_plane_status=control_plane_status,
        provider=classify_provider(infra_kind).value,
        paused=cluster.paused,
        total_machines=len(machines),
        ready_machines=sum(1 for m in machines if m.node_ref is not None),
        conditions=cluster.conditions,
    )


def get_cluster_status(
    inventory: Inventory, ctx: RequestContext, namespace: str, name: str
) -> ClusterStatus:
    return build_cluster_status(inventory, ctx, inventory.get_cluster(ctx, namespace, name))


def format_cluster_info(status: ClusterStatus) -> str:
    """Format cluster status for display."""
    lines = [
        f"Cluster: {status.namespace}/{status.name}",
        f"Phase: {status.phase}",
        f"Ready: {status.ready}",
        f"Provider: {status.provider}",
        f"Version: {status.version}",
        f"Machines: {status.ready_machines}/{status.total_machines} ready",
    ]
    if status.control_plane_status:
        lines.append(f"Control Plane: {status.control_plane_status}")
    if status.paused:
        lines.append("Paused: true")
    if status.conditions:
        lines.append("")
        lines.append("Conditions:")
        for cond in status.conditions:
            line = f"  {cond.type}: {cond.status}"
            if cond.reason:
                line += f" ({cond.reason})"
            lines.append(line)
    return "\n".join(lines) + "\n"
