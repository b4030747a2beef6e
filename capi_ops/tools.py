"""Named operator actions exposed to a calling agent.

Each tool pairs a pydantic parameter model with a handler that returns
human-readable text. ``call_tool`` validates the arguments, runs the handler
and folds every typed error into an error result.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pydantic
from pydantic import BaseModel, Field

from capi_ops.context import RequestContext
from capi_ops.exceptions import CapiOpsError, ValidationError
from capi_ops.health import (
    build_cluster_status,
    format_cluster_info,
    get_cluster_health,
    get_cluster_status,
)
from capi_ops.inventory import Inventory
from capi_ops.logging_config import get_logger
from capi_ops.models.requests import CreateClusterRequest, CreateMachineDeploymentRequest
from capi_ops.models.results import DrainOptions
from capi_ops.nodes import NodeLifecycle
from capi_ops.operations import LifecycleOperations
from capi_ops.providers import PROVIDER_CATALOGUE, provider_info
from capi_ops.secrets import get_kubeconfig
from capi_ops.store import ResourceStore

logger = get_logger(__name__)


class ToolResult(BaseModel):
    """Outcome of a tool call: text on success, a typed error otherwise."""

    text: str | None = None
    error_type: str | None = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error_type is not None

    @classmethod
    def success(cls, text: str) -> "ToolResult":
        return cls(text=text)

    @classmethod
    def failure(cls, error_type: str, error: str) -> "ToolResult":
        return cls(error_type=error_type, error=error)


@dataclass
class Tool:
    """A registered action.

    Attributes:
        name: Tool name, e.g. capi_scale_cluster
        description: One-line summary shown to callers
        params: Model the raw arguments are validated against
        handler: Callable(params, store, ctx) returning text
    """

    name: str
    description: str
    params: type[BaseModel]
    handler: Callable[[Any, ResourceStore, RequestContext], str]


TOOLS: dict[str, Tool] = {}


def tool(name: str, description: str, params: type[BaseModel]):
    """Register a handler under a tool name."""

    def decorator(func):
        TOOLS[name] = Tool(name=name, description=description, params=params, handler=func)
        return func

    return decorator


# Parameter models


class NoParams(BaseModel):
    pass


class NamespaceParams(BaseModel):
    namespace: str | None = Field(default=None, description="Namespace; empty for all")


class ObjectParams(BaseModel):
    namespace: str
    name: str


class DeleteParams(ObjectParams):
    force: bool = False


class ClusterScopedParams(BaseModel):
    namespace: str
    cluster_name: str | None = None


class ScaleClusterParams(ObjectParams):
    target: str = Field(description="'controlplane' or 'workers'")
    replicas: int
    machine_deployment: str | None = None


class ScaleParams(ObjectParams):
    replicas: int


class UpgradeClusterParams(ObjectParams):
    version: str
    upgrade_workers: bool = False


class UpdateClusterParams(ObjectParams):
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class NodeParams(BaseModel):
    node_name: str | None = None
    namespace: str | None = None
    machine_name: str | None = None


class DrainParams(NodeParams, DrainOptions):
    pass


class ProviderParams(BaseModel):
    provider: str


# Clusters


@tool("capi_list_clusters", "List clusters with their status", NamespaceParams)
def list_clusters(params: NamespaceParams, store: ResourceStore, ctx: RequestContext) -> str:
    inventory = Inventory(store)
    clusters = inventory.list_clusters(ctx, params.namespace)
    parts = [f"Found {len(clusters)} clusters:\n\n"]
    for cluster in clusters:
        status = build_cluster_status(inventory, ctx, cluster)
        parts.append(format_cluster_info(status))
        parts.append("\n---\n\n")
    return "".join(parts)


@tool("capi_get_cluster", "Show a cluster's references and metadata", ObjectParams)
def get_cluster(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    cluster = Inventory(store).get_cluster(ctx, params.namespace, params.name)
    lines = [
        f"Cluster: {cluster.namespace}/{cluster.name}",
        f"Phase: {cluster.phase}",
        f"Control Plane Ready: {cluster.control_plane_ready}",
        f"Infrastructure Ready: {cluster.infrastructure_ready}",
    ]
    if cluster.control_plane_ref:
        lines.append(f"Control Plane: {cluster.control_plane_ref}")
    if cluster.infrastructure_ref:
        lines.append(f"Infrastructure: {cluster.infrastructure_ref}")
    if cluster.labels:
        lines.append("Labels:")
        lines.extend(f"  {k}={v}" for k, v in sorted(cluster.labels.items()))
    if cluster.annotations:
        lines.append("Annotations:")
        lines.extend(f"  {k}={v}" for k, v in sorted(cluster.annotations.items()))
    return "\n".join(lines) + "\n"


@tool("capi_cluster_status", "Summarise a cluster's readiness and machines", ObjectParams)
def cluster_status(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    return format_cluster_info(get_cluster_status(Inventory(store), ctx, params.namespace, params.name))


@tool("capi_cluster_health", "Evaluate cluster health", ObjectParams)
def cluster_health(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    verdict = get_cluster_health(Inventory(store), ctx, params.namespace, params.name)
    lines = [
        f"Cluster: {params.namespace}/{params.name}",
        f"Healthy: {verdict.healthy}",
        f"Control Plane Ready: {verdict.control_plane_ready}",
        f"Infrastructure Ready: {verdict.infra_ready}",
        f"Workers Ready: {verdict.workers_ready}",
    ]
    if verdict.issues:
        lines.append("\nIssues:")
        lines.extend(f"  - {issue}" for issue in verdict.issues)
    if verdict.warnings:
        lines.append("\nWarnings:")
        lines.extend(f"  - {warning}" for warning in verdict.warnings)
    return "\n".join(lines) + "\n"


@tool("capi_create_cluster", "Create a Cluster object", CreateClusterRequest)
def create_cluster(params: CreateClusterRequest, store: ResourceStore, ctx: RequestContext) -> str:
    cluster = LifecycleOperations(store).create_cluster(ctx, params)
    lines = [
        f"Cluster '{cluster.name}' creation initiated",
        "",
        f"  Namespace: {cluster.namespace}",
        f"  Provider: {params.provider}",
        "",
        "Requested sizing (informational only, not written to the Cluster object):",
        f"  Kubernetes Version: {params.kubernetes_version}",
        f"  Control Plane Nodes: {params.control_plane_count}",
        f"  Worker Nodes: {params.worker_count}",
    ]
    if params.region:
        lines.append(f"  Region: {params.region}")
    if params.instance_type:
        lines.append(f"  Instance Type: {params.instance_type}")
    lines += [
        "",
        "Only the Cluster object was created. The infrastructure cluster, "
        f"control plane ({cluster.control_plane_ref}) and worker MachineDeployments "
        "must be created separately.",
    ]
    return "\n".join(lines) + "\n"


@tool("capi_scale_cluster", "Scale a cluster's control plane or a worker pool", ScaleClusterParams)
def scale_cluster(params: ScaleClusterParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = LifecycleOperations(store).scale_cluster(
        ctx,
        params.namespace,
        params.name,
        params.target,
        params.replicas,
        machine_deployment=params.machine_deployment,
    )
    return (
        f"Scaled {result.kind} {result.namespace}/{result.name} "
        f"from {result.previous_replicas} to {result.replicas} replicas\n"
    )


@tool("capi_pause_cluster", "Pause reconciliation of a cluster", ObjectParams)
def pause_cluster(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = LifecycleOperations(store).pause_cluster(ctx, params.namespace, params.name)
    if not result.changed:
        return f"Cluster {params.namespace}/{params.name} is already paused\n"
    return f"Cluster {params.namespace}/{params.name} paused\n"


@tool("capi_resume_cluster", "Resume reconciliation of a cluster", ObjectParams)
def resume_cluster(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = LifecycleOperations(store).resume_cluster(ctx, params.namespace, params.name)
    if not result.changed:
        return f"Cluster {params.namespace}/{params.name} is not paused\n"
    return f"Cluster {params.namespace}/{params.name} resumed\n"


@tool("capi_delete_cluster", "Delete a cluster (force required when Ready)", DeleteParams)
def delete_cluster(params: DeleteParams, store: ResourceStore, ctx: RequestContext) -> str:
    LifecycleOperations(store).delete_cluster(ctx, params.namespace, params.name, params.force)
    return (
        f"Deletion of cluster {params.namespace}/{params.name} initiated. "
        "Its machines and infrastructure are removed by the cluster controllers.\n"
    )


@tool("capi_upgrade_cluster", "Upgrade a cluster's Kubernetes version", UpgradeClusterParams)
def upgrade_cluster(params: UpgradeClusterParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = LifecycleOperations(store).upgrade_cluster(
        ctx, params.namespace, params.name, params.version, params.upgrade_workers
    )
    lines = [f"Upgrade of cluster {params.namespace}/{params.name} to {result.version} initiated"]
    if result.control_plane:
        lines.append(f"  Control plane: {result.control_plane}")
    for md_name in result.machine_deployments:
        lines.append(f"  MachineDeployment: {md_name}")
    return "\n".join(lines) + "\n"


@tool("capi_update_cluster", "Set or remove cluster labels and annotations", UpdateClusterParams)
def update_cluster(params: UpdateClusterParams, store: ResourceStore, ctx: RequestContext) -> str:
    LifecycleOperations(store).update_cluster_metadata(
        ctx, params.namespace, params.name, params.labels, params.annotations
    )
    return f"Cluster {params.namespace}/{params.name} updated\n"


@tool("capi_get_kubeconfig", "Fetch a workload cluster's kubeconfig", ObjectParams)
def kubeconfig(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    return get_kubeconfig(store, ctx, params.namespace, params.name)


# Machines


@tool("capi_list_machines", "List machines, optionally for one cluster", ClusterScopedParams)
def list_machines(params: ClusterScopedParams, store: ResourceStore, ctx: RequestContext) -> str:
    machines = Inventory(store).list_machines(ctx, params.namespace, params.cluster_name)
    lines = [f"Found {len(machines)} machines:", ""]
    for machine in machines:
        node = machine.node_ref.name if machine.node_ref else "<none>"
        role = "control-plane" if machine.is_control_plane else "worker"
        lines.append(
            f"{machine.namespace}/{machine.name}  cluster={machine.cluster_name}  "
            f"role={role}  phase={machine.display_phase}  node={node}"
        )
    return "\n".join(lines) + "\n"


@tool("capi_get_machine", "Show a machine", ObjectParams)
def get_machine(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    machine = Inventory(store).get_machine(ctx, params.namespace, params.name)
    lines = [
        f"Machine: {machine.namespace}/{machine.name}",
        f"Cluster: {machine.cluster_name}",
        f"Phase: {machine.display_phase}",
        f"Version: {machine.version or ''}",
        f"Provider ID: {machine.provider_id or ''}",
        f"Node: {machine.node_ref.name if machine.node_ref else '<none>'}",
    ]
    if machine.infrastructure_ref:
        lines.append(f"Infrastructure: {machine.infrastructure_ref}")
    if machine.bootstrap_ref:
        lines.append(f"Bootstrap: {machine.bootstrap_ref}")
    if machine.addresses:
        lines.append("Addresses:")
        lines.extend(f"  {a.type}: {a.address}" for a in machine.addresses)
    if machine.conditions:
        lines.append("Conditions:")
        lines.extend(f"  {c.type}: {c.status}" for c in machine.conditions)
    return "\n".join(lines) + "\n"


@tool("capi_delete_machine", "Delete a machine (force required when healthy)", DeleteParams)
def delete_machine(params: DeleteParams, store: ResourceStore, ctx: RequestContext) -> str:
    LifecycleOperations(store).delete_machine(ctx, params.namespace, params.name, params.force)
    return f"Deletion of machine {params.namespace}/{params.name} initiated\n"


@tool("capi_remediate_machine", "Request remediation of a machine", ObjectParams)
def remediate_machine(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = LifecycleOperations(store).remediate_machine(ctx, params.namespace, params.name)
    return (
        f"Remediation requested for machine {result.namespace}/{result.name} "
        f"at {result.requested_at}. The machine health check controller performs it.\n"
    )


# Replica controllers


@tool(
    "capi_list_machinedeployments",
    "List MachineDeployments, optionally for one cluster",
    ClusterScopedParams,
)
def list_machine_deployments(
    params: ClusterScopedParams, store: ResourceStore, ctx: RequestContext
) -> str:
    deployments = Inventory(store).list_machine_deployments(
        ctx, params.namespace, params.cluster_name
    )
    lines = [f"Found {len(deployments)} MachineDeployments:", ""]
    for md in deployments:
        lines.append(
            f"{md.namespace}/{md.name}  cluster={md.cluster_name}  "
            f"replicas={md.status.ready}/{md.replicas}  version={md.template.version or ''}"
        )
    return "\n".join(lines) + "\n"


@tool("capi_get_machinedeployment", "Show a MachineDeployment", ObjectParams)
def get_machine_deployment(params: ObjectParams, store: ResourceStore, ctx: RequestContext) -> str:
    md = Inventory(store).get_machine_deployment(ctx, params.namespace, params.name)
    lines = [
        f"MachineDeployment: {md.namespace}/{md.name}",
        f"Cluster: {md.cluster_name}",
        f"Replicas: {md.replicas}",
        f"Ready: {md.status.ready}",
        f"Updated: {md.status.updated}",
        f"Available: {md.status.available}",
        f"Version: {md.template.version or ''}",
    ]
    if md.template.infrastructure_ref:
        lines.append(f"Infrastructure: {md.template.infrastructure_ref}")
    if md.template.bootstrap_ref:
        lines.append(f"Bootstrap: {md.template.bootstrap_ref}")
    return "\n".join(lines) + "\n"


@tool(
    "capi_create_machinedeployment",
    "Create a MachineDeployment",
    CreateMachineDeploymentRequest,
)
def create_machine_deployment(
    params: CreateMachineDeploymentRequest, store: ResourceStore, ctx: RequestContext
) -> str:
    md = LifecycleOperations(store).create_machine_deployment(ctx, params)
    return (
        f"MachineDeployment {md.namespace}/{md.name} created for cluster {md.cluster_name} "
        f"with {md.replicas} replicas\n"
    )


@tool("capi_scale_machinedeployment", "Scale a MachineDeployment", ScaleParams)
def scale_machine_deployment(params: ScaleParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = LifecycleOperations(store).scale_machine_deployment(
        ctx, params.namespace, params.name, params.replicas
    )
    return (
        f"Scaled MachineDeployment {result.namespace}/{result.name} "
        f"from {result.previous_replicas} to {result.replicas} replicas\n"
    )


@tool("capi_list_machinesets", "List MachineSets, optionally for one cluster", ClusterScopedParams)
def list_machine_sets(params: ClusterScopedParams, store: ResourceStore, ctx: RequestContext) -> str:
    machine_sets = Inventory(store).list_machine_sets(ctx, params.namespace, params.cluster_name)
    lines = [f"Found {len(machine_sets)} MachineSets:", ""]
    for ms in machine_sets:
        lines.append(
            f"{ms.namespace}/{ms.name}  deployment={ms.machine_deployment or '<none>'}  "
            f"replicas={ms.status.ready}/{ms.replicas}"
        )
    return "\n".join(lines) + "\n"


# Nodes


@tool("capi_node_status", "Show a node", NodeParams)
def node_status(params: NodeParams, store: ResourceStore, ctx: RequestContext) -> str:
    node = NodeLifecycle(store).status(ctx, params.node_name, params.namespace, params.machine_name)
    lines = [
        f"Node: {node.name}",
        f"Ready: {node.ready}",
        f"Schedulable: {not node.unschedulable}",
        f"Kubelet Version: {node.kubelet_version or ''}",
    ]
    if node.taints:
        lines.append("Taints:")
        lines.extend(f"  {t}" for t in node.taints)
    if node.capacity:
        lines.append("Capacity:")
        lines.extend(f"  {k}: {v}" for k, v in sorted(node.capacity.items()))
    if node.allocatable:
        lines.append("Allocatable:")
        lines.extend(f"  {k}: {v}" for k, v in sorted(node.allocatable.items()))
    if node.addresses:
        lines.append("Addresses:")
        lines.extend(f"  {a.type}: {a.address}" for a in node.addresses)
    if node.conditions:
        lines.append("Conditions:")
        lines.extend(f"  {c.type}: {c.status}" for c in node.conditions)
    return "\n".join(lines) + "\n"


@tool("capi_cordon_node", "Mark a node unschedulable", NodeParams)
def cordon_node(params: NodeParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = NodeLifecycle(store).cordon(ctx, params.node_name, params.namespace, params.machine_name)
    if not result.changed:
        return f"Node {result.node_name} is already cordoned\n"
    return f"Node {result.node_name} cordoned\n"


@tool("capi_uncordon_node", "Mark a node schedulable", NodeParams)
def uncordon_node(params: NodeParams, store: ResourceStore, ctx: RequestContext) -> str:
    result = NodeLifecycle(store).uncordon(
        ctx, params.node_name, params.namespace, params.machine_name
    )
    if not result.changed:
        return f"Node {result.node_name} is already schedulable\n"
    return f"Node {result.node_name} uncordoned\n"


@tool("capi_drain_node", "Cordon a node ahead of maintenance", DrainParams)
def drain_node(params: DrainParams, store: ResourceStore, ctx: RequestContext) -> str:
    options = DrainOptions(
        ignore_daemonsets=params.ignore_daemonsets,
        delete_local_data=params.delete_local_data,
        force=params.force,
        grace_period=params.grace_period,
    )
    result = NodeLifecycle(store).drain(
        ctx, params.node_name, params.namespace, params.machine_name, options=options
    )
    return "\n".join(
        [
            f"Node {result.node_name} cordoned; pod eviction was NOT performed.",
            "Evict workloads with the workload cluster's node maintenance tooling.",
            "",
            "Requested drain options:",
            f"  ignore-daemonsets: {options.ignore_daemonsets}",
            f"  delete-local-data: {options.delete_local_data}",
            f"  force: {options.force}",
            f"  grace-period: {options.grace_period}",
        ]
    ) + "\n"


# Providers


@tool("capi_list_infrastructure_providers", "List supported infrastructure providers", NoParams)
def list_providers(params: NoParams, store: ResourceStore, ctx: RequestContext) -> str:
    lines = ["Supported infrastructure providers:", ""]
    for info in PROVIDER_CATALOGUE.values():
        lines.append(f"{info.provider.value}: {info.display_name} ({info.infrastructure_kind})")
    return "\n".join(lines) + "\n"


@tool("capi_get_provider", "Show a provider's catalogue entry", ProviderParams)
def get_provider(params: ProviderParams, store: ResourceStore, ctx: RequestContext) -> str:
    info = provider_info(params.provider)
    if info is None:
        raise ValidationError(
            f"Unknown provider: {params.provider}",
            f"Known providers: {', '.join(p.value for p in PROVIDER_CATALOGUE)}",
        )
    return "\n".join(
        [
            f"Provider: {info.display_name}",
            f"API Version: {info.api_version}",
            f"Infrastructure Kind: {info.infrastructure_kind}",
            f"Description: {info.description}",
        ]
    ) + "\n"


def call_tool(
    name: str, arguments: dict | None, store: ResourceStore, ctx: RequestContext
) -> ToolResult:
    """
    Validate arguments and run a tool.

    Returns:
        ToolResult with text on success, or the error class name and message
    """
    registered = TOOLS.get(name)
    if registered is None:
        return ToolResult.failure("UnknownToolError", f"Unknown tool: {name}")

    try:
        params = registered.params.model_validate(arguments or {})
    except pydantic.ValidationError as e:
        logger.debug(f"Invalid arguments for {name}: {e}")
        return ToolResult.failure("ValidationError", str(e))

    try:
        text = registered.handler(params, store, ctx)
    except CapiOpsError as e:
        logger.debug(f"{name} failed: {type(e).__name__}: {e.message}")
        return ToolResult.failure(type(e).__name__, e.format_message())

    return ToolResult.success(text)
