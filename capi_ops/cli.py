"""Main CLI entry point for Cluster API lifecycle operations."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from capi_ops.config import Settings, load_settings
from capi_ops.context import RequestContext
from capi_ops.exceptions import CapiOpsError
from capi_ops.logging_config import get_logger, setup_logging
from capi_ops.store import KubernetesStore, ResourceStore
from capi_ops.tools import call_tool

app = typer.Typer(
    name="capi-ops",
    help="Operate Cluster API clusters, machines and nodes on a management cluster",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


class _State:
    settings: Settings = Settings()
    store: ResourceStore | None = None


state = _State()


def get_store() -> ResourceStore:
    """Connect to the management cluster on first use."""
    if state.store is None:
        state.store = KubernetesStore.from_kubeconfig(
            state.settings.kubeconfig, state.settings.context
        )
    return state.store


def new_context() -> RequestContext:
    return RequestContext(timeout=state.settings.request_timeout)


def _print_error(e: CapiOpsError) -> None:
    console.print(f"[red]Error:[/red] {escape(e.message)}", highlight=False)
    if e.details:
        console.print(f"\n{e.details}", markup=False, highlight=False)


def _run(tool_name: str, **arguments) -> None:
    """Run a tool, print its text, exit 1 on error."""
    try:
        store = get_store()
    except CapiOpsError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    result = call_tool(tool_name, arguments, store, new_context())
    if result.is_error:
        logger.debug(f"{tool_name} returned {result.error_type}")
        console.print(f"[red]{result.error_type}:[/red] {escape(result.error)}", highlight=False)
        raise typer.Exit(code=1)
    console.print(result.text, markup=False, highlight=False, end="")


def _parse_pairs(pairs: list[str] | None, what: str) -> dict[str, str]:
    """Parse repeated key=value options; 'key=' maps to an empty value."""
    parsed = {}
    for pair in pairs or []:
        if "=" not in pair:
            console.print(f"[red]Error:[/red] Invalid {what} format: '{pair}'. Expected 'key=value'")
            raise typer.Exit(code=1)
        key, value = pair.split("=", 1)
        parsed[key.strip()] = value.strip()
    return parsed


# Global callback to set up settings and logging
@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to settings file"),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Per-command deadline in seconds"
    ),
):
    """Global options for all commands."""
    try:
        settings = load_settings(config)
        if timeout is not None:
            settings = Settings(**{**settings.model_dump(), "request_timeout": timeout})
    except CapiOpsError as e:
        _print_error(e)
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    log_path = log_file or settings.log_file
    setup_logging(
        level=settings.log_level,
        log_file=Path(log_path) if log_path else None,
        verbose=verbose,
    )
    state.settings = settings
    logger.debug("Logging initialized")


@app.command()
def version() -> None:
    """Show version information."""
    from capi_ops import __version__

    typer.echo(f"capi-ops version {__version__}")


# Clusters


@app.command("list-clusters")
def list_clusters(
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Namespace to list (all namespaces when omitted)"
    ),
) -> None:
    """List clusters with their readiness and machine counts."""
    from capi_ops.health import build_cluster_status
    from capi_ops.inventory import Inventory

    try:
        inventory = Inventory(get_store())
        ctx = new_context()
        statuses = [
            build_cluster_status(inventory, ctx, cluster)
            for cluster in inventory.list_clusters(ctx, namespace)
        ]
    except CapiOpsError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if not statuses:
        console.print("[yellow]No clusters found[/yellow]")
        return

    table = Table(title="Clusters")
    table.add_column("Namespace", style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Phase", style="magenta")
    table.add_column("Ready", style="green")
    table.add_column("Provider")
    table.add_column("Control Plane")
    table.add_column("Version")
    table.add_column("Machines")

    for status in statuses:
        ready = "✓" if status.ready else "✗"
        if status.paused:
            ready += " (paused)"
        table.add_row(
            status.namespace,
            status.name,
            status.phase,
            ready,
            status.provider,
            status.control_plane_status or "-",
            status.version,
            f"{status.ready_machines}/{status.total_machines}",
        )

    console.print(table)
    console.print(f"\n[bold]Total clusters:[/bold] {len(statuses)}")


@app.command("get-cluster")
def get_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Show a cluster's references and metadata."""
    _run("capi_get_cluster", namespace=namespace, name=name)


@app.command("cluster-status")
def cluster_status(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Summarise a cluster's readiness and machines."""
    _run("capi_cluster_status", namespace=namespace, name=name)


@app.command("cluster-health")
def cluster_health(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """
    Evaluate cluster health.

    Combines control plane, infrastructure and machine readiness with the
    cluster's conditions into issues and warnings.
    """
    _run("capi_cluster_health", namespace=namespace, name=name)


@app.command("create-cluster")
def create_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    provider: str = typer.Option(..., "--provider", "-p", help="aws, azure, gcp or vsphere"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
    kubernetes_version: str = typer.Option("v1.29.0", "--kubernetes-version", help="e.g. v1.29.0"),
    control_plane_count: int = typer.Option(3, "--control-plane-count", help="Control plane nodes"),
    worker_count: int = typer.Option(3, "--worker-count", help="Worker nodes"),
    region: str | None = typer.Option(None, "--region", help="Cloud region"),
    instance_type: str | None = typer.Option(None, "--instance-type", help="Instance type"),
) -> None:
    """
    Create a Cluster object.

    Only the Cluster itself is created; the infrastructure cluster, control
    plane and worker pools it references must be created separately.
    """
    _run(
        "capi_create_cluster",
        name=name,
        namespace=namespace,
        provider=provider,
        kubernetes_version=kubernetes_version,
        control_plane_count=control_plane_count,
        worker_count=worker_count,
        region=region,
        instance_type=instance_type,
    )


@app.command("scale-cluster")
def scale_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    target: str = typer.Option(..., "--target", "-t", help="controlplane or workers"),
    replicas: int = typer.Option(..., "--replicas", "-r", help="Desired replica count"),
    machine_deployment: str | None = typer.Option(
        None, "--machine-deployment", "-m", help="MachineDeployment to scale (workers only)"
    ),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Scale a cluster's control plane or one of its worker pools."""
    _run(
        "capi_scale_cluster",
        namespace=namespace,
        name=name,
        target=target,
        replicas=replicas,
        machine_deployment=machine_deployment,
    )


@app.command("pause-cluster")
def pause_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Pause reconciliation of a cluster."""
    _run("capi_pause_cluster", namespace=namespace, name=name)


@app.command("resume-cluster")
def resume_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Resume reconciliation of a paused cluster."""
    _run("capi_resume_cluster", namespace=namespace, name=name)


@app.command("delete-cluster")
def delete_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
    force: bool = typer.Option(False, "--force", "-f", help="Delete even if the cluster is Ready"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Delete a cluster. A Ready cluster is only deleted with --force."""
    if not yes:
        confirm = typer.confirm(f"Delete cluster {namespace}/{name}?")
        if not confirm:
            console.print("[yellow]Operation cancelled[/yellow]")
            raise typer.Exit(code=0)
    _run("capi_delete_cluster", namespace=namespace, name=name, force=force)


@app.command("upgrade-cluster")
def upgrade_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    version: str = typer.Option(..., "--version", help="Target Kubernetes version, e.g. v1.30.1"),
    upgrade_workers: bool = typer.Option(
        False, "--upgrade-workers", help="Also upgrade the cluster's MachineDeployments"
    ),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Upgrade a cluster's control plane and, optionally, its workers."""
    _run(
        "capi_upgrade_cluster",
        namespace=namespace,
        name=name,
        version=version,
        upgrade_workers=upgrade_workers,
    )


@app.command("update-cluster")
def update_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    label: list[str] | None = typer.Option(
        None, "--label", "-l", help="key=value label; 'key=' removes it"
    ),
    annotation: list[str] | None = typer.Option(
        None, "--annotation", "-a", help="key=value annotation; 'key=' removes it"
    ),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
) -> None:
    """Set or remove cluster labels and annotations."""
    _run(
        "capi_update_cluster",
        namespace=namespace,
        name=name,
        labels=_parse_pairs(label, "label"),
        annotations=_parse_pairs(annotation, "annotation"),
    )


@app.command()
def kubeconfig(
    name: str = typer.Argument(..., help="Cluster name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Cluster namespace"),
    output: str | None = typer.Option(None, "--output", "-o", help="Write to file instead"),
) -> None:
    """Print a workload cluster's kubeconfig."""
    from capi_ops.secrets import get_kubeconfig

    try:
        content = get_kubeconfig(get_store(), new_context(), namespace, name)
    except CapiOpsError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if output:
        path = Path(output)
        try:
            path.write_text(content)
            path.chmod(0o600)
        except OSError as e:
            console.print(f"[red]Error:[/red] Failed to write {escape(str(path))}: {escape(str(e))}")
            raise typer.Exit(code=1)
        console.print(f"[green]✓[/green] Kubeconfig written to {path}")
    else:
        typer.echo(content, nl=False)


# Machines


@app.command("list-machines")
def list_machines(
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace to list"),
    cluster: str | None = typer.Option(None, "--cluster", help="Only machines of this cluster"),
) -> None:
    """List machines with their role, phase and node."""
    from capi_ops.inventory import Inventory

    try:
        machines = Inventory(get_store()).list_machines(new_context(), namespace, cluster)
    except CapiOpsError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if not machines:
        console.print("[yellow]No machines found[/yellow]")
        return

    table = Table(title="Machines")
    table.add_column("Name", style="cyan")
    table.add_column("Cluster", style="cyan")
    table.add_column("Role")
    table.add_column("Phase", style="magenta")
    table.add_column("Ready", style="green")
    table.add_column("Node")
    table.add_column("Version")

    for machine in machines:
        table.add_row(
            machine.name,
            machine.cluster_name,
            "control-plane" if machine.is_control_plane else "worker",
            machine.display_phase,
            "✓" if machine.ready else "✗",
            machine.node_ref.name if machine.node_ref else "-",
            machine.version or "-",
        )

    console.print(table)
    console.print(f"\n[bold]Total machines:[/bold] {len(machines)}")


@app.command("get-machine")
def get_machine(
    name: str = typer.Argument(..., help="Machine name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Machine namespace"),
) -> None:
    """Show a machine."""
    _run("capi_get_machine", namespace=namespace, name=name)


@app.command("delete-machine")
def delete_machine(
    name: str = typer.Argument(..., help="Machine name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Machine namespace"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Delete even if healthy or part of the control plane"
    ),
) -> None:
    """Delete a machine. Healthy and control plane machines need --force."""
    _run("capi_delete_machine", namespace=namespace, name=name, force=force)


@app.command("remediate-machine")
def remediate_machine(
    name: str = typer.Argument(..., help="Machine name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Machine namespace"),
) -> None:
    """Ask the machine health check controller to remediate a machine."""
    _run("capi_remediate_machine", namespace=namespace, name=name)


# Replica controllers


@app.command("list-machinedeployments")
def list_machine_deployments(
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace to list"),
    cluster: str | None = typer.Option(None, "--cluster", help="Only this cluster's pools"),
) -> None:
    """List MachineDeployments."""
    _run("capi_list_machinedeployments", namespace=namespace, cluster_name=cluster)


@app.command("get-machinedeployment")
def get_machine_deployment(
    name: str = typer.Argument(..., help="MachineDeployment name"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace"),
) -> None:
    """Show a MachineDeployment's replicas and template."""
    _run("capi_get_machinedeployment", namespace=namespace, name=name)


@app.command("create-machinedeployment")
def create_machine_deployment(
    name: str = typer.Argument(..., help="MachineDeployment name"),
    cluster: str = typer.Option(..., "--cluster", help="Owning cluster"),
    infra_kind: str = typer.Option(..., "--infra-kind", help="Infrastructure template kind"),
    infra_name: str = typer.Option(..., "--infra-name", help="Infrastructure template name"),
    bootstrap_kind: str = typer.Option(
        "KubeadmConfigTemplate", "--bootstrap-kind", help="Bootstrap template kind"
    ),
    bootstrap_name: str = typer.Option(..., "--bootstrap-name", help="Bootstrap template name"),
    replicas: int = typer.Option(1, "--replicas", "-r", help="Initial replica count"),
    version: str = typer.Option("v1.29.0", "--version", help="Kubernetes version"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace"),
) -> None:
    """Create a MachineDeployment from existing templates."""
    _run(
        "capi_create_machinedeployment",
        name=name,
        namespace=namespace,
        cluster_name=cluster,
        replicas=replicas,
        infra_kind=infra_kind,
        infra_name=infra_name,
        bootstrap_kind=bootstrap_kind,
        bootstrap_name=bootstrap_name,
        version=version,
    )


@app.command("scale-machinedeployment")
def scale_machine_deployment(
    name: str = typer.Argument(..., help="MachineDeployment name"),
    replicas: int = typer.Option(..., "--replicas", "-r", help="Desired replica count"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace"),
) -> None:
    """Scale a MachineDeployment."""
    _run("capi_scale_machinedeployment", namespace=namespace, name=name, replicas=replicas)


@app.command("list-machinesets")
def list_machine_sets(
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace to list"),
    cluster: str | None = typer.Option(None, "--cluster", help="Only this cluster's sets"),
) -> None:
    """List MachineSets and the MachineDeployments that own them."""
    _run("capi_list_machinesets", namespace=namespace, cluster_name=cluster)


# Nodes


def _node_arguments(node: str | None, namespace: str | None, machine: str | None) -> dict:
    return {"node_name": node, "namespace": namespace, "machine_name": machine}


@app.command("node-status")
def node_status(
    node: str | None = typer.Option(None, "--node", help="Node name"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Machine namespace"),
    machine: str | None = typer.Option(None, "--machine", "-m", help="Machine bound to the node"),
) -> None:
    """Show a node, addressed by name or by its machine."""
    _run("capi_node_status", **_node_arguments(node, namespace, machine))


@app.command()
def cordon(
    node: str | None = typer.Option(None, "--node", help="Node name"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Machine namespace"),
    machine: str | None = typer.Option(None, "--machine", "-m", help="Machine bound to the node"),
) -> None:
    """Mark a node unschedulable."""
    _run("capi_cordon_node", **_node_arguments(node, namespace, machine))


@app.command()
def uncordon(
    node: str | None = typer.Option(None, "--node", help="Node name"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Machine namespace"),
    machine: str | None = typer.Option(None, "--machine", "-m", help="Machine bound to the node"),
) -> None:
    """Mark a node schedulable again."""
    _run("capi_uncordon_node", **_node_arguments(node, namespace, machine))


@app.command()
def drain(
    node: str | None = typer.Option(None, "--node", help="Node name"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Machine namespace"),
    machine: str | None = typer.Option(None, "--machine", "-m", help="Machine bound to the node"),
    ignore_daemonsets: bool = typer.Option(
        True, "--ignore-daemonsets/--no-ignore-daemonsets", help="Ignore DaemonSet pods"
    ),
    delete_local_data: bool = typer.Option(
        False, "--delete-local-data", help="Allow deleting pods with emptyDir data"
    ),
    force: bool = typer.Option(False, "--force", help="Evict unmanaged pods too"),
    grace_period: int = typer.Option(-1, "--grace-period", help="Pod grace period in seconds"),
) -> None:
    """
    Cordon a node ahead of maintenance.

    Pods are not evicted; the drain options are reported back unchanged.
    """
    _run(
        "capi_drain_node",
        **_node_arguments(node, namespace, machine),
        ignore_daemonsets=ignore_daemonsets,
        delete_local_data=delete_local_data,
        force=force,
        grace_period=grace_period,
    )


# Providers


@app.command()
def providers() -> None:
    """List supported infrastructure providers."""
    from capi_ops.providers import PROVIDER_CATALOGUE

    table = Table(title="Infrastructure Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("API Version")
    table.add_column("Description")
    for info in PROVIDER_CATALOGUE.values():
        table.add_row(info.provider.value, info.infrastructure_kind, info.api_version, info.description)
    console.print(table)


@app.command()
def provider(name: str = typer.Argument(..., help="aws, azure, gcp or vsphere")) -> None:
    """Show a provider's catalogue entry."""
    _run("capi_get_provider", provider=name)


if __name__ == "__main__":
    app()
