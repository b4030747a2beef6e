"""Results returned by mutating operations."""

from pydantic import BaseModel, Field


class ScaleResult(BaseModel):
    """Replica change accepted by the store."""

    kind: str
    namespace: str
    name: str
    previous_replicas: int | None = None
    replicas: int

    @property
    def delta(self) -> int:
        return self.replicas - (self.previous_replicas or 0)


class MarkerResult(BaseModel):
    """Outcome of an idempotent annotation change."""

    namespace: str
    name: str
    changed: bool


class RemediationResult(BaseModel):
    """Remediation request written to a machine."""

    namespace: str
    name: str
    requested_at: str
    phase: str = ""
    node_name: str | None = None


class UpgradeResult(BaseModel):
    """Objects whose version was changed by an upgrade."""

    namespace: str
    name: str
    version: str
    control_plane: str | None = None
    machine_deployments: list[str] = Field(default_factory=list)


class NodeTransition(BaseModel):
    """Schedulability change on a node."""

    node_name: str
    unschedulable: bool
    changed: bool


class DrainOptions(BaseModel):
    """Options a caller asked drain to honour."""

    ignore_daemonsets: bool = True
    delete_local_data: bool = False
    force: bool = False
    grace_period: int = -1  # -1 keeps each pod's own grace period


class DrainResult(BaseModel):
    """Outcome of a drain request.

    Only the cordon is performed; pod eviction is left to the node
    maintenance tooling of the workload cluster.
    """

    node_name: str
    cordoned: bool = True
    already_cordoned: bool = False
    eviction_performed: bool = False
    options: DrainOptions = Field(default_factory=DrainOptions)
