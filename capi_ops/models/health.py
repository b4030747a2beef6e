"""Derived, non-persisted views over cluster state."""

from pydantic import BaseModel, Field

from capi_ops.models.resources import Condition


class HealthVerdict(BaseModel):
    """Health of a cluster computed from a single read of its objects."""

    healthy: bool = True
    control_plane_ready: bool = False
    infra_ready: bool = False
    workers_ready: bool = False
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ClusterStatus(BaseModel):
    """Summary of a cluster for listings and status output."""

    name: str
    namespace: str
    phase: str = ""
    ready: bool = False
    control_plane_ready: bool = False
    infra_ready: bool = False
    version: str = ""
    control_plane_status: str = ""
    provider: str = "unknown"
    paused: bool = False
    total_machines: int = 0
    ready_machines: int = 0  # machines bound to a node
    conditions: list[Condition] = Field(default_factory=list)
