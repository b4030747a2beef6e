"""Data models for Cluster API objects and derived status."""

from capi_ops.models.health import ClusterStatus, HealthVerdict
from capi_ops.models.resources import (
    Address,
    Cluster,
    Condition,
    ControlPlane,
    ControlPlaneKind,
    Machine,
    MachineDeployment,
    MachineSet,
    Node,
    NodeReference,
    ObjectReference,
    Taint,
)

__all__ = [
    "Address",
    "Cluster",
    "ClusterStatus",
    "Condition",
    "ControlPlane",
    "ControlPlaneKind",
    "HealthVerdict",
    "Machine",
    "MachineDeployment",
    "MachineSet",
    "Node",
    "NodeReference",
    "ObjectReference",
    "Taint",
]
