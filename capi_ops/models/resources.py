"""Data models for Cluster API lifecycle objects and nodes.

Each model is an independent record parsed from the unstructured object the
store returns. Relationships are kept as string references (kind, namespace,
name) and resolved through store lookups, never as embedded objects.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
CONTROL_PLANE_LABEL = "cluster.x-k8s.io/control-plane"
MACHINE_DEPLOYMENT_NAME_LABEL = "cluster.x-k8s.io/deployment-name"
PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"
REMEDIATE_ANNOTATION = "cluster.x-k8s.io/remediate-machine"

READY_CONDITION = "Ready"
HEALTH_CHECK_SUCCEEDED_CONDITION = "HealthCheckSucceeded"


class ControlPlaneKind(str, Enum):
    """Control-plane provider kinds capi-ops knows how to drive."""

    KUBEADM = "KubeadmControlPlane"
    UNKNOWN = "unknown"

    @classmethod
    def from_kind(cls, kind: str | None) -> "ControlPlaneKind":
        for member in cls:
            if member is not cls.UNKNOWN and member.value == kind:
                return member
        return cls.UNKNOWN


def dig(obj: dict | None, *path: str, default: Any = None) -> Any:
    """Walk nested dicts, returning default when any key is missing."""
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return default if current is None else current


class ObjectReference(BaseModel):
    """Reference to another object by kind and name."""

    kind: str = ""
    name: str = ""
    namespace: str | None = None
    api_version: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "ObjectReference | None":
        if not data:
            return None
        return cls(
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            namespace=data.get("namespace"),
            api_version=data.get("apiVersion"),
        )

    def to_dict(self) -> dict:
        result = {"kind": self.kind, "name": self.name}
        if self.namespace:
            result["namespace"] = self.namespace
        if self.api_version:
            result["apiVersion"] = self.api_version
        return result

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


class NodeReference(BaseModel):
    """The node a machine is bound to."""

    name: str
    uid: str = ""


class Condition(BaseModel):
    """A typed status entry on a lifecycle object."""

    type: str
    status: str = "Unknown"
    severity: str = ""
    reason: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Condition":
        return cls(
            type=data.get("type", ""),
            status=data.get("status", "Unknown"),
            severity=data.get("severity") or "",
            reason=data.get("reason") or "",
            message=data.get("message") or "",
        )

    @property
    def is_true(self) -> bool:
        return self.status == "True"


class Address(BaseModel):
    """Machine or node address."""

    type: str
    address: str


def _conditions(obj: dict) -> list[Condition]:
    return [Condition.from_dict(c) for c in dig(obj, "status", "conditions", default=[])]


def _addresses(obj: dict) -> list[Address]:
    return [
        Address(type=a.get("type", ""), address=a.get("address", ""))
        for a in dig(obj, "status", "addresses", default=[])
    ]


def has_true_condition(conditions: list[Condition], condition_type: str) -> bool:
    """True if a condition of the given type has status True."""
    return any(c.type == condition_type and c.is_true for c in conditions)


class Cluster(BaseModel):
    """Cluster API Cluster."""

    name: str
    namespace: str
    phase: str = ""
    control_plane_ready: bool = False
    infrastructure_ready: bool = False
    conditions: list[Condition] = Field(default_factory=list)
    version: str | None = None
    infrastructure_ref: ObjectReference | None = None
    control_plane_ref: ObjectReference | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    creation_timestamp: str | None = None

    @property
    def ready(self) -> bool:
        """Ready aggregate condition."""
        return has_true_condition(self.conditions, READY_CONDITION)

    @property
    def paused(self) -> bool:
        return PAUSED_ANNOTATION in self.annotations

    @classmethod
    def from_object(cls, obj: dict) -> "Cluster":
        return cls(
            name=dig(obj, "metadata", "name", default=""),
            namespace=dig(obj, "metadata", "namespace", default=""),
            phase=dig(obj, "status", "phase", default=""),
            control_plane_ready=bool(dig(obj, "status", "controlPlaneReady", default=False)),
            infrastructure_ready=bool(dig(obj, "status", "infrastructureReady", default=False)),
            conditions=_conditions(obj),
            version=dig(obj, "spec", "topology", "version"),
            infrastructure_ref=ObjectReference.from_dict(dig(obj, "spec", "infrastructureRef")),
            control_plane_ref=ObjectReference.from_dict(dig(obj, "spec", "controlPlaneRef")),
            labels=dig(obj, "metadata", "labels", default={}),
            annotations=dig(obj, "metadata", "annotations", default={}),
            creation_timestamp=dig(obj, "metadata", "creationTimestamp"),
        )


class Machine(BaseModel):
    """Cluster API Machine."""

    name: str
    namespace: str
    cluster_name: str = ""
    phase: str = ""
    version: str | None = None
    provider_id: str | None = None
    node_ref: NodeReference | None = None
    bootstrap_ref: ObjectReference | None = None
    infrastructure_ref: ObjectReference | None = None
    conditions: list[Condition] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_refs: list[ObjectReference] = Field(default_factory=list)

    @property
    def ready(self) -> bool:
        """Derived readiness: a Ready condition with status True."""
        return has_true_condition(self.conditions, READY_CONDITION)

    @property
    def healthy(self) -> bool:
        """Ready or passing its machine health check."""
        return self.ready or has_true_condition(self.conditions, HEALTH_CHECK_SUCCEEDED_CONDITION)

    @property
    def is_control_plane(self) -> bool:
        """Role check: labelled as, or owned by, a control plane."""
        if CONTROL_PLANE_LABEL in self.labels:
            return True
        return any(
            ControlPlaneKind.from_kind(ref.kind) is not ControlPlaneKind.UNKNOWN
            for ref in self.owner_refs
        )

    @property
    def display_phase(self) -> str:
        if self.phase:
            return self.phase
        return "Running" if self.ready else "Unknown"

    @classmethod
    def from_object(cls, obj: dict) -> "Machine":
        node_ref = dig(obj, "status", "nodeRef")
        return cls(
            name=dig(obj, "metadata", "name", default=""),
            namespace=dig(obj, "metadata", "namespace", default=""),
            cluster_name=dig(obj, "spec", "clusterName", default=""),
            phase=dig(obj, "status", "phase", default=""),
            version=dig(obj, "spec", "version"),
            provider_id=dig(obj, "spec", "providerID"),
            node_ref=(
                NodeReference(name=node_ref["name"], uid=node_ref.get("uid", ""))
                if node_ref and node_ref.get("name")
                else None
            ),
            bootstrap_ref=ObjectReference.from_dict(dig(obj, "spec", "bootstrap", "configRef")),
            infrastructure_ref=ObjectReference.from_dict(dig(obj, "spec", "infrastructureRef")),
            conditions=_conditions(obj),
            addresses=_addresses(obj),
            labels=dig(obj, "metadata", "labels", default={}),
            annotations=dig(obj, "metadata", "annotations", default={}),
            owner_refs=[
                ObjectReference.from_dict(ref)
                for ref in dig(obj, "metadata", "ownerReferences", default=[])
            ],
        )


class MachineTemplate(BaseModel):
    """Machine template embedded in replica controllers."""

    version: str | None = None
    infrastructure_ref: ObjectReference | None = None
    bootstrap_ref: ObjectReference | None = None


class ReplicaStatus(BaseModel):
    """Observed replica counts."""

    replicas: int = 0
    ready: int = 0
    updated: int = 0
    available: int = 0

    @classmethod
    def from_object(cls, obj: dict) -> "ReplicaStatus":
        return cls(
            replicas=dig(obj, "status", "replicas", default=0),
            ready=dig(obj, "status", "readyReplicas", default=0),
            updated=dig(obj, "status", "updatedReplicas", default=0),
            available=dig(obj, "status", "availableReplicas", default=0),
        )


class MachineDeployment(BaseModel):
    """Cluster API MachineDeployment."""

    name: str
    namespace: str
    cluster_name: str = ""
    replicas: int | None = None
    phase: str = ""
    status: ReplicaStatus = Field(default_factory=ReplicaStatus)
    template: MachineTemplate = Field(default_factory=MachineTemplate)
    owner_refs: list[ObjectReference] = Field(default_factory=list)

    @classmethod
    def from_object(cls, obj: dict) -> "MachineDeployment":
        template_spec = dig(obj, "spec", "template", "spec", default={})
        return cls(
            name=dig(obj, "metadata", "name", default=""),
            namespace=dig(obj, "metadata", "namespace", default=""),
            cluster_name=dig(obj, "spec", "clusterName", default=""),
            replicas=dig(obj, "spec", "replicas"),
            phase=dig(obj, "status", "phase", default=""),
            status=ReplicaStatus.from_object(obj),
            template=MachineTemplate(
                version=template_spec.get("version"),
                infrastructure_ref=ObjectReference.from_dict(template_spec.get("infrastructureRef")),
                bootstrap_ref=ObjectReference.from_dict(dig(template_spec, "bootstrap", "configRef")),
            ),
            owner_refs=[
                ObjectReference.from_dict(ref)
                for ref in dig(obj, "metadata", "ownerReferences", default=[])
            ],
        )


class MachineSet(MachineDeployment):
    """Cluster API MachineSet, usually owned by a MachineDeployment."""

    @property
    def machine_deployment(self) -> str | None:
        """Name of the owning MachineDeployment, if any."""
        for ref in self.owner_refs:
            if ref.kind == "MachineDeployment":
                return ref.name
        return None


class ControlPlane(BaseModel):
    """Control-plane provider object (KubeadmControlPlane)."""

    kind: str
    name: str
    namespace: str
    replicas: int | None = None
    version: str = ""
    ready: bool = False
    status_replicas: int = 0
    ready_replicas: int = 0
    unavailable_replicas: int = 0

    @property
    def display_status(self) -> str:
        if self.ready:
            return "Ready"
        if self.unavailable_replicas > 0:
            return f"Degraded ({self.unavailable_replicas} unavailable)"
        if self.status_replicas == 0:
            return "Not Initialized"
        return "Updating"

    @classmethod
    def from_object(cls, obj: dict) -> "ControlPlane":
        return cls(
            kind=obj.get("kind", ""),
            name=dig(obj, "metadata", "name", default=""),
            namespace=dig(obj, "metadata", "namespace", default=""),
            replicas=dig(obj, "spec", "replicas"),
            version=dig(obj, "spec", "version", default=""),
            ready=bool(dig(obj, "status", "ready", default=False)),
            status_replicas=dig(obj, "status", "replicas", default=0),
            ready_replicas=dig(obj, "status", "readyReplicas", default=0),
            unavailable_replicas=dig(obj, "status", "unavailableReplicas", default=0),
        )


class Taint(BaseModel):
    """Node taint."""

    key: str
    value: str = ""
    effect: str

    def __str__(self) -> str:
        if self.value:
            return f"{self.key}={self.value}:{self.effect}"
        return f"{self.key}:{self.effect}"


class Node(BaseModel):
    """Kubernetes Node snapshot."""

    name: str
    uid: str = ""
    unschedulable: bool = False
    taints: list[Taint] = Field(default_factory=list)
    capacity: dict[str, str] = Field(default_factory=dict)
    allocatable: dict[str, str] = Field(default_factory=dict)
    conditions: list[Condition] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    provider_id: str | None = None
    kubelet_version: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return has_true_condition(self.conditions, READY_CONDITION)

    @classmethod
    def from_object(cls, obj: dict) -> "Node":
        return cls(
            name=dig(obj, "metadata", "name", default=""),
            uid=dig(obj, "metadata", "uid", default=""),
            unschedulable=bool(dig(obj, "spec", "unschedulable", default=False)),
            taints=[
                Taint(key=t.get("key", ""), value=t.get("value") or "", effect=t.get("effect", ""))
                for t in dig(obj, "spec", "taints", default=[])
            ],
            capacity={k: str(v) for k, v in dig(obj, "status", "capacity", default={}).items()},
            allocatable={
                k: str(v) for k, v in dig(obj, "status", "allocatable", default={}).items()
            },
            conditions=_conditions(obj),
            addresses=_addresses(obj),
            provider_id=dig(obj, "spec", "providerID"),
            kubelet_version=dig(obj, "status", "nodeInfo", "kubeletVersion"),
            labels=dig(obj, "metadata", "labels", default={}),
        )
