"""Validated inputs for create and upgrade operations."""

import re

from pydantic import BaseModel, Field, field_validator

from capi_ops.providers import PROVIDER_CATALOGUE

VERSION_PATTERN = re.compile(r"^v\d+\.\d+\.\d+([-+][0-9A-Za-z.+-]+)?$")
NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")

DEFAULT_KUBERNETES_VERSION = "v1.29.0"
POD_CIDR = "192.168.0.0/16"
SERVICE_CIDR = "10.96.0.0/12"


def validate_version(v: str) -> str:
    """Kubernetes versions look like v1.29.0."""
    if not VERSION_PATTERN.match(v):
        raise ValueError(f"version '{v}' must look like v1.29.0")
    return v


def validate_name(v: str) -> str:
    """Object names follow RFC 1123 subdomain rules."""
    if not v:
        raise ValueError("name cannot be empty")
    if len(v) > 253:
        raise ValueError("name cannot exceed 253 characters")
    if not NAME_PATTERN.match(v):
        raise ValueError(
            f"name '{v}' must consist of lower case alphanumeric characters, '-' or '.', "
            "and must start and end with an alphanumeric character"
        )
    return v


class CreateClusterRequest(BaseModel):
    """Parameters for creating a Cluster object."""

    name: str
    namespace: str
    provider: str
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION
    control_plane_count: int = Field(default=3, ge=1)
    worker_count: int = Field(default=3, ge=0)
    region: str | None = None
    instance_type: str | None = None

    @field_validator("name", "namespace")
    @classmethod
    def validate_names(cls, v: str) -> str:
        return validate_name(v)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Provider must be one of the catalogued infrastructure providers."""
        allowed = [p.value for p in PROVIDER_CATALOGUE]
        if v not in allowed:
            raise ValueError(f"provider must be one of {allowed}, got '{v}'")
        return v

    @field_validator("kubernetes_version")
    @classmethod
    def validate_kubernetes_version(cls, v: str) -> str:
        return validate_version(v)


class CreateMachineDeploymentRequest(BaseModel):
    """Parameters for creating a MachineDeployment."""

    name: str
    namespace: str
    cluster_name: str
    replicas: int = Field(default=1, ge=0)
    infra_kind: str
    infra_name: str
    infra_api_version: str = "infrastructure.cluster.x-k8s.io/v1beta1"
    bootstrap_kind: str
    bootstrap_name: str
    bootstrap_api_version: str = "bootstrap.cluster.x-k8s.io/v1beta1"
    version: str = DEFAULT_KUBERNETES_VERSION
    labels: dict[str, str] = Field(default_factory=dict)
    min_ready_seconds: int = Field(default=0, ge=0)

    @field_validator("name", "namespace", "cluster_name")
    @classmethod
    def validate_names(cls, v: str) -> str:
        return validate_name(v)

    @field_validator("infra_kind", "infra_name", "bootstrap_kind", "bootstrap_name")
    @classmethod
    def validate_refs(cls, v: str) -> str:
        if not v:
            raise ValueError("infrastructure and bootstrap references need a kind and a name")
        return v

    @field_validator("version")
    @classmethod
    def validate_template_version(cls, v: str) -> str:
        return validate_version(v)
