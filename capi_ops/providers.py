"""Infrastructure provider and control-plane kind classification."""

from enum import Enum

from pydantic import BaseModel

from capi_ops.models.resources import ControlPlaneKind
from capi_ops.store import ResourceKind


class Provider(str, Enum):
    """Infrastructure provider a cluster belongs to."""

    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    VSPHERE = "vsphere"
    UNKNOWN = "unknown"


# Exact, case-sensitive infrastructure kind -> provider
INFRASTRUCTURE_KINDS: dict[str, Provider] = {
    "AWSCluster": Provider.AWS,
    "AzureCluster": Provider.AZURE,
    "GCPCluster": Provider.GCP,
    "VSphereCluster": Provider.VSPHERE,
}


class ProviderInfo(BaseModel):
    """Catalogue entry for a supported infrastructure provider."""

    provider: Provider
    display_name: str
    api_version: str
    infrastructure_kind: str
    description: str


PROVIDER_CATALOGUE: dict[Provider, ProviderInfo] = {
    Provider.AWS: ProviderInfo(
        provider=Provider.AWS,
        display_name="AWS",
        api_version="infrastructure.cluster.x-k8s.io/v1beta2",
        infrastructure_kind="AWSCluster",
        description="Amazon Web Services infrastructure provider",
    ),
    Provider.AZURE: ProviderInfo(
        provider=Provider.AZURE,
        display_name="Azure",
        api_version="infrastructure.cluster.x-k8s.io/v1beta1",
        infrastructure_kind="AzureCluster",
        description="Microsoft Azure infrastructure provider",
    ),
    Provider.GCP: ProviderInfo(
        provider=Provider.GCP,
        display_name="GCP",
        api_version="infrastructure.cluster.x-k8s.io/v1beta1",
        infrastructure_kind="GCPCluster",
        description="Google Cloud Platform infrastructure provider",
    ),
    Provider.VSPHERE: ProviderInfo(
        provider=Provider.VSPHERE,
        display_name="vSphere",
        api_version="infrastructure.cluster.x-k8s.io/v1beta1",
        infrastructure_kind="VSphereCluster",
        description="VMware vSphere infrastructure provider",
    ),
}


def classify_provider(infrastructure_kind: str | None) -> Provider:
    """Map an infrastructure object kind to its provider.

    Missing or unmapped kinds yield Provider.UNKNOWN rather than an error;
    plenty of clusters carry no provider metadata.
    """
    if not infrastructure_kind:
        return Provider.UNKNOWN
    return INFRASTRUCTURE_KINDS.get(infrastructure_kind, Provider.UNKNOWN)


def provider_info(name: str) -> ProviderInfo | None:
    """Look up a catalogue entry by provider name (aws, azure, gcp, vsphere)."""
    try:
        provider = Provider(name)
    except ValueError:
        return None
    return PROVIDER_CATALOGUE.get(provider)


CONTROL_PLANE_RESOURCES: dict[ControlPlaneKind, ResourceKind] = {
    ControlPlaneKind.KUBEADM: ResourceKind.KUBEADM_CONTROL_PLANE,
}


def control_plane_resource(kind: str | None) -> ResourceKind | None:
    """Resource kind for a control-plane reference, or None if unmapped."""
    return CONTROL_PLANE_RESOURCES.get(ControlPlaneKind.from_kind(kind))
