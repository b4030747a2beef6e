"""Pytest configuration and shared fixtures."""

import base64

import pytest
from hypothesis import Verbosity, settings

from capi_ops.context import RequestContext
from capi_ops.store import InMemoryStore, ResourceKind

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


def condition(type_, status="True", severity=None, message=""):
    cond = {"type": type_, "status": status}
    if severity:
        cond["severity"] = severity
    if message:
        cond["message"] = message
    return cond


def cluster_object(
    name="web",
    namespace="default",
    phase="Provisioned",
    control_plane_ready=True,
    infrastructure_ready=True,
    conditions=None,
    annotations=None,
    infra_kind="AWSCluster",
    control_plane_kind="KubeadmControlPlane",
):
    obj = {
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "controlPlaneRef": {
                "apiVersion": "controlplane.cluster.x-k8s.io/v1beta1",
                "kind": control_plane_kind,
                "name": f"{name}-control-plane",
            },
            "infrastructureRef": {
                "apiVersion": "infrastructure.cluster.x-k8s.io/v1beta2",
                "kind": infra_kind,
                "name": name,
            },
        },
        "status": {
            "phase": phase,
            "controlPlaneReady": control_plane_ready,
            "infrastructureReady": infrastructure_ready,
            "conditions": conditions if conditions is not None else [condition("Ready")],
        },
    }
    if annotations:
        obj["metadata"]["annotations"] = annotations
    return obj


def machine_object(
    name="web-md-0-abc",
    namespace="default",
    cluster="web",
    ready=False,
    node_name=None,
    control_plane=False,
    conditions=None,
    phase="Running",
):
    labels = {"cluster.x-k8s.io/cluster-name": cluster}
    if control_plane:
        labels["cluster.x-k8s.io/control-plane"] = ""
    if conditions is None:
        conditions = [condition("Ready", "True" if ready else "False")]
    obj = {
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
        "spec": {"clusterName": cluster, "version": "v1.29.0"},
        "status": {"phase": phase, "conditions": conditions},
    }
    if node_name:
        obj["status"]["nodeRef"] = {"kind": "Node", "name": node_name}
    return obj


def machine_deployment_object(name="web-md-0", namespace="default", cluster="web", replicas=3):
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {"cluster.x-k8s.io/cluster-name": cluster},
        },
        "spec": {
            "clusterName": cluster,
            "replicas": replicas,
            "template": {"spec": {"clusterName": cluster, "version": "v1.29.0"}},
        },
        "status": {"replicas": replicas, "readyReplicas": replicas},
    }


def control_plane_object(cluster="web", namespace="default", replicas=3, version="v1.29.0"):
    return {
        "metadata": {
            "name": f"{cluster}-control-plane",
            "namespace": namespace,
            "labels": {"cluster.x-k8s.io/cluster-name": cluster},
        },
        "spec": {"replicas": replicas, "version": version},
        "status": {"ready": True, "replicas": replicas, "readyReplicas": replicas},
    }


def node_object(name="worker-1", unschedulable=False):
    obj = {
        "metadata": {"name": name},
        "spec": {"providerID": f"aws:///us-east-1a/{name}"},
        "status": {
            "capacity": {"cpu": "4", "memory": "16Gi"},
            "allocatable": {"cpu": "3800m", "memory": "15Gi"},
            "conditions": [condition("Ready")],
            "addresses": [{"type": "InternalIP", "address": "10.0.0.11"}],
            "nodeInfo": {"kubeletVersion": "v1.29.0"},
        },
    }
    if unschedulable:
        obj["spec"]["unschedulable"] = True
    return obj


def kubeconfig_secret(cluster="web", namespace="default", key="value", content="apiVersion: v1\n"):
    return {
        "metadata": {"name": f"{cluster}-kubeconfig", "namespace": namespace},
        "data": {key: base64.b64encode(content.encode()).decode()},
    }


@pytest.fixture
def ctx():
    """Request context without a deadline."""
    return RequestContext()


@pytest.fixture
def store():
    """A healthy cluster 'web' with one worker pool, two machines and their nodes."""
    return InMemoryStore(
        [
            (ResourceKind.CLUSTER, cluster_object()),
            (ResourceKind.KUBEADM_CONTROL_PLANE, control_plane_object()),
            (ResourceKind.MACHINE_DEPLOYMENT, machine_deployment_object()),
            (
                ResourceKind.MACHINE,
                machine_object(
                    "web-cp-1", ready=True, node_name="cp-1", control_plane=True
                ),
            ),
            (ResourceKind.MACHINE, machine_object("web-md-0-abc", ready=True, node_name="worker-1")),
            (ResourceKind.NODE, node_object("cp-1")),
            (ResourceKind.NODE, node_object("worker-1")),
            (ResourceKind.SECRET, kubeconfig_secret()),
        ]
    )
