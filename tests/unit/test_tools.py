"""Tests for the tool registry and its error reporting."""

from conftest import cluster_object

from capi_ops.store import InMemoryStore, ResourceKind
from capi_ops.tools import ToolResult, call_tool


def test_result_is_success_or_error():
    ok = ToolResult.success("done")
    failed = ToolResult.failure("UnsafeDeleteError", "refused")

    assert not ok.is_error and ok.error is None
    assert failed.is_error and failed.text is None


def test_unknown_tool(store, ctx):
    result = call_tool("capi_explode", {}, store, ctx)

    assert result.error_type == "UnknownToolError"


def test_missing_arguments(store, ctx):
    result = call_tool("capi_get_cluster", {"namespace": "default"}, store, ctx)

    assert result.error_type == "ValidationError"
    assert "name" in result.error
    assert store.calls == []


def test_list_clusters(store, ctx):
    result = call_tool("capi_list_clusters", {}, store, ctx)

    assert not result.is_error
    assert result.text.startswith("Found 1 clusters:")
    assert "Cluster: default/web" in result.text


def test_cluster_health(store, ctx):
    result = call_tool("capi_cluster_health", {"namespace": "default", "name": "web"}, store, ctx)

    assert "Healthy: True" in result.text


def test_delete_machine_refusal_is_typed(store, ctx):
    result = call_tool(
        "capi_delete_machine", {"namespace": "default", "name": "web-md-0-abc"}, store, ctx
    )

    assert result.error_type == "UnsafeDeleteError"
    assert "force=true" in result.error
    assert result.text is None


def test_delete_machine_forced(store, ctx):
    result = call_tool(
        "capi_delete_machine",
        {"namespace": "default", "name": "web-md-0-abc", "force": True},
        store,
        ctx,
    )

    assert not result.is_error
    assert store.peek(ResourceKind.MACHINE, "default", "web-md-0-abc") is None


def test_scale_cluster_missing_target(store, ctx):
    result = call_tool(
        "capi_scale_cluster",
        {"namespace": "default", "name": "web", "target": "workers", "replicas": 4},
        store,
        ctx,
    )

    assert result.error_type == "MissingTargetError"


def test_scale_cluster_workers(store, ctx):
    result = call_tool(
        "capi_scale_cluster",
        {
            "namespace": "default",
            "name": "web",
            "target": "workers",
            "replicas": 4,
            "machine_deployment": "web-md-0",
        },
        store,
        ctx,
    )

    assert result.text == "Scaled MachineDeployment default/web-md-0 from 3 to 4 replicas\n"


def test_drain_reports_no_eviction(store, ctx):
    result = call_tool(
        "capi_drain_node", {"node_name": "worker-1", "grace_period": 60}, store, ctx
    )

    assert "eviction was NOT performed" in result.text
    assert "grace-period: 60" in result.text


def test_node_addressing_error(store, ctx):
    result = call_tool("capi_cordon_node", {"namespace": "default"}, store, ctx)

    assert result.error_type == "InvalidAddressingError"


def test_create_cluster_unknown_provider(store, ctx):
    result = call_tool(
        "capi_create_cluster",
        {"name": "edge", "namespace": "default", "provider": "openstack"},
        store,
        ctx,
    )

    assert result.error_type == "ValidationError"
    assert store.writes() == []


def test_get_kubeconfig(store, ctx):
    result = call_tool("capi_get_kubeconfig", {"namespace": "default", "name": "web"}, store, ctx)

    assert result.text == "apiVersion: v1\n"


def test_not_found_is_reported(store, ctx):
    result = call_tool("capi_get_machine", {"namespace": "default", "name": "ghost"}, store, ctx)

    assert result.error_type == "NotFoundError"


def test_providers(store, ctx):
    listing = call_tool("capi_list_infrastructure_providers", {}, store, ctx)
    aws = call_tool("capi_get_provider", {"provider": "aws"}, store, ctx)
    unknown = call_tool("capi_get_provider", {"provider": "openstack"}, store, ctx)

    assert "vsphere" in listing.text
    assert "infrastructure.cluster.x-k8s.io/v1beta2" in aws.text
    assert unknown.error_type == "ValidationError"


def test_list_machinesets_shows_owner(store, ctx):
    store.add(
        ResourceKind.MACHINE_SET,
        {
            "metadata": {
                "name": "web-md-0-7f9c",
                "namespace": "default",
                "labels": {"cluster.x-k8s.io/cluster-name": "web"},
                "ownerReferences": [{"kind": "MachineDeployment", "name": "web-md-0"}],
            },
            "spec": {"clusterName": "web", "replicas": 3},
        },
    )

    result = call_tool(
        "capi_list_machinesets", {"namespace": "default", "cluster_name": "web"}, store, ctx
    )

    assert "deployment=web-md-0" in result.text


class ClusterDeletedAfterList(InMemoryStore):
    """Deletes cluster 'b' as soon as the clusters have been listed."""

    def list(self, kind, namespace, ctx, label_selector=None):
        items = super().list(kind, namespace, ctx, label_selector=label_selector)
        if kind is ResourceKind.CLUSTER:
            self._objects.pop(self._key(kind, "default", "b"), None)
        return items


def test_list_clusters_uses_listed_snapshots(ctx):
    store = ClusterDeletedAfterList(
        [(ResourceKind.CLUSTER, cluster_object("a")), (ResourceKind.CLUSTER, cluster_object("b"))]
    )

    result = call_tool("capi_list_clusters", {"namespace": "default"}, store, ctx)

    assert not result.is_error
    assert result.text.startswith("Found 2 clusters:")
    assert "Cluster: default/b" in result.text
    assert not [c for c in store.calls if c[0] == "get" and c[1] is ResourceKind.CLUSTER]


def test_cluster_status_shows_control_plane(store, ctx):
    result = call_tool("capi_cluster_status", {"namespace": "default", "name": "web"}, store, ctx)

    assert "Control Plane: Ready" in result.text


def test_get_machine_deployment(store, ctx):
    result = call_tool(
        "capi_get_machinedeployment", {"namespace": "default", "name": "web-md-0"}, store, ctx
    )

    assert result.text.startswith("MachineDeployment: default/web-md-0\n")
    assert "Cluster: web" in result.text
    assert "Replicas: 3" in result.text
    assert "Version: v1.29.0" in result.text


def test_get_machine_deployment_not_found(store, ctx):
    result = call_tool(
        "capi_get_machinedeployment", {"namespace": "default", "name": "web-md-9"}, store, ctx
    )

    assert result.error_type == "NotFoundError"


def test_create_cluster_marks_sizing_informational(store, ctx):
    result = call_tool(
        "capi_create_cluster",
        {"name": "edge", "namespace": "default", "provider": "aws", "worker_count": 5},
        store,
        ctx,
    )

    assert "informational only" in result.text
    assert "  Worker Nodes: 5" in result.text
    created = store.peek(ResourceKind.CLUSTER, "default", "edge")
    assert set(created["spec"]) == {"clusterNetwork", "controlPlaneRef", "infrastructureRef"}
