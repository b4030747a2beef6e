"""Tests for cluster health evaluation and status."""

import pytest
from conftest import cluster_object, condition, control_plane_object, machine_object

from capi_ops.exceptions import NotFoundError, StoreError
from capi_ops.health import (
    evaluate_health,
    format_cluster_info,
    get_cluster_health,
    get_cluster_status,
)
from capi_ops.inventory import Inventory
from capi_ops.models.resources import Cluster, Machine
from capi_ops.store import InMemoryStore, ResourceKind


def machines(*ready_flags):
    return [
        Machine.from_object(machine_object(f"m{i}", ready=flag))
        for i, flag in enumerate(ready_flags)
    ]


def test_healthy_cluster():
    verdict = evaluate_health(Cluster.from_object(cluster_object()), machines(True, True))

    assert verdict.healthy
    assert verdict.control_plane_ready
    assert verdict.infra_ready
    assert verdict.workers_ready
    assert verdict.issues == []
    assert verdict.warnings == []


def test_one_machine_not_ready():
    """Two of three machines ready makes the cluster unhealthy."""
    verdict = evaluate_health(Cluster.from_object(cluster_object()), machines(True, False, True))

    assert not verdict.healthy
    assert not verdict.workers_ready
    assert verdict.issues == ["Only 2/3 machines are ready"]


def test_cluster_without_machines_is_unhealthy():
    verdict = evaluate_health(Cluster.from_object(cluster_object()), [])

    assert not verdict.healthy
    assert not verdict.workers_ready
    assert "Only 0/0 machines are ready" in verdict.issues


def test_issue_order():
    cluster = Cluster.from_object(
        cluster_object(
            control_plane_ready=False,
            infrastructure_ready=False,
            conditions=[condition("Ready", "False", "Error", "control plane unavailable")],
        )
    )

    verdict = evaluate_health(cluster, machines(False))

    assert verdict.issues == [
        "Control plane is not ready",
        "Infrastructure is not ready",
        "Only 0/1 machines are ready",
        "Ready: control plane unavailable",
    ]


def test_warning_condition_keeps_cluster_healthy():
    cluster = Cluster.from_object(
        cluster_object(
            conditions=[
                condition("Ready"),
                condition("MachinesReady", "False", "Warning", "1 machine updating"),
            ]
        )
    )

    verdict = evaluate_health(cluster, machines(True))

    assert verdict.healthy
    assert verdict.warnings == ["MachinesReady: 1 machine updating"]


def test_info_and_true_conditions_ignored():
    cluster = Cluster.from_object(
        cluster_object(
            conditions=[
                condition("Ready", "True", "Error", "stale"),
                condition("Upgrading", "False", "Info", "waiting"),
            ]
        )
    )

    verdict = evaluate_health(cluster, machines(True))

    assert verdict.healthy
    assert verdict.issues == []
    assert verdict.warnings == []


def test_unexpected_phase_is_a_warning():
    verdict = evaluate_health(Cluster.from_object(cluster_object(phase="Provisioning")), machines(True))

    assert verdict.healthy
    assert verdict.warnings == ["Cluster phase is 'Provisioning', expected 'Provisioned'"]


def test_get_cluster_health_reads_only_cluster_machines(store, ctx):
    store.add(ResourceKind.MACHINE, machine_object("other-md-0", cluster="other", ready=False))

    verdict = get_cluster_health(Inventory(store), ctx, "default", "web")

    assert verdict.healthy
    assert store.writes() == []


def test_get_cluster_health_missing_cluster(store, ctx):
    with pytest.raises(NotFoundError):
        get_cluster_health(Inventory(store), ctx, "default", "ghost")


class FailingMachineList(InMemoryStore):
    def list(self, kind, namespace, ctx, label_selector=None):
        if kind is ResourceKind.MACHINE:
            raise StoreError("connection refused")
        return super().list(kind, namespace, ctx, label_selector=label_selector)


def test_machine_list_failure_propagates(ctx):
    """A failed machine read is an error, not an empty machine list."""
    store = FailingMachineList([(ResourceKind.CLUSTER, cluster_object())])

    with pytest.raises(StoreError, match="failed to list machines"):
        get_cluster_health(Inventory(store), ctx, "default", "web")


def test_cluster_status(store, ctx):
    status = get_cluster_status(Inventory(store), ctx, "default", "web")

    assert status.name == "web"
    assert status.ready
    assert status.provider == "aws"
    assert status.version == "v1.29.0"
    assert status.total_machines == 2
    assert status.ready_machines == 2
    assert not status.paused


def test_cluster_status_counts_bound_machines(store, ctx):
    store.add(ResourceKind.MACHINE, machine_object("web-md-0-new", ready=False))

    status = get_cluster_status(Inventory(store), ctx, "default", "web")

    assert status.total_machines == 3
    assert status.ready_machines == 2


def test_format_cluster_info(store, ctx):
    text = format_cluster_info(get_cluster_status(Inventory(store), ctx, "default", "web"))

    assert "Cluster: default/web" in text
    assert "Provider: aws" in text
    assert "Machines: 2/2 ready" in text
    assert "Ready: True" in text


def test_cluster_status_reports_control_plane(store, ctx):
    status = get_cluster_status(Inventory(store), ctx, "default", "web")

    assert status.control_plane_status == "Ready"
    assert "Control Plane: Ready" in format_cluster_info(status)


def test_cluster_status_degraded_control_plane(ctx):
    control_plane = control_plane_object()
    control_plane["status"] = {"ready": False, "replicas": 3, "unavailableReplicas": 1}
    store = InMemoryStore(
        [(ResourceKind.CLUSTER, cluster_object()), (ResourceKind.KUBEADM_CONTROL_PLANE, control_plane)]
    )

    status = get_cluster_status(Inventory(store), ctx, "default", "web")

    assert status.control_plane_status == "Degraded (1 unavailable)"


def test_cluster_status_without_control_plane_object(ctx):
    store = InMemoryStore([(ResourceKind.CLUSTER, cluster_object())])

    status = get_cluster_status(Inventory(store), ctx, "default", "web")

    assert status.control_plane_status == ""
    assert status.version == ""
    assert "Control Plane:" not in format_cluster_info(status)
