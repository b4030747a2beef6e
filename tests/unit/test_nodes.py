"""Tests for node cordon, uncordon, drain and status."""

import pytest
from conftest import machine_object

from capi_ops.exceptions import InvalidAddressingError, NodeNotBoundError, NotFoundError
from capi_ops.models.results import DrainOptions
from capi_ops.nodes import NodeLifecycle
from capi_ops.store import ResourceKind


@pytest.fixture
def nodes(store):
    return NodeLifecycle(store)


def unschedulable(store, name):
    return store.peek(ResourceKind.NODE, None, name)["spec"].get("unschedulable", False)


def test_cordon_by_node_name(store, nodes, ctx):
    result = nodes.cordon(ctx, node_name="worker-1")

    assert result.changed
    assert result.unschedulable
    assert unschedulable(store, "worker-1")


def test_cordon_by_machine(store, nodes, ctx):
    result = nodes.cordon(ctx, namespace="default", machine_name="web-md-0-abc")

    assert result.node_name == "worker-1"
    assert unschedulable(store, "worker-1")


def test_cordon_is_idempotent(store, nodes, ctx):
    nodes.cordon(ctx, node_name="worker-1")
    writes = len(store.writes())

    result = nodes.cordon(ctx, node_name="worker-1")

    assert not result.changed
    assert unschedulable(store, "worker-1")
    assert len(store.writes()) == writes


def test_uncordon(store, nodes, ctx):
    nodes.cordon(ctx, node_name="worker-1")

    result = nodes.uncordon(ctx, node_name="worker-1")

    assert result.changed
    assert not unschedulable(store, "worker-1")


def test_uncordon_schedulable_node(store, nodes, ctx):
    assert not nodes.uncordon(ctx, node_name="worker-1").changed
    assert store.writes() == []


def test_drain_only_cordons(store, nodes, ctx):
    """Drain reports that pods were not evicted."""
    result = nodes.drain(ctx, node_name="worker-1")

    assert unschedulable(store, "worker-1")
    assert result.cordoned
    assert not result.already_cordoned
    assert not result.eviction_performed


def test_drain_echoes_options(nodes, ctx):
    options = DrainOptions(ignore_daemonsets=False, delete_local_data=True, force=True, grace_period=30)

    result = nodes.drain(ctx, namespace="default", machine_name="web-md-0-abc", options=options)

    assert result.node_name == "worker-1"
    assert result.options == options


def test_drain_cordoned_node(nodes, ctx):
    nodes.cordon(ctx, node_name="worker-1")

    assert nodes.drain(ctx, node_name="worker-1").already_cordoned


def test_status_is_read_only(store, nodes, ctx):
    node = nodes.status(ctx, namespace="default", machine_name="web-md-0-abc")

    assert node.name == "worker-1"
    assert node.ready
    assert node.capacity == {"cpu": "4", "memory": "16Gi"}
    assert node.allocatable["cpu"] == "3800m"
    assert node.kubelet_version == "v1.29.0"
    assert node.addresses[0].address == "10.0.0.11"
    assert store.writes() == []


def test_missing_addressing(store, nodes, ctx):
    with pytest.raises(InvalidAddressingError):
        nodes.cordon(ctx)

    assert store.calls == []


def test_unbound_machine(store, nodes, ctx):
    store.add(ResourceKind.MACHINE, machine_object("web-md-0-new", phase="Provisioning"))

    with pytest.raises(NodeNotBoundError):
        nodes.drain(ctx, namespace="default", machine_name="web-md-0-new")

    assert store.writes() == []


def test_missing_node(nodes, ctx):
    with pytest.raises(NotFoundError, match="failed to get node ghost"):
        nodes.cordon(ctx, node_name="ghost")
