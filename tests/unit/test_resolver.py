"""Tests for node name resolution."""

import pytest
from conftest import machine_object

from capi_ops.exceptions import InvalidAddressingError, NodeNotBoundError, NotFoundError
from capi_ops.resolver import resolve_node_name
from capi_ops.store import ResourceKind


def test_direct_node_name_wins(store, ctx):
    """A node name is used as-is, without reading anything."""
    name = resolve_node_name(
        store, ctx, node_name="worker-9", namespace="default", machine_name="web-cp-1"
    )

    assert name == "worker-9"
    assert store.calls == []


def test_resolve_through_machine(store, ctx):
    assert resolve_node_name(store, ctx, namespace="default", machine_name="web-md-0-abc") == "worker-1"


@pytest.mark.parametrize(
    "namespace,machine_name",
    [(None, None), ("default", None), (None, "web-md-0-abc"), ("", "")],
)
def test_incomplete_addressing_rejected_without_store_access(store, ctx, namespace, machine_name):
    with pytest.raises(InvalidAddressingError):
        resolve_node_name(store, ctx, namespace=namespace, machine_name=machine_name)

    assert store.calls == []


def test_machine_without_node(store, ctx):
    store.add(ResourceKind.MACHINE, machine_object("web-md-0-new", phase="Provisioning"))

    with pytest.raises(NodeNotBoundError) as exc_info:
        resolve_node_name(store, ctx, namespace="default", machine_name="web-md-0-new")

    assert "Provisioning" in exc_info.value.details


def test_missing_machine(store, ctx):
    with pytest.raises(NotFoundError, match="failed to resolve node"):
        resolve_node_name(store, ctx, namespace="default", machine_name="ghost")
