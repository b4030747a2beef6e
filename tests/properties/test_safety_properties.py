"""Property-based tests for safety-checked mutations.

Feature: capi-ops, Property: refused mutations have no side effects
"""

import pytest
from conftest import cluster_object, condition, machine_deployment_object, machine_object
from hypothesis import given
from hypothesis import strategies as st

from capi_ops.context import RequestContext
from capi_ops.exceptions import InvalidTargetError, MissingTargetError, UnsafeDeleteError
from capi_ops.models.resources import PAUSED_ANNOTATION
from capi_ops.operations import LifecycleOperations
from capi_ops.store import InMemoryStore, ResourceKind

names = st.from_regex(r"[a-z][a-z0-9-]{0,20}[a-z0-9]", fullmatch=True)


def cluster_store(name="web", namespace="default", ready=True):
    return InMemoryStore(
        [
            (
                ResourceKind.CLUSTER,
                cluster_object(
                    name,
                    namespace,
                    conditions=[condition("Ready", "True" if ready else "False")],
                ),
            ),
            (ResourceKind.MACHINE_DEPLOYMENT, machine_deployment_object(f"{name}-md-0", namespace, name)),
        ]
    )


@given(name=names, namespace=names)
def test_property_pause_is_idempotent(name, namespace):
    """
    Feature: capi-ops, Property: pause and resume are idempotent

    Pausing twice leaves the marker in place, resuming removes it, and
    resuming an unpaused cluster succeeds without a write.
    """
    store = cluster_store(name, namespace)
    ops = LifecycleOperations(store)
    ctx = RequestContext()

    ops.pause_cluster(ctx, namespace, name)
    assert PAUSED_ANNOTATION in store.peek(ResourceKind.CLUSTER, namespace, name)["metadata"]["annotations"]
    ops.pause_cluster(ctx, namespace, name)
    assert PAUSED_ANNOTATION in store.peek(ResourceKind.CLUSTER, namespace, name)["metadata"]["annotations"]

    ops.resume_cluster(ctx, namespace, name)
    assert PAUSED_ANNOTATION not in store.peek(ResourceKind.CLUSTER, namespace, name)["metadata"]["annotations"]

    writes = len(store.writes())
    assert not ops.resume_cluster(ctx, namespace, name).changed
    assert len(store.writes()) == writes


@given(name=names, namespace=names)
def test_property_ready_cluster_delete_needs_force(name, namespace):
    """
    Feature: capi-ops, Property: deleting a Ready cluster requires force
    """
    store = cluster_store(name, namespace, ready=True)
    ops = LifecycleOperations(store)
    ctx = RequestContext()

    with pytest.raises(UnsafeDeleteError):
        ops.delete_cluster(ctx, namespace, name)
    assert store.writes() == []

    ops.delete_cluster(ctx, namespace, name, force=True)
    assert store.writes() == [("delete", ResourceKind.CLUSTER, namespace, name)]


@given(
    ready=st.booleans(),
    health_check=st.booleans(),
    control_plane=st.booleans(),
    force=st.booleans(),
)
def test_property_machine_delete_gate(ready, health_check, control_plane, force):
    """
    Feature: capi-ops, Property: healthy or control plane machines need force
    """
    conditions = [condition("Ready", "True" if ready else "False")]
    if health_check:
        conditions.append(condition("HealthCheckSucceeded"))
    store = InMemoryStore(
        [
            (
                ResourceKind.MACHINE,
                machine_object("m1", control_plane=control_plane, conditions=conditions),
            )
        ]
    )
    ops = LifecycleOperations(store)
    guarded = ready or health_check or control_plane

    if guarded and not force:
        with pytest.raises(UnsafeDeleteError):
            ops.delete_machine(RequestContext(), "default", "m1", force=force)
        assert store.writes() == []
    else:
        ops.delete_machine(RequestContext(), "default", "m1", force=force)
        assert store.writes() == [("delete", ResourceKind.MACHINE, "default", "m1")]


@given(replicas=st.integers(min_value=0, max_value=100), machine_deployment=st.sampled_from(["", None]))
def test_property_workers_need_machine_deployment(replicas, machine_deployment):
    """
    Feature: capi-ops, Property: scale targets are validated before any store call
    """
    store = cluster_store()

    with pytest.raises(MissingTargetError):
        LifecycleOperations(store).scale_cluster(
            RequestContext(), "default", "web", "workers", replicas, machine_deployment
        )
    assert store.calls == []


@given(
    target=st.text(min_size=0, max_size=15).filter(lambda t: t not in ("controlplane", "workers")),
    replicas=st.integers(min_value=0, max_value=100),
)
def test_property_unknown_target_rejected(target, replicas):
    store = cluster_store()

    with pytest.raises(InvalidTargetError):
        LifecycleOperations(store).scale_cluster(
            RequestContext(), "default", "web", target, replicas, "web-md-0"
        )
    assert store.calls == []


@given(replicas=st.integers(min_value=0, max_value=100))
def test_property_scale_reports_previous_replicas(replicas):
    store = cluster_store()

    result = LifecycleOperations(store).scale_cluster(
        RequestContext(), "default", "web", "workers", replicas, "web-md-0"
    )

    assert result.previous_replicas == 3
    assert result.replicas == replicas
    assert store.peek(ResourceKind.MACHINE_DEPLOYMENT, "default", "web-md-0")["spec"]["replicas"] == replicas
