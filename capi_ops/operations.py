"""Safety-checked mutations of clusters, machines and replica controllers.

Every mutation re-reads its target and writes back the object at the
revision it was read at. Input validation and safety checks run before any
write, so a refused request has no side effects. Write conflicts are
reported, not retried; running the command again re-reads fresh state.
"""

import time
from enum import Enum

from capi_ops.context import RequestContext
from capi_ops.exceptions import (
    InvalidTargetError,
    MissingTargetError,
    StoreError,
    UnsafeDeleteError,
    UnsupportedOperationError,
    ValidationError,
)
from capi_ops.inventory import cluster_selector
from capi_ops.logging_config import get_logger
from capi_ops.models.requests import (
    POD_CIDR,
    SERVICE_CIDR,
    CreateClusterRequest,
    CreateMachineDeploymentRequest,
    validate_version,
)
from capi_ops.models.resources import (
    CLUSTER_NAME_LABEL,
    MACHINE_DEPLOYMENT_NAME_LABEL,
    PAUSED_ANNOTATION,
    REMEDIATE_ANNOTATION,
    Cluster,
    ControlPlaneKind,
    Machine,
    MachineDeployment,
    dig,
)
from capi_ops.models.results import MarkerResult, RemediationResult, ScaleResult, UpgradeResult
from capi_ops.providers import PROVIDER_CATALOGUE, Provider, control_plane_resource
from capi_ops.store import ResourceKind, ResourceStore

logger = get_logger(__name__)


class ScaleTarget(str, Enum):
    """What a cluster scale request resizes."""

    CONTROL_PLANE = "controlplane"
    WORKERS = "workers"


def _annotations(obj: dict) -> dict:
    metadata = obj.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    return metadata["annotations"]


def _labels(obj: dict) -> dict:
    metadata = obj.setdefault("metadata", {})
    if metadata.get("labels") is None:
        metadata["labels"] = {}
    return metadata["labels"]


def _check_replicas(replicas: int) -> None:
    if replicas < 0:
        raise ValidationError(f"replicas must be zero or more, got {replicas}")


class LifecycleOperations:
    """Mutating operations against the resource store."""

    def __init__(self, store: ResourceStore):
        self.store = store

    def _read(self, kind: ResourceKind, namespace: str, name: str, ctx: RequestContext, action: str):
        try:
            return self.store.get(kind, namespace, name, ctx)
        except StoreError as e:
            raise e.wrap(f"failed to {action}") from e

    def _write(self, kind: ResourceKind, obj: dict, ctx: RequestContext, action: str) -> dict:
        try:
            return self.store.update(kind, obj, ctx)
        except StoreError as e:
            logger.error(f"Failed to {action}: {e.message}")
            raise e.wrap(f"failed to {action}") from e

    # Deletion

    def delete_machine(
        self, ctx: RequestContext, namespace: str, name: str, force: bool = False
    ) -> Machine:
        """
        Delete a machine unless it is healthy or part of the control plane.

        Control-plane machines always need force, whatever their health:
        removing one outside the control-plane controller risks etcd quorum.

        Returns:
            The machine as it was read before deletion

        Raises:
            UnsafeDeleteError: If a safety check fails and force is not set
            NotFoundError: If the machine does not exist
        """
        machine = Machine.from_object(
            self._read(ResourceKind.MACHINE, namespace, name, ctx, "get machine")
        )

        if not force:
            if machine.healthy:
                logger.warning(f"Refusing to delete healthy machine {namespace}/{name}")
                raise UnsafeDeleteError(
                    f"Machine {name} is healthy, use force=true to delete anyway",
                    "Deleting a healthy machine removes capacity that is in use. "
                    "Re-run with force=true (--force) to override.",
                )
            if machine.is_control_plane:
                logger.warning(f"Refusing to delete control plane machine {namespace}/{name}")
                raise UnsafeDeleteError(
                    f"Cannot delete control plane machine {name} without force=true",
                    "Removing control plane members by hand can break etcd quorum. "
                    "Scale the control plane instead, or re-run with force=true (--force).",
                )

        try:
            self.store.delete(ResourceKind.MACHINE, namespace, name, ctx)
        except StoreError as e:
            raise e.wrap("failed to delete machine") from e

        logger.info(f"Deletion of machine {namespace}/{name} accepted (force={force})")
        return machine

    def delete_cluster(
        self, ctx: RequestContext, namespace: str, name: str, force: bool = False
    ) -> Cluster:
        """
        Delete a cluster unless its Ready condition is true.

        Raises:
            UnsafeDeleteError: If the cluster is Ready and force is not set
        """
        cluster = Cluster.from_object(
            self._read(ResourceKind.CLUSTER, namespace, name, ctx, "get cluster")
        )

        if not force and cluster.ready:
            logger.warning(f"Refusing to delete Ready cluster {namespace}/{name}")
            raise UnsafeDeleteError(
                f"Cluster {namespace}/{name} is Ready; use force=true to delete it",
                "The cluster appears healthy and operational. Back up important data, "
                "migrate workloads, confirm this is the right cluster, then re-run with "
                "force=true (--force).",
            )

        try:
            self.store.delete(ResourceKind.CLUSTER, namespace, name, ctx)
        except StoreError as e:
            raise e.wrap("failed to delete cluster") from e

        logger.info(f"Deletion of cluster {namespace}/{name} accepted (force={force})")
        return cluster

    # Scaling

    def scale_cluster(
        self,
        ctx: RequestContext,
        namespace: str,
        name: str,
        target: str,
        replicas: int,
        machine_deployment: str | None = None,
    ) -> ScaleResult:
        """
        Scale the control plane or one worker pool of a cluster.

        The target is validated before anything is read.

        Raises:
            InvalidTargetError: If target is not 'controlplane' or 'workers'
            MissingTargetError: If target is 'workers' and no machine deployment is named
        """
        try:
            scale_target = ScaleTarget(target)
        except ValueError:
            raise InvalidTargetError(
                f"invalid target: {target} (must be 'controlplane' or 'workers')"
            )
        if scale_target is ScaleTarget.WORKERS and not machine_deployment:
            raise MissingTargetError(
                "machineDeployment name is required when scaling workers",
                "Pass the MachineDeployment to resize, e.g. --machine-deployment web-md-0",
            )
        _check_replicas(replicas)

        if scale_target is ScaleTarget.CONTROL_PLANE:
            return self.scale_control_plane(ctx, namespace, name, replicas)
        return self.scale_machine_deployment(ctx, namespace, machine_deployment, replicas)

    def scale_control_plane(
        self, ctx: RequestContext, namespace: str, cluster_name: str, replicas: int
    ) -> ScaleResult:
        """Set the replica count of the control-plane object a cluster references."""
        _check_replicas(replicas)
        cluster = Cluster.from_object(
            self._read(ResourceKind.CLUSTER, namespace, cluster_name, ctx, "get cluster")
        )
        kind, cp_namespace, cp_name = self._control_plane_target(cluster)

        obj = self._read(kind, cp_namespace, cp_name, ctx, "get control plane")
        previous = dig(obj, "spec", "replicas")
        obj.setdefault("spec", {})["replicas"] = replicas
        self._write(kind, obj, ctx, "scale control plane")

        logger.info(f"Scaled {kind.kind} {cp_namespace}/{cp_name} from {previous} to {replicas}")
        return ScaleResult(
            kind=kind.kind,
            namespace=cp_namespace,
            name=cp_name,
            previous_replicas=previous,
            replicas=replicas,
        )

    def scale_machine_deployment(
        self, ctx: RequestContext, namespace: str, name: str, replicas: int
    ) -> ScaleResult:
        """Set the desired replica count of a MachineDeployment."""
        _check_replicas(replicas)
        obj = self._read(
            ResourceKind.MACHINE_DEPLOYMENT, namespace, name, ctx, "get machine deployment"
        )
        previous = dig(obj, "spec", "replicas")
        obj.setdefault("spec", {})["replicas"] = replicas
        self._write(ResourceKind.MACHINE_DEPLOYMENT, obj, ctx, "scale machine deployment")

        logger.info(f"Scaled MachineDeployment {namespace}/{name} from {previous} to {replicas}")
        return ScaleResult(
            kind=ResourceKind.MACHINE_DEPLOYMENT.kind,
            namespace=namespace,
            name=name,
            previous_replicas=previous,
            replicas=replicas,
        )

    def _control_plane_target(self, cluster: Cluster) -> tuple[ResourceKind, str, str]:
        ref = cluster.control_plane_ref
        if ref is None:
            raise UnsupportedOperationError(
                f"Cluster {cluster.namespace}/{cluster.name} has no control plane reference"
            )
        kind = control_plane_resource(ref.kind)
        if kind is None:
            supported = [k.value for k in ControlPlaneKind if k is not ControlPlaneKind.UNKNOWN]
            raise UnsupportedOperationError(
                f"unsupported control plane type: {ref.kind}",
                f"Supported control plane kinds: {', '.join(supported)}",
            )
        return kind, ref.namespace or cluster.namespace, ref.name

    # Reconciliation markers

    def pause_cluster(self, ctx: RequestContext, namespace: str, name: str) -> MarkerResult:
        """Add the paused annotation; a no-op when already paused."""
        obj = self._read(ResourceKind.CLUSTER, namespace, name, ctx, "get cluster")
        annotations = _annotations(obj)
        if PAUSED_ANNOTATION in annotations:
            logger.debug(f"Cluster {namespace}/{name} is already paused")
            return MarkerResult(namespace=namespace, name=name, changed=False)

        annotations[PAUSED_ANNOTATION] = "true"
        self._write(ResourceKind.CLUSTER, obj, ctx, "pause cluster")
        logger.info(f"Paused reconciliation of cluster {namespace}/{name}")
        return MarkerResult(namespace=namespace, name=name, changed=True)

    def resume_cluster(self, ctx: RequestContext, namespace: str, name: str) -> MarkerResult:
        """Remove the paused annotation; a no-op when not paused."""
        obj = self._read(ResourceKind.CLUSTER, namespace, name, ctx, "get cluster")
        annotations = _annotations(obj)
        if PAUSED_ANNOTATION not in annotations:
            logger.debug(f"Cluster {namespace}/{name} is not paused")
            return MarkerResult(namespace=namespace, name=name, changed=False)

        del annotations[PAUSED_ANNOTATION]
        self._write(ResourceKind.CLUSTER, obj, ctx, "resume cluster")
        logger.info(f"Resumed reconciliation of cluster {namespace}/{name}")
        return MarkerResult(namespace=namespace, name=name, changed=True)

    def remediate_machine(
        self, ctx: RequestContext, namespace: str, name: str
    ) -> RemediationResult:
        """
        Mark a machine for remediation.

        Writes a timestamp annotation for the machine health check controller
        to act on. Success means the marker was written, not that the machine
        was remediated.
        """
        obj = self._read(ResourceKind.MACHINE, namespace, name, ctx, "get machine")
        machine = Machine.from_object(obj)

        requested_at = str(int(time.time()))
        _annotations(obj)[REMEDIATE_ANNOTATION] = requested_at
        self._write(
            ResourceKind.MACHINE, obj, ctx, "update machine with remediation annotation"
        )

        logger.info(f"Requested remediation of machine {namespace}/{name}")
        return RemediationResult(
            namespace=namespace,
            name=name,
            requested_at=requested_at,
            phase=machine.phase,
            node_name=machine.node_ref.name if machine.node_ref else None,
        )

    # Cluster changes

    def upgrade_cluster(
        self,
        ctx: RequestContext,
        namespace: str,
        name: str,
        version: str,
        upgrade_workers: bool = False,
    ) -> UpgradeResult:
        """
        Set a new Kubernetes version on the control plane and, optionally,
        on every MachineDeployment template of the cluster that declares one.
        """
        try:
            validate_version(version)
        except ValueError as e:
            raise ValidationError(str(e))

        cluster = Cluster.from_object(
            self._read(ResourceKind.CLUSTER, namespace, name, ctx, "get cluster")
        )
        result = UpgradeResult(namespace=namespace, name=name, version=version)

        if cluster.control_plane_ref is not None:
            kind, cp_namespace, cp_name = self._control_plane_target(cluster)
            obj = self._read(kind, cp_namespace, cp_name, ctx, "get control plane")
            obj.setdefault("spec", {})["version"] = version
            self._write(kind, obj, ctx, "update control plane version")
            result.control_plane = f"{kind.kind}/{cp_name}"
            logger.info(f"Set {kind.kind} {cp_namespace}/{cp_name} version to {version}")

        if upgrade_workers:
            try:
                deployments = self.store.list(
                    ResourceKind.MACHINE_DEPLOYMENT,
                    namespace,
                    ctx,
                    label_selector=cluster_selector(name),
                )
            except StoreError as e:
                raise e.wrap("failed to list machine deployments") from e

            for obj in deployments:
                template_spec = dig(obj, "spec", "template", "spec")
                if not template_spec or not template_spec.get("version"):
                    continue
                md_name = obj["metadata"]["name"]
                template_spec["version"] = version
                self._write(
                    ResourceKind.MACHINE_DEPLOYMENT,
                    obj,
                    ctx,
                    f"update machine deployment {md_name}",
                )
                result.machine_deployments.append(md_name)
                logger.info(f"Set MachineDeployment {namespace}/{md_name} version to {version}")

        return result

    def update_cluster_metadata(
        self,
        ctx: RequestContext,
        namespace: str,
        name: str,
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
    ) -> Cluster:
        """Merge labels and annotations into a cluster; empty values remove keys."""
        obj = self._read(ResourceKind.CLUSTER, namespace, name, ctx, "get cluster")

        for current, changes in ((_labels(obj), labels), (_annotations(obj), annotations)):
            for key, value in (changes or {}).items():
                if value == "":
                    current.pop(key, None)
                else:
                    current[key] = value

        updated = self._write(ResourceKind.CLUSTER, obj, ctx, "update cluster")
        logger.info(f"Updated metadata of cluster {namespace}/{name}")
        return Cluster.from_object(updated)

    # Creation

    def create_cluster(self, ctx: RequestContext, request: CreateClusterRequest) -> Cluster:
        """
        Create the Cluster object only.

        The infrastructure cluster, control plane and worker pools it refers
        to are expected to be created separately.
        """
        info = PROVIDER_CATALOGUE[Provider(request.provider)]
        obj = {
            "apiVersion": ResourceKind.CLUSTER.api_version,
            "kind": ResourceKind.CLUSTER.kind,
            "metadata": {
                "name": request.name,
                "namespace": request.namespace,
                "labels": {"cluster.x-k8s.io/provider": request.provider},
            },
            "spec": {
                "clusterNetwork": {
                    "pods": {"cidrBlocks": [POD_CIDR]},
                    "services": {"cidrBlocks": [SERVICE_CIDR]},
                },
                "controlPlaneRef": {
                    "apiVersion": ResourceKind.KUBEADM_CONTROL_PLANE.api_version,
                    "kind": ControlPlaneKind.KUBEADM.value,
                    "name": f"{request.name}-control-plane",
                },
                "infrastructureRef": {
                    "apiVersion": info.api_version,
                    "kind": info.infrastructure_kind,
                    "name": request.name,
                },
            },
        }
        try:
            created = self.store.create(ResourceKind.CLUSTER, obj, ctx)
        except StoreError as e:
            raise e.wrap("failed to create cluster") from e

        logger.info(f"Created cluster {request.namespace}/{request.name} ({request.provider})")
        return Cluster.from_object(created)

    def create_machine_deployment(
        self, ctx: RequestContext, request: CreateMachineDeploymentRequest
    ) -> MachineDeployment:
        """Create a MachineDeployment from existing infrastructure and bootstrap templates."""
        template_labels = {
            "machinedeployment": request.name,
            CLUSTER_NAME_LABEL: request.cluster_name,
            MACHINE_DEPLOYMENT_NAME_LABEL: request.name,
        }
        obj = {
            "apiVersion": ResourceKind.MACHINE_DEPLOYMENT.api_version,
            "kind": ResourceKind.MACHINE_DEPLOYMENT.kind,
            "metadata": {
                "name": request.name,
                "namespace": request.namespace,
                "labels": {CLUSTER_NAME_LABEL: request.cluster_name, **request.labels},
            },
            "spec": {
                "clusterName": request.cluster_name,
                "replicas": request.replicas,
                "minReadySeconds": request.min_ready_seconds,
                "selector": {"matchLabels": {"machinedeployment": request.name}},
                "template": {
                    "metadata": {"labels": template_labels},
                    "spec": {
                        "clusterName": request.cluster_name,
                        "version": request.version,
                        "infrastructureRef": {
                            "apiVersion": request.infra_api_version,
                            "kind": request.infra_kind,
                            "name": request.infra_name,
                        },
                        "bootstrap": {
                            "configRef": {
                                "apiVersion": request.bootstrap_api_version,
                                "kind": request.bootstrap_kind,
                                "name": request.bootstrap_name,
                            }
                        },
                    },
                },
            },
        }
        try:
            created = self.store.create(ResourceKind.MACHINE_DEPLOYMENT, obj, ctx)
        except StoreError as e:
            raise e.wrap("failed to create machine deployment") from e

        logger.info(f"Created MachineDeployment {request.namespace}/{request.name}")
        return MachineDeployment.from_object(created)
