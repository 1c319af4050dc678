"""
Volume provisioning.

Ties directory creation, gid assignment and export together and rolls back
whatever was created when a later step fails.
"""

import logging
import os
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nfs_provisioner.cli.lib.backends import BackendKind, ExportBackend, build_backend
from nfs_provisioner.cli.lib.config import ProvisionerConfig
from nfs_provisioner.cli.lib.gid_ranges import GidRange, GidRangeResolver, pick_gid
from nfs_provisioner.cli.lib.kube import KubeClient
from nfs_provisioner.cli.lib.server import ServerResolver
from nfs_provisioner.cli.lib.validators import validate_volume_request
from nfs_provisioner.cli.lib.volume import VolumeAllocator

LOG = logging.getLogger(__name__)

# PersistentVolume annotation holding the supplemental gid of the volume
VOLUME_GID_ANNOTATION = "pv.beta.kubernetes.io/gid"

# Annotations needed later to undo the export
ANN_EXPORT_BLOCK = "EXPORT_block"
ANN_EXPORT_ID = "Export_Id"
ANN_EXPORTS_LINE = "etcexports_line"

ANN_CREATED_BY = "kubernetes.io/createdby"
CREATED_BY = "nfs-dynamic-provisioner"


@dataclass
class VolumeRequest:
    name: str
    capacity_bytes: int
    access_modes: List[str] = field(default_factory=lambda: ["ReadWriteMany"])
    reclaim_policy: str = "Delete"
    parameters: Optional[Dict[str, str]] = None
    selector: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ProvisionedVolume:
    server: str
    path: str
    gid: int
    kind: BackendKind
    content: str
    export_id: int = 0

    def annotations(self) -> Dict[str, str]:
        """PersistentVolume annotations describing this volume's export."""
        annotations = {
            ANN_CREATED_BY: CREATED_BY,
            VOLUME_GID_ANNOTATION: str(self.gid),
        }
        if self.kind == BackendKind.GANESHA:
            annotations[ANN_EXPORT_BLOCK] = self.content
            annotations[ANN_EXPORT_ID] = str(self.export_id)
        else:
            annotations[ANN_EXPORTS_LINE] = self.content
        return annotations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server": self.server,
            "path": self.path,
            "gid": self.gid,
            "backend": self.kind.value,
            "content": self.content,
            "export_id": self.export_id,
        }

    def to_persistent_volume(self, request: VolumeRequest) -> Dict[str, Any]:
        """Render the v1 PersistentVolume for this volume."""
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolume",
            "metadata": {
                "name": request.name,
                "labels": {},
                "annotations": self.annotations(),
            },
            "spec": {
                "persistentVolumeReclaimPolicy": request.reclaim_policy,
                "accessModes": list(request.access_modes),
                "capacity": {"storage": str(request.capacity_bytes)},
                "nfs": {
                    "server": self.server,
                    "path": self.path,
                    "readOnly": False,
                },
            },
        }


class Provisioner:
    """Creates and exports NFS-backed volumes."""

    def __init__(
        self,
        allocator: VolumeAllocator,
        backend: ExportBackend,
        server_resolver: ServerResolver,
        ranges: List[GidRange],
        rng: Optional[random.Random] = None,
    ):
        self.allocator = allocator
        self.backend = backend
        self.server_resolver = server_resolver
        self.ranges = tuple(ranges)
        self.rng = rng

    @classmethod
    def from_config(cls, config: ProvisionerConfig, client=None) -> "Provisioner":
        """
        Wire a provisioner from configuration.

        Supplemental group ranges are resolved here, once.
        """
        client = client or KubeClient.from_config(config)
        namespace = os.environ.get(config.namespace_env, "")
        ranges = GidRangeResolver(client, config.annotations_file).resolve(namespace)
        return cls(
            allocator=VolumeAllocator(config.export_dir),
            backend=build_backend(config),
            server_resolver=ServerResolver(
                client,
                pod_ip_env=config.pod_ip_env,
                service_env=config.service_env,
                namespace_env=config.namespace_env,
            ),
            ranges=ranges,
        )

    def provision(self, request: VolumeRequest) -> ProvisionedVolume:
        """
        Create, chgrp and export the directory for a volume request.

        Either every step succeeds or the directory and export entry created
        so far are removed before the error propagates.

        Raises:
            ProvisionerException: Any provisioning failure
        """
        validate_volume_request(request.name, request.capacity_bytes, request.parameters, request.selector)

        server = self.server_resolver.resolve()
        path = self.allocator.allocate(request.name, request.capacity_bytes)

        try:
            gid = pick_gid(list(self.ranges), self.rng)
            self.allocator.set_group(path, gid)
            record = self.backend.add(path)
        except Exception as e:
            LOG.warning("Provisioning %s failed, removing %s: %s", request.name, path, e)
            self.allocator.release(path)
            raise

        LOG.info("Provisioned %s at %s:%s with gid %d", request.name, server, path, gid)
        return ProvisionedVolume(
            server=server,
            path=path,
            gid=gid,
            kind=record.kind,
            content=record.content,
            export_id=record.export_id,
        )
