"""
Volume service layer.
"""

import threading
from typing import Any, Dict, List, Optional

from nfs_provisioner.api.models import VolumeCreate
from nfs_provisioner.cli.lib.config import load_config
from nfs_provisioner.cli.lib.provisioner import Provisioner, VolumeRequest

_provisioner: Optional[Provisioner] = None
_provisioner_lock = threading.Lock()


def get_provisioner() -> Provisioner:
    """
    Return the process-wide provisioner, building it on first use.

    A single instance means a single ExportLedger, so every request shares
    the same lock and Export_Id counter.
    """
    global _provisioner
    with _provisioner_lock:
        if _provisioner is None:
            _provisioner = Provisioner.from_config(load_config())
        return _provisioner


def create_volume(volume_data: VolumeCreate) -> Dict[str, Any]:
    """
    Provision a volume.

    Args:
        volume_data: Volume creation data

    Returns:
        Dictionary with the volume and its PersistentVolume manifest
    """
    request = VolumeRequest(
        name=volume_data.name,
        capacity_bytes=volume_data.capacity_bytes,
        access_modes=list(volume_data.access_modes),
        reclaim_policy=volume_data.reclaim_policy,
        parameters=volume_data.parameters,
        selector=volume_data.selector,
    )
    volume = get_provisioner().provision(request)
    return {
        "volume": volume.to_dict(),
        "persistent_volume": volume.to_persistent_volume(request),
    }


def list_gid_ranges() -> List[Dict[str, int]]:
    """Supplemental group ranges resolved at startup."""
    return [{"min": rng.min, "max": rng.max} for rng in get_provisioner().ranges]


def get_server() -> str:
    """Server address new volumes would point at."""
    return get_provisioner().server_resolver.resolve()
