"""
Volume directory management functions.
"""

import logging
import os
import shutil

from nfs_provisioner.cli.lib.exceptions import InsufficientCapacity, VolumeFilesystemError

LOG = logging.getLogger(__name__)

# Others need execute permission to stat the directory, which kubelet does
# during unmount. Read/write access comes from the supplemental group.
VOLUME_DIR_MODE = 0o071


class VolumeAllocator:
    """Creates volume-backing directories under the export directory."""

    def __init__(self, export_dir: str):
        self.export_dir = export_dir

    def available_bytes(self) -> int:
        """
        Space available to unprivileged users in the export directory.

        Raises:
            VolumeFilesystemError: If statvfs fails
        """
        try:
            stat = os.statvfs(self.export_dir)
        except OSError as e:
            raise VolumeFilesystemError(path=self.export_dir, details=f"statvfs failed: {e}")
        return stat.f_bavail * stat.f_frsize

    def allocate(self, name: str, capacity_bytes: int) -> str:
        """
        Create the directory backing a volume.

        Args:
            name: Volume name, used as the directory name
            capacity_bytes: Requested capacity

        Returns:
            Path of the created directory

        Raises:
            VolumeFilesystemError: If the path exists or cannot be created
            InsufficientCapacity: If the export directory is too small
        """
        path = os.path.join(self.export_dir, name)
        if os.path.exists(path):
            raise VolumeFilesystemError(path=path, details="the path already exists")

        available = self.available_bytes()
        if capacity_bytes > available:
            raise InsufficientCapacity(available=available, requested=capacity_bytes)

        try:
            os.makedirs(path, mode=VOLUME_DIR_MODE)
        except OSError as e:
            raise VolumeFilesystemError(path=path, details=f"mkdir failed: {e}")

        # makedirs is subject to the umask
        try:
            os.chmod(path, VOLUME_DIR_MODE)
        except OSError as e:
            self.release(path)
            raise VolumeFilesystemError(path=path, details=f"chmod failed: {e}")

        return path

    def set_group(self, path: str, gid: int) -> None:
        """
        Change the group owner of a volume directory.

        Raises:
            VolumeFilesystemError: If chown fails
        """
        try:
            os.chown(path, -1, gid)
        except OSError as e:
            raise VolumeFilesystemError(path=path, details=f"chgrp {gid} failed: {e}")

    def release(self, path: str) -> None:
        """Remove a volume directory, logging instead of raising on failure."""
        # Fresh volume dirs are empty and unreadable by their owner
        try:
            os.rmdir(path)
            return
        except FileNotFoundError:
            return
        except OSError:
            pass

        try:
            shutil.rmtree(path)
        except OSError as e:
            LOG.error("Failed to remove %s during rollback: %s", path, e)
