"""
Export bookkeeping shared by the export backends.

All reads and writes of the export config files (/etc/exports or the ganesha
config) and the Export_Id counter go through one ExportLedger so that
concurrent provisioning requests never interleave their edits.
"""

import logging
import os
import re
import stat
import tempfile
import threading
from typing import Callable, Tuple

from nfs_provisioner.cli.lib.exceptions import ExportConfigError

LOG = logging.getLogger(__name__)

EXPORT_ID_PATTERN = re.compile(r"Export_Id = ([0-9]+);")


class ExportLedger:
    """Serializes export config mutation and Export_Id allocation.

    The Export_Id counter starts at zero. The first allocation scans the
    ganesha config for the highest Export_Id already in use and continues
    from there, so ids stay unique across restarts.

    The scan is a plain regex over the file text: commented-out or malformed
    EXPORT blocks are counted too, and remove() is a literal substring
    replace rather than a structural edit.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last_export_id = 0

    @property
    def last_export_id(self) -> int:
        """Last Export_Id handed out (0 before the first allocation)."""
        return self._last_export_id

    def allocate_export_id(self, config_path: str) -> int:
        """
        Allocate the next Export_Id.

        Args:
            config_path: Ganesha config file used to recover the counter

        Returns:
            A new, unique Export_Id

        Raises:
            ExportConfigError: If the config cannot be read during recovery
        """
        with self._lock:
            return self._allocate_locked(config_path)

    def append(self, path: str, content: str) -> None:
        """
        Append content to an existing export config file and sync it to disk.

        Raises:
            ExportConfigError: If the file cannot be opened or written
        """
        with self._lock:
            self._append_locked(path, content)

    def remove(self, path: str, content: str) -> None:
        """
        Remove every literal occurrence of content from an export config file.

        Raises:
            ExportConfigError: If the file cannot be read or rewritten
        """
        with self._lock:
            try:
                with open(path, "r", encoding="utf-8", newline="") as f:
                    current = f.read()
                self._replace_locked(path, current.replace(content, ""))
            except OSError as e:
                raise ExportConfigError(path=path, details=e)

    def append_with_export_id(self, config_path: str, render: Callable[[int], str]) -> Tuple[int, str]:
        """
        Allocate an Export_Id and append the block rendered for it.

        Both steps happen under one lock acquisition, so a lower Export_Id
        always appears earlier in the file.

        Args:
            config_path: Ganesha config file
            render: Builds the config text for a given Export_Id

        Returns:
            Tuple of (export_id, content appended)
        """
        with self._lock:
            export_id = self._allocate_locked(config_path)
            content = render(export_id)
            self._append_locked(config_path, content)
            return export_id, content

    def _allocate_locked(self, config_path: str) -> int:
        if self._last_export_id == 0:
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    current = f.read()
            except OSError as e:
                raise ExportConfigError(path=config_path, details=e)
            self._last_export_id = max((int(i) for i in EXPORT_ID_PATTERN.findall(current)), default=0)
            LOG.info("Recovered Export_Id counter at %d from %s", self._last_export_id, config_path)
        self._last_export_id += 1
        return self._last_export_id

    def _replace_locked(self, path: str, content: str) -> None:
        # The old file stays intact until the new one is fully on disk
        mode = stat.S_IMODE(os.stat(path).st_mode)
        directory = os.path.dirname(os.path.abspath(path))
        tmp_fd, tmp_path = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", dir=directory)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        finally:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass

    def _append_locked(self, path: str, content: str) -> None:
        try:
            # No O_CREAT: the export config must already exist
            fd = os.open(path, os.O_WRONLY | os.O_APPEND)
            with os.fdopen(fd, "a", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise ExportConfigError(path=path, details=e)
