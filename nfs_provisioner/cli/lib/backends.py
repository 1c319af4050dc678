"""
NFS export backends.

Two ways of exporting a volume directory are supported:

- the kernel NFS server: one line appended to /etc/exports, then `exportfs -r`
- NFS-Ganesha: one EXPORT block appended to the ganesha config, then an
  AddExport call on ganesha's D-Bus export manager

Both append through the shared ExportLedger and remove what they appended if
activation fails.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from jinja2 import Template

from nfs_provisioner.cli.lib.config import ProvisionerConfig
from nfs_provisioner.cli.lib.exceptions import ExportBackendError, ExportConfigError
from nfs_provisioner.cli.lib.ledger import ExportLedger

LOG = logging.getLogger(__name__)

GANESHA_DBUS_DEST = "org.ganesha.nfsd"
GANESHA_EXPORT_MGR_PATH = "/org/ganesha/nfsd/ExportMgr"
GANESHA_ADD_EXPORT_METHOD = "org.ganesha.nfsd.exportmgr.AddExport"

# Template for one EXPORT block in the ganesha config
EXPORT_BLOCK_TEMPLATE = (
    "\nEXPORT\n{\n"
    "\tExport_Id = {{ export_id }};\n"
    "\tPath = {{ path }};\n"
    "\tPseudo = {{ path }};\n"
    "\tAccess_Type = RW;\n"
    "\tSquash = root_id_squash;\n"
    "\tSecType = sys;\n"
    "\tFilesystem_id = {{ export_id }}.{{ export_id }};\n"
    "\tFSAL {\n\t\tName = VFS;\n\t}\n"
    "}\n"
)

KERNEL_EXPORT_TEMPLATE = "\n{{ path }} *(rw,insecure,root_squash)\n"


class BackendKind(str, Enum):
    """Export backend values."""

    KERNEL = "kernel"
    GANESHA = "ganesha"


@dataclass(frozen=True)
class ExportRecord:
    """What an export backend added for one volume."""

    kind: BackendKind
    content: str
    export_id: int = 0


def render_export_block(export_id: int, path: str) -> str:
    """Render the ganesha EXPORT block for a directory."""
    return Template(EXPORT_BLOCK_TEMPLATE, keep_trailing_newline=True).render(export_id=export_id, path=path)


def render_kernel_line(path: str) -> str:
    """Render the /etc/exports line for a directory."""
    return Template(KERNEL_EXPORT_TEMPLATE, keep_trailing_newline=True).render(path=path)


class ExportTransport(ABC):
    """Channel used to tell a running ganesha about a new export."""

    @abstractmethod
    def add_export(self, config_path: str, expression: str) -> None:
        """
        Ask ganesha to load the export(s) matching expression from config_path.

        Raises:
            RuntimeError: If the call fails
        """


class DBusSendTransport(ExportTransport):
    """Calls ganesha's ExportMgr over the system bus with dbus-send."""

    def __init__(self, dbus_send: str = "dbus-send"):
        self.dbus_send = dbus_send

    def add_export(self, config_path: str, expression: str) -> None:
        cmd = [
            self.dbus_send,
            "--system",
            "--print-reply",
            f"--dest={GANESHA_DBUS_DEST}",
            GANESHA_EXPORT_MGR_PATH,
            GANESHA_ADD_EXPORT_METHOD,
            f"string:{config_path}",
            f"string:{expression}",
        ]
        LOG.debug("Calling %s %s", GANESHA_ADD_EXPORT_METHOD, expression)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False
            )
        except OSError as e:
            raise RuntimeError(f"Failed to run {self.dbus_send}: {e}")

        if result.returncode != 0:
            raise RuntimeError(f"Failed to call {GANESHA_ADD_EXPORT_METHOD}: {result.stderr}")


class ExportBackend(ABC):
    """Adds one export entry for a volume directory."""

    kind: BackendKind

    def __init__(self, ledger: ExportLedger):
        self.ledger = ledger

    @property
    @abstractmethod
    def config_path(self) -> str:
        """File the backend appends its export entries to."""

    @abstractmethod
    def add(self, path: str) -> ExportRecord:
        """
        Export a directory.

        Args:
            path: Directory to export; must already exist

        Returns:
            The record of what was added

        Raises:
            ExportConfigError: If the config file could not be updated
            ExportBackendError: If activation failed (config already restored)
        """

    def _rollback(self, content: str) -> None:
        try:
            self.ledger.remove(self.config_path, content)
        except ExportConfigError as e:
            LOG.error("Failed to remove export entry from %s during rollback: %s", self.config_path, e)


class KernelBackend(ExportBackend):
    """Kernel NFS server: /etc/exports plus `exportfs -r`."""

    kind = BackendKind.KERNEL

    def __init__(self, ledger: ExportLedger, exports_file: str = "/etc/exports"):
        super().__init__(ledger)
        self.exports_file = exports_file

    @property
    def config_path(self) -> str:
        return self.exports_file

    def add(self, path: str) -> ExportRecord:
        line = render_kernel_line(path)
        self.ledger.append(self.exports_file, line)

        try:
            reexport()
        except RuntimeError as e:
            self._rollback(line)
            raise ExportBackendError(details=e)

        LOG.info("Exported %s via %s", path, self.exports_file)
        return ExportRecord(kind=self.kind, content=line)


class GaneshaBackend(ExportBackend):
    """NFS-Ganesha: EXPORT block in the config plus a D-Bus AddExport call."""

    kind = BackendKind.GANESHA

    def __init__(self, ledger: ExportLedger, ganesha_config: str, transport: Optional[ExportTransport] = None):
        super().__init__(ledger)
        self.ganesha_config = ganesha_config
        self.transport = transport or DBusSendTransport()

    @property
    def config_path(self) -> str:
        return self.ganesha_config

    def add(self, path: str) -> ExportRecord:
        export_id, block = self.ledger.append_with_export_id(
            self.ganesha_config, lambda i: render_export_block(i, path)
        )

        try:
            self.transport.add_export(self.ganesha_config, f"export(path = {path})")
        except RuntimeError as e:
            self._rollback(block)
            raise ExportBackendError(details=e)

        LOG.info("Exported %s via ganesha with Export_Id %d", path, export_id)
        return ExportRecord(kind=self.kind, content=block, export_id=export_id)


def reexport() -> None:
    """
    Re-export all directories in /etc/exports.

    Raises:
        RuntimeError: If exportfs fails
    """
    try:
        result = subprocess.run(
            ["exportfs", "-r"],
            capture_output=True,
            text=True,
            check=False
        )
    except OSError as e:
        raise RuntimeError(f"exportfs -r failed: {e}")

    if result.returncode != 0:
        raise RuntimeError(f"exportfs -r failed: {result.stderr}")


def build_backend(
    config: ProvisionerConfig,
    ledger: Optional[ExportLedger] = None,
    transport: Optional[ExportTransport] = None,
) -> ExportBackend:
    """Select the export backend once from configuration."""
    ledger = ledger or ExportLedger()
    if config.use_ganesha:
        return GaneshaBackend(ledger, config.ganesha_config, transport)
    return KernelBackend(ledger, config.exports_file)
