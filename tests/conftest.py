"""
Pytest configuration and fixtures.
"""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from nfs_provisioner.cli.lib.ledger import ExportLedger


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing."""
    with patch("subprocess.run") as mock:
        yield mock


@pytest.fixture
def ledger():
    """A fresh export ledger with no Export_Id recovered yet."""
    return ExportLedger()


@pytest.fixture
def ganesha_config(temp_dir):
    """An existing, empty ganesha config file."""
    path = temp_dir / "vfs.conf"
    path.write_text("", encoding="utf-8")
    return path


@pytest.fixture
def exports_file(temp_dir):
    """An existing /etc/exports stand-in with one unrelated export."""
    path = temp_dir / "exports"
    path.write_text("/srv/other *(ro)\n", encoding="utf-8")
    return path


@pytest.fixture
def mock_transport():
    """An ExportTransport whose AddExport call succeeds."""
    transport = MagicMock()
    transport.add_export.return_value = None
    return transport
