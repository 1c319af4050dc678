"""
Integration tests for API endpoints.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from nfs_provisioner.api.main import app
from nfs_provisioner.cli.lib.exceptions import (
    ExportBackendError,
    InsufficientCapacity,
    InvalidVolumeRequest,
    ServerResolutionError,
)


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app, raise_server_exceptions=False)


class TestCreateVolume:
    """Tests for POST /v1/volumes."""

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.create_volume")
    def test_create_volume_success(self, mock_create, client):
        mock_create.return_value = {
            "volume": {
                "server": "10.1.2.3",
                "path": "/export/pvc-1",
                "gid": 1234,
                "backend": "ganesha",
                "content": "\nEXPORT\n{\n}\n",
                "export_id": 1,
            },
            "persistent_volume": {"kind": "PersistentVolume"},
        }

        response = client.post("/v1/volumes", json={"name": "pvc-1", "capacity_bytes": 1024})

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "ok"
        assert data["data"]["volume"]["gid"] == 1234
        volume_data = mock_create.call_args[0][0]
        assert volume_data.name == "pvc-1"
        assert volume_data.access_modes == ["ReadWriteMany"]

    @pytest.mark.integration
    def test_create_volume_invalid_name(self, client):
        response = client.post("/v1/volumes", json={"name": "../etc", "capacity_bytes": 1024})

        assert response.status_code == 422

    @pytest.mark.integration
    def test_create_volume_invalid_capacity(self, client):
        response = client.post("/v1/volumes", json={"name": "pvc-1", "capacity_bytes": 0})

        assert response.status_code == 422

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.create_volume")
    def test_create_volume_unsupported_parameters(self, mock_create, client):
        mock_create.side_effect = InvalidVolumeRequest(details="no StorageClass parameters are supported")

        response = client.post(
            "/v1/volumes", json={"name": "pvc-1", "capacity_bytes": 1024, "parameters": {"a": "b"}}
        )

        assert response.status_code == 400
        assert "parameters" in response.json()["detail"]

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.create_volume")
    def test_create_volume_no_space(self, mock_create, client):
        mock_create.side_effect = InsufficientCapacity(available=10, requested=1024)

        response = client.post("/v1/volumes", json={"name": "pvc-1", "capacity_bytes": 1024})

        assert response.status_code == 507

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.create_volume")
    def test_create_volume_export_fails(self, mock_create, client):
        mock_create.side_effect = ExportBackendError(details="exportfs -r failed")

        response = client.post("/v1/volumes", json={"name": "pvc-1", "capacity_bytes": 1024})

        assert response.status_code == 500
        assert "exportfs" in response.json()["detail"]

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.create_volume")
    def test_unexpected_error(self, mock_create, client):
        mock_create.side_effect = KeyError("boom")

        response = client.post("/v1/volumes", json={"name": "pvc-1", "capacity_bytes": 1024})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


class TestProvisionerSettings:
    """Tests for GET /v1/gid-ranges and GET /v1/server."""

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.list_gid_ranges")
    def test_list_gid_ranges(self, mock_list, client):
        mock_list.return_value = [{"min": 0, "max": 65533}]

        response = client.get("/v1/gid-ranges")

        assert response.status_code == 200
        assert response.json()["data"]["items"] == [{"min": 0, "max": 65533}]

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.get_server")
    def test_get_server(self, mock_server, client):
        mock_server.return_value = "172.30.0.10"

        response = client.get("/v1/server")

        assert response.status_code == 200
        assert response.json()["data"]["server"] == "172.30.0.10"

    @pytest.mark.integration
    @patch("nfs_provisioner.api.services.volume_service.get_server")
    def test_get_server_unresolvable(self, mock_server, client):
        mock_server.side_effect = ServerResolutionError(details="no namespace")

        response = client.get("/v1/server")

        assert response.status_code == 503

    @pytest.mark.integration
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
