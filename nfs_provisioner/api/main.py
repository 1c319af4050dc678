"""
FastAPI main application.
"""

import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from nfs_provisioner.api.models import (
    ErrorResponse,
    GidRangeListResponse,
    ServerResponse,
    VolumeCreate,
    VolumeResponse,
)
from nfs_provisioner.api.services import volume_service
from nfs_provisioner.cli.lib.exceptions import (
    InsufficientCapacity,
    InvalidVolumeRequest,
    ProvisionerException,
    ServerResolutionError,
)

app = FastAPI(title="NFS Provisioner API", description="REST API for NFS volume provisioning", version="0.1.0")
logger = logging.getLogger(__name__)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    request_id = str(uuid.uuid4())
    logger.exception("Unhandled error (request_id=%s, path=%s)", request_id, request.url.path)
    body = ErrorResponse(
        request_id=request_id,
        status="error",
        error={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
    )
    return JSONResponse(status_code=500, content=body.model_dump())


@app.get("/health")
def health() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


# Volume endpoints


@app.post("/v1/volumes", response_model=VolumeResponse, status_code=201)
def create_volume(volume: VolumeCreate) -> Dict[str, Any]:
    """
    Provision a new volume.
    """
    request_id = str(uuid.uuid4())
    try:
        result = volume_service.create_volume(volume)
        return {"request_id": request_id, "status": "ok", "data": result}
    except InvalidVolumeRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsufficientCapacity as e:
        raise HTTPException(status_code=507, detail=str(e))
    except ProvisionerException as e:
        logger.error("Provisioning %s failed (request_id=%s): %s", volume.name, request_id, e)
        raise HTTPException(status_code=500, detail=str(e))


# Provisioner settings


@app.get("/v1/gid-ranges", response_model=GidRangeListResponse)
def list_gid_ranges() -> Dict[str, Any]:
    """
    List the supplemental group ranges volume gids are picked from.
    """
    request_id = str(uuid.uuid4())
    items = volume_service.list_gid_ranges()
    return {"request_id": request_id, "status": "ok", "data": {"items": items}}


@app.get("/v1/server", response_model=ServerResponse)
def get_server() -> Dict[str, Any]:
    """
    Show the NFS server address new volumes point at.
    """
    request_id = str(uuid.uuid4())
    try:
        server = volume_service.get_server()
        return {"request_id": request_id, "status": "ok", "data": {"server": server}}
    except ServerResolutionError as e:
        raise HTTPException(status_code=503, detail=str(e))
