"""
Pydantic models for API requests and responses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from nfs_provisioner.cli.lib.validators import validate_name


class VolumeCreate(BaseModel):
    """Request model for provisioning a volume."""

    name: str = Field(..., description="Volume (PersistentVolume) name", min_length=1, max_length=253)
    capacity_bytes: int = Field(..., description="Requested capacity in bytes", gt=0)
    access_modes: List[str] = Field(["ReadWriteMany"], description="Access modes")
    reclaim_policy: str = Field("Delete", description="Reclaim policy")
    parameters: Optional[Dict[str, str]] = Field(None, description="StorageClass parameters (unsupported)")
    selector: Optional[Dict[str, Any]] = Field(None, description="Claim selector (unsupported)")

    @field_validator("name")
    def check_name(cls, v: str) -> str:
        validate_name(v)
        return v


class VolumeResponse(BaseModel):
    """Response model for volume operations."""

    request_id: str
    status: str
    data: dict


class GidRangeListResponse(BaseModel):
    """Response model for the supplemental group ranges."""

    request_id: str
    status: str
    data: dict


class ServerResponse(BaseModel):
    """Response model for the resolved server address."""

    request_id: str
    status: str
    data: dict


class ErrorResponse(BaseModel):
    """Generic error response."""

    request_id: str
    status: str
    error: dict
