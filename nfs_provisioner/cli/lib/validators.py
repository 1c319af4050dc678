"""
Input validation functions.
"""

import re
from typing import Dict, Optional

from nfs_provisioner.cli.lib.exceptions import InvalidVolumeRequest

_QUANTITY_RE = re.compile(r"^([0-9]+)([KMGTPE]i?)?$")

_BINARY_SUFFIXES = {"Ki": 1, "Mi": 2, "Gi": 3, "Ti": 4, "Pi": 5, "Ei": 6}
_DECIMAL_SUFFIXES = {"K": 1, "M": 2, "G": 3, "T": 4, "P": 5, "E": 6}


def validate_name(name: str) -> None:
    """
    Validate a volume name.

    The name becomes a directory directly under the export directory, so it
    must not contain path separators or start with a dot.

    Args:
        name: Name to validate

    Raises:
        ValueError: If name is invalid
    """
    if not name:
        raise ValueError("Name cannot be empty")

    if len(name) > 253:
        raise ValueError("Name must be between 1 and 253 characters")

    # Allow alphanumeric, dots, underscores, hyphens
    if not re.match(r'^[a-zA-Z0-9][a-zA-Z0-9._-]*$', name):
        raise ValueError("Name must start with alphanumeric and contain only alphanumeric, dots, underscores, or hyphens")


def parse_capacity(value: str) -> int:
    """
    Convert a Kubernetes storage quantity to bytes.

    Args:
        value: Quantity such as "10Gi", "500M" or "1048576"

    Returns:
        Size in bytes

    Raises:
        ValueError: If the quantity cannot be parsed
    """
    raw = str(value).strip()
    match = _QUANTITY_RE.match(raw)
    if not match:
        raise ValueError(f"Invalid capacity: {value!r}")

    number = int(match.group(1))
    suffix = match.group(2)
    if not suffix:
        return number
    if suffix in _BINARY_SUFFIXES:
        return number * 1024 ** _BINARY_SUFFIXES[suffix]
    return number * 1000 ** _DECIMAL_SUFFIXES[suffix]


def validate_volume_request(
    name: str,
    capacity_bytes: int,
    parameters: Optional[Dict[str, str]] = None,
    selector: Optional[Dict] = None,
) -> None:
    """
    Validate a volume request before anything is created.

    Raises:
        InvalidVolumeRequest: If the request cannot be provisioned
    """
    if parameters:
        raise InvalidVolumeRequest(details="no StorageClass parameters are supported")

    if selector:
        raise InvalidVolumeRequest(details="claim selector is not supported")

    try:
        validate_name(name)
    except ValueError as e:
        raise InvalidVolumeRequest(details=str(e))

    if capacity_bytes <= 0:
        raise InvalidVolumeRequest(details="capacity must be a positive number of bytes")
