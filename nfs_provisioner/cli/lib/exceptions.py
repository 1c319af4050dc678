"""NFS provisioner exceptions."""


class ProvisionerException(Exception):
    """Base exception for provisioning errors."""

    message = "An unknown exception occurred."

    def __init__(self, message=None, **kwargs):
        """Initialize exception with optional custom message."""
        self.kwargs = kwargs
        if message:
            self.message = message
        super(ProvisionerException, self).__init__(self.message % kwargs)


class InvalidVolumeRequest(ProvisionerException, ValueError):
    """The volume request uses a feature that is not supported."""

    message = "Invalid volume request: %(details)s"


class InsufficientCapacity(ProvisionerException):
    """The export directory cannot hold the requested capacity."""

    message = "Not enough available space %(available)s bytes to satisfy claim for %(requested)s bytes"


class VolumeFilesystemError(ProvisionerException):
    """Creating, chmod-ing or chown-ing the volume directory failed."""

    message = "Filesystem error for %(path)s: %(details)s"


class ExportBackendError(ProvisionerException):
    """Activating an export (exportfs or AddExport) failed.

    The export content has already been removed from the config file
    when this is raised.
    """

    message = "Export backend error: %(details)s"


class ExportConfigError(ProvisionerException):
    """Reading or writing an export config file failed."""

    message = "Error updating export config %(path)s: %(details)s"


class ServerResolutionError(ProvisionerException):
    """No usable NFS server address could be determined."""

    message = "Error getting NFS server address: %(details)s"


class GidRangeError(ProvisionerException):
    """No supplemental group id can be generated."""

    message = "Error generating supplemental group: %(details)s"


class ClusterAPIError(ProvisionerException):
    """Kubernetes API communication errors."""

    message = "Kubernetes API error: %(details)s"
