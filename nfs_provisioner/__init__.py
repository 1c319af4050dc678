"""
NFS Provisioner - dynamic NFS-backed PersistentVolumes.

This package creates volume directories under an export directory, assigns
each a supplemental group, and exports it through either the kernel NFS
server or NFS-Ganesha.
"""

__version__ = "0.1.0"
__all__ = ["api", "cli"]
