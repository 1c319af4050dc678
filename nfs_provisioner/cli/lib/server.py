"""
NFS server address resolution.

Provisioned volumes point at either the provisioner pod's own address or, when
the provisioner is fronted by a service, at that service's cluster IP. The
cluster IP survives pod restarts; the pod IP does not.
"""

import logging
import os
import subprocess
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from nfs_provisioner.cli.lib.exceptions import ClusterAPIError, ServerResolutionError

LOG = logging.getLogger(__name__)

# nfs, mountd, rpcbind and rpcbind-udp
EXPECTED_PORTS: FrozenSet[Tuple[int, str]] = frozenset(
    {
        (2049, "TCP"),
        (20048, "TCP"),
        (111, "UDP"),
        (111, "TCP"),
    }
)

CLUSTER_IP_NONE = "None"


def hostname_ip() -> str:
    """
    Return the host address as reported by `hostname -i`.

    Raises:
        ServerResolutionError: If hostname fails
    """
    try:
        result = subprocess.run(
            ["hostname", "-i"],
            capture_output=True,
            text=True,
            check=False
        )
    except OSError as e:
        raise ServerResolutionError(details=f"hostname -i failed: {e}")

    if result.returncode != 0:
        raise ServerResolutionError(details=f"hostname -i failed: {result.stderr}")

    return result.stdout.strip()


def endpoints_match(endpoints: Dict[str, Any], address: str) -> bool:
    """
    Check that a service's endpoints are exactly this pod on the NFS ports.

    The endpoints must have a single subset with a single address equal to
    address, exposing exactly EXPECTED_PORTS.
    """
    subsets = endpoints.get("subsets") or []
    if len(subsets) != 1:
        return False

    subset = subsets[0]
    addresses = subset.get("addresses") or []
    if len(addresses) != 1 or addresses[0].get("ip") != address:
        return False

    ports = {(port.get("port"), port.get("protocol") or "TCP") for port in subset.get("ports") or []}
    return ports == EXPECTED_PORTS


class ServerResolver:
    """Determines the server address to put in provisioned volumes."""

    def __init__(
        self,
        client,
        pod_ip_env: str = "MY_POD_IP",
        service_env: str = "MY_SERVICE_NAME",
        namespace_env: str = "MY_POD_NAMESPACE",
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.client = client
        self.pod_ip_env = pod_ip_env
        self.service_env = service_env
        self.namespace_env = namespace_env
        self.environ = environ if environ is not None else os.environ

    def fallback_address(self) -> str:
        pod_ip = self.environ.get(self.pod_ip_env, "")
        if pod_ip:
            return pod_ip
        LOG.info("Pod IP env %s isn't set or provisioner isn't running as a pod", self.pod_ip_env)
        return hostname_ip()

    def resolve(self) -> str:
        """
        Resolve the server address.

        Raises:
            ServerResolutionError: If no trustworthy address can be determined
        """
        fallback = self.fallback_address()

        service_name = self.environ.get(self.service_env, "")
        if not service_name:
            LOG.info("Service env %s isn't set, using %s as server address", self.service_env, fallback)
            return fallback

        # From here on an error beats silently provisioning volumes that
        # break when the pod moves
        namespace = self.environ.get(self.namespace_env, "")
        if not namespace:
            raise ServerResolutionError(
                details=f"service env {self.service_env} is set but namespace env {self.namespace_env} isn't"
            )

        try:
            service = self.client.get_service(namespace, service_name)
            endpoints = self.client.get_endpoints(namespace, service_name)
        except ClusterAPIError as e:
            raise ServerResolutionError(details=f"error getting service {namespace}/{service_name}: {e}")

        if not endpoints_match(endpoints, fallback):
            expected = ", ".join(f"{port}/{proto}" for port, proto in sorted(EXPECTED_PORTS))
            raise ServerResolutionError(
                details=(
                    f"service {namespace}/{service_name} is not valid; check that it has for ports "
                    f"{expected} one endpoint, this pod's IP {fallback}"
                )
            )

        cluster_ip = (service.get("spec") or {}).get("clusterIP") or ""
        if not cluster_ip or cluster_ip == CLUSTER_IP_NONE:
            raise ServerResolutionError(details=f"service {namespace}/{service_name} is valid but has no cluster IP")

        return cluster_ip
