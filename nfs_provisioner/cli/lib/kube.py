"""Read-only Kubernetes API client.

Only the handful of lookups the provisioner needs: the service and endpoints
it is exposed through, its namespace, and the PSP/SCC it was admitted under.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from nfs_provisioner.cli.lib.config import ProvisionerConfig
from nfs_provisioner.cli.lib.exceptions import ClusterAPIError

LOG = logging.getLogger(__name__)


class KubeClient:
    """Minimal Kubernetes REST client on top of requests."""

    def __init__(
        self,
        api_url: str,
        token: Optional[str] = None,
        ca_file: Optional[str] = None,
        timeout: int = 10,
        retry_count: int = 3,
    ):
        """Initialize the client.

        Args:
            api_url: API server URL (e.g., https://kubernetes.default.svc)
            token: Bearer token, usually the pod's service account token
            ca_file: CA bundle used to verify the API server certificate
            timeout: HTTP request timeout in seconds
            retry_count: Number of retries for failed GET requests
        """
        self.base_url = api_url.rstrip("/")
        self.timeout = timeout
        self.verify: Union[str, bool] = ca_file if ca_file else True

        self.session = requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

        retry_strategy = Retry(
            total=retry_count,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @classmethod
    def from_config(cls, config: ProvisionerConfig) -> "KubeClient":
        """Build an in-cluster client from the service account files."""
        token = None
        token_path = Path(config.kube_token_file)
        if token_path.exists():
            token = token_path.read_text(encoding="utf-8").strip()
        else:
            LOG.warning("Service account token %s not found, using anonymous access", token_path)

        ca_file = config.kube_ca_file if Path(config.kube_ca_file).exists() else None
        return cls(config.kube_api_url, token=token, ca_file=ca_file, timeout=config.kube_timeout)

    def _get(self, path: str) -> Dict[str, Any]:
        url = self.base_url + path
        LOG.debug("GET %s", path)

        try:
            response = self.session.get(url, timeout=self.timeout, verify=self.verify)
        except requests.exceptions.Timeout:
            raise ClusterAPIError(details=f"GET {path} timed out after {self.timeout} seconds")
        except requests.exceptions.RequestException as e:
            raise ClusterAPIError(details=f"GET {path} failed: {e}")

        if response.status_code >= 400:
            raise ClusterAPIError(details=f"GET {path} returned {response.status_code}: {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise ClusterAPIError(details=f"GET {path} returned invalid JSON: {e}")

    def get_service(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get(f"/api/v1/namespaces/{namespace}/services/{name}")

    def get_endpoints(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._get(f"/api/v1/namespaces/{namespace}/endpoints/{name}")

    def get_namespace(self, name: str) -> Dict[str, Any]:
        return self._get(f"/api/v1/namespaces/{name}")

    def get_pod_security_policy(self, name: str) -> Dict[str, Any]:
        return self._get(f"/apis/policy/v1beta1/podsecuritypolicies/{name}")

    def get_security_context_constraints(self, name: str) -> Dict[str, Any]:
        return self._get(f"/apis/security.openshift.io/v1/securitycontextconstraints/{name}")
