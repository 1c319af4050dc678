"""
Configuration loader for the NFS provisioner.

Every environment-specific location (export directory, ganesha config,
downward API annotations, Kubernetes credentials) comes from here instead of
being hardcoded in the modules that use it.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_CONFIG_PATH = Path("/etc/nfs-provisioner/provisioner.conf")

_TRUE_VALUES = {"1", "yes", "true", "on"}
_FALSE_VALUES = {"0", "no", "false", "off"}


@dataclass(frozen=True)
class ProvisionerConfig:
    export_dir: str = "/export/"
    use_ganesha: bool = True
    ganesha_config: str = "/export/vfs.conf"
    exports_file: str = "/etc/exports"
    annotations_file: str = "/podinfo/annotations"
    # Names of the environment variables set through the downward API
    pod_ip_env: str = "MY_POD_IP"
    service_env: str = "MY_SERVICE_NAME"
    namespace_env: str = "MY_POD_NAMESPACE"
    kube_api_url: str = "https://kubernetes.default.svc"
    kube_token_file: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    kube_ca_file: str = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
    kube_timeout: int = 10
    api_host: str = "127.0.0.1"
    api_port: int = 8080
    log_level: str = "INFO"


def _config_path() -> Path:
    env = os.environ.get("NFS_PROVISIONER_CONFIG_PATH")
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def _read_ini(path: Path) -> configparser.ConfigParser:
    parser = configparser.ConfigParser()
    if path.exists():
        parser.read(path, encoding="utf-8")
    return parser


def load_config() -> ProvisionerConfig:
    """
    Load config from `NFS_PROVISIONER_CONFIG_PATH` or
    `/etc/nfs-provisioner/provisioner.conf`, section `[provisioner]`.

    Missing files are not an error; defaults are returned.
    """
    parser = _read_ini(_config_path())
    section = parser["provisioner"] if parser.has_section("provisioner") else {}
    defaults = ProvisionerConfig()

    def _get(key: str, default: str) -> str:
        if isinstance(section, dict):
            return str(section.get(key, default)).strip()
        return str(section.get(key, fallback=default)).strip()

    def _get_int(key: str, default: int) -> int:
        raw = _get(key, str(default))
        try:
            return int(raw)
        except ValueError:
            return default

    def _get_bool(key: str, default: bool) -> bool:
        raw = _get(key, str(default)).lower()
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        return default

    return ProvisionerConfig(
        export_dir=_get("export_dir", defaults.export_dir),
        use_ganesha=_get_bool("use_ganesha", defaults.use_ganesha),
        ganesha_config=_get("ganesha_config", defaults.ganesha_config),
        exports_file=_get("exports_file", defaults.exports_file),
        annotations_file=_get("annotations_file", defaults.annotations_file),
        pod_ip_env=_get("pod_ip_env", defaults.pod_ip_env),
        service_env=_get("service_env", defaults.service_env),
        namespace_env=_get("namespace_env", defaults.namespace_env),
        kube_api_url=_get("kube_api_url", defaults.kube_api_url),
        kube_token_file=_get("kube_token_file", defaults.kube_token_file),
        kube_ca_file=_get("kube_ca_file", defaults.kube_ca_file),
        kube_timeout=_get_int("kube_timeout", defaults.kube_timeout),
        api_host=_get("api_host", defaults.api_host),
        api_port=_get_int("api_port", defaults.api_port),
        log_level=_get("log_level", defaults.log_level).upper(),
    )
