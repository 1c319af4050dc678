"""
Unit tests for config loader.
"""

import pytest


@pytest.mark.unit
def test_load_config_missing_file(monkeypatch, temp_dir):
    monkeypatch.setenv("NFS_PROVISIONER_CONFIG_PATH", str(temp_dir / "missing.conf"))
    from nfs_provisioner.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.export_dir == "/export/"
    assert cfg.use_ganesha is True
    assert cfg.ganesha_config == "/export/vfs.conf"
    assert cfg.pod_ip_env == "MY_POD_IP"


@pytest.mark.unit
def test_load_config_reads_values(monkeypatch, temp_dir):
    config_path = temp_dir / "provisioner.conf"
    config_path.write_text(
        "\n".join(
            [
                "[provisioner]",
                "export_dir = /srv/nfs/",
                "use_ganesha = no",
                "exports_file = /tmp/exports",
                "service_env = NFS_SERVICE",
                "namespace_env = NFS_NAMESPACE",
                "kube_timeout = 3",
                "api_host = 0.0.0.0",
                "api_port = 18080",
                "log_level = debug",
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("NFS_PROVISIONER_CONFIG_PATH", str(config_path))
    from nfs_provisioner.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.export_dir == "/srv/nfs/"
    assert cfg.use_ganesha is False
    assert cfg.exports_file == "/tmp/exports"
    assert cfg.service_env == "NFS_SERVICE"
    assert cfg.namespace_env == "NFS_NAMESPACE"
    assert cfg.kube_timeout == 3
    assert cfg.api_host == "0.0.0.0"
    assert cfg.api_port == 18080
    assert cfg.log_level == "DEBUG"


@pytest.mark.unit
def test_load_config_bad_values_fall_back(monkeypatch, temp_dir):
    config_path = temp_dir / "provisioner.conf"
    config_path.write_text("[provisioner]\nuse_ganesha = maybe\napi_port = eighty\n", encoding="utf-8")
    monkeypatch.setenv("NFS_PROVISIONER_CONFIG_PATH", str(config_path))
    from nfs_provisioner.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.use_ganesha is True
    assert cfg.api_port == 8080
