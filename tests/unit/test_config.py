"""Unit tests for cluster configuration loading."""

from pathlib import Path
from unittest.mock import patch

import pytest

from onenode_cli.config import (
    ClusterConfig,
    config_keys,
    env_var,
    load_config,
    validate_config,
)
from onenode_cli.errors import ConfigError


@pytest.fixture(autouse=True)
def no_system_config(tmp_path: Path):
    """Point the default config location at a file that does not exist."""
    with patch("onenode_cli.config.CONFIG_FILE", tmp_path / "absent.yaml"):
        yield


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "config.yaml"


class TestDefaults:
    """Tests for default configuration."""

    def test_defaults(self):
        """Test the pinned default versions and budgets."""
        config = load_config(env={})

        assert config.kube_version == "1.31"
        assert config.cert_manager_version == "v1.16.3"
        assert config.ingress_nginx_version == "controller-v1.12.0"
        assert config.pod_cidr == "10.244.0.0/16"
        assert config.install_k9s is True
        assert config.node_ready_timeout == 120
        assert config.deployment_timeout == 180
        assert config.poll_interval == 5
        assert all(config.get_source(key) == "default" for key in config_keys())

    def test_manifest_urls(self):
        """Test manifest URLs follow the pinned versions."""
        config = ClusterConfig()

        assert config.ingress_manifest_url == (
            "https://raw.githubusercontent.com/kubernetes/ingress-nginx/"
            "controller-v1.12.0/deploy/static/provider/baremetal/deploy.yaml"
        )
        assert config.cert_manager_manifest_url == (
            "https://github.com/cert-manager/cert-manager/releases/download/"
            "v1.16.3/cert-manager.yaml"
        )

    def test_to_dict_hides_sources(self):
        data = load_config(env={}).to_dict()
        assert "_sources" not in data
        assert list(data) == config_keys()


class TestConfigFile:
    """Tests for YAML config files."""

    def test_file_overrides_defaults(self, config_file):
        """Test file values replace defaults and are tracked."""
        config_file.write_text("kube_version: '1.30'\ninstall_k9s: false\npoll_interval: 2\n")

        config = load_config(config_file, env={})

        assert config.kube_version == "1.30"
        assert config.install_k9s is False
        assert config.poll_interval == 2
        assert config.get_source("kube_version") == "config file"
        assert config.get_source("pod_cidr") == "default"

    def test_default_location_is_read(self, tmp_path):
        """Test the system config file is used when present."""
        system = tmp_path / "onenode.yaml"
        system.write_text("pod_cidr: 10.10.0.0/16\n")

        with patch("onenode_cli.config.CONFIG_FILE", system):
            config = load_config(env={})

        assert config.pod_cidr == "10.10.0.0/16"

    def test_explicit_missing_file(self, tmp_path):
        """Test an explicit path must exist."""
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path / "nope.yaml", env={})

        assert "not found" in str(exc_info.value)

    def test_empty_file(self, config_file):
        config_file.write_text("")
        assert load_config(config_file, env={}).kube_version == "1.31"

    def test_unknown_key(self, config_file):
        """Test typos are rejected."""
        config_file.write_text("kube_verison: '1.30'\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(config_file, env={})

        assert exc_info.value.key == "kube_verison"

    def test_invalid_yaml(self, config_file):
        config_file.write_text("kube_version: [\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_file, env={})

    def test_non_mapping(self, config_file):
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_file, env={})


class TestEnvironment:
    """Tests for environment overrides."""

    def test_env_var_names(self):
        assert env_var("kube_version") == "ONENODE_KUBE_VERSION"

    def test_env_overrides_file(self, config_file):
        """Test environment beats the config file."""
        config_file.write_text("kube_version: '1.30'\n")

        config = load_config(config_file, env={"ONENODE_KUBE_VERSION": "1.29"})

        assert config.kube_version == "1.29"
        assert config.get_source("kube_version") == "environment"

    def test_env_coercion(self):
        """Test booleans and integers are parsed from strings."""
        config = load_config(
            env={"ONENODE_INSTALL_K9S": "no", "ONENODE_NODE_READY_TIMEOUT": "300"}
        )

        assert config.install_k9s is False
        assert config.node_ready_timeout == 300

    def test_empty_env_is_ignored(self):
        assert load_config(env={"ONENODE_POD_CIDR": ""}).pod_cidr == "10.244.0.0/16"

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("ONENODE_INSTALL_K9S", "maybe"),
            ("ONENODE_POLL_INTERVAL", "fast"),
        ],
    )
    def test_bad_env_value(self, name, value):
        with pytest.raises(ConfigError):
            load_config(env={name: value})


class TestValidateConfig:
    """Tests for validate_config."""

    @pytest.mark.parametrize("version", ["1.31.2", "v1.31", "latest", ""])
    def test_bad_kube_version(self, version):
        """Test only MAJOR.MINOR is accepted."""
        with pytest.raises(ConfigError) as exc_info:
            validate_config(ClusterConfig(kube_version=version))

        assert exc_info.value.key == "kube_version"

    def test_bad_pod_cidr(self):
        with pytest.raises(ConfigError) as exc_info:
            validate_config(ClusterConfig(pod_cidr="10.244.0.1/16"))
        assert exc_info.value.key == "pod_cidr"

    @pytest.mark.parametrize("key", ["node_ready_timeout", "deployment_timeout", "poll_interval"])
    def test_non_positive_budgets(self, key):
        with pytest.raises(ConfigError):
            validate_config(ClusterConfig(**{key: 0}))

    def test_file_int_rejects_bool(self, config_file):
        """Test YAML booleans are not accepted for integer keys."""
        config_file.write_text("poll_interval: true\n")
        with pytest.raises(ConfigError):
            load_config(config_file, env={})
