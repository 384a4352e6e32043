"""Cluster configuration.

Versions, network ranges and polling budgets for a provisioning run. Values
come from built-in defaults, an optional YAML file (/etc/onenode/config.yaml
or the --config flag) and ONENODE_* environment variables.
"""

import ipaddress
import os
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .shared.paths import CONFIG_FILE

# Default values
DEFAULT_KUBE_VERSION = "1.31"
DEFAULT_CERT_MANAGER_VERSION = "v1.16.3"
DEFAULT_INGRESS_NGINX_VERSION = "controller-v1.12.0"
DEFAULT_POD_CIDR = "10.244.0.0/16"
DEFAULT_PAUSE_IMAGE = "registry.k8s.io/pause:3.10"
DEFAULT_K9S_VERSION = "v0.50.18"
DEFAULT_CNI_MANIFEST_URL = (
    "https://github.com/flannel-io/flannel/releases/latest/download/kube-flannel.yml"
)

ENV_PREFIX = "ONENODE_"

_KUBE_VERSION = re.compile(r"^\d+\.\d+$")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class ClusterConfig:
    """Cluster provisioning configuration."""

    kube_version: str = DEFAULT_KUBE_VERSION
    cert_manager_version: str = DEFAULT_CERT_MANAGER_VERSION
    ingress_nginx_version: str = DEFAULT_INGRESS_NGINX_VERSION
    pod_cidr: str = DEFAULT_POD_CIDR
    pause_image: str = DEFAULT_PAUSE_IMAGE
    cni_manifest_url: str = DEFAULT_CNI_MANIFEST_URL
    k9s_version: str = DEFAULT_K9S_VERSION
    install_k9s: bool = True
    node_ready_timeout: int = 120
    deployment_timeout: int = 180
    poll_interval: int = 5

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    @property
    def ingress_manifest_url(self) -> str:
        return (
            "https://raw.githubusercontent.com/kubernetes/ingress-nginx/"
            f"{self.ingress_nginx_version}/deploy/static/provider/baremetal/deploy.yaml"
        )

    @property
    def cert_manager_manifest_url(self) -> str:
        return (
            "https://github.com/cert-manager/cert-manager/releases/download/"
            f"{self.cert_manager_version}/cert-manager.yaml"
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("_sources")
        return data


def config_keys() -> list[str]:
    """Public configuration keys in declaration order."""
    return [f.name for f in fields(ClusterConfig) if not f.name.startswith("_")]


def env_var(key: str) -> str:
    return f"{ENV_PREFIX}{key.upper()}"


def _coerce(key: str, value: Any, default: Any) -> Any:
    """Convert a raw file or environment value to the type of ``default``."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigError(message=f"{key}: expected a boolean, got {value!r}", key=key)
    if isinstance(default, int):
        if isinstance(value, bool):
            raise ConfigError(message=f"{key}: expected an integer, got {value!r}", key=key)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                message=f"{key}: expected an integer, got {value!r}", key=key
            ) from e
    if isinstance(value, (dict, list)):
        raise ConfigError(message=f"{key}: expected a string, got {value!r}", key=key)
    return str(value)


def validate_config(config: ClusterConfig) -> None:
    """Reject values the provisioning flow cannot work with.

    Raises:
        ConfigError: On the first invalid value.
    """
    if not _KUBE_VERSION.match(config.kube_version):
        raise ConfigError(
            message=f"kube_version must be MAJOR.MINOR (e.g. 1.31), got {config.kube_version!r}",
            key="kube_version",
        )
    try:
        ipaddress.ip_network(config.pod_cidr)
    except ValueError as e:
        raise ConfigError(message=f"pod_cidr: {e}", key="pod_cidr") from e
    for key in ("node_ready_timeout", "deployment_timeout", "poll_interval"):
        if getattr(config, key) <= 0:
            raise ConfigError(message=f"{key} must be positive", key=key)


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(message=f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(message=f"{path}: top level must be a mapping")

    unknown = sorted(set(data) - set(config_keys()))
    if unknown:
        raise ConfigError(
            message=f"{path}: unknown keys: {', '.join(unknown)}",
            key=unknown[0],
        )
    return data


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ClusterConfig:
    """Load cluster configuration.

    Precedence (highest to lowest):
    1. Environment variables (ONENODE_<KEY>)
    2. Config file (``path``, else /etc/onenode/config.yaml when present)
    3. Defaults

    Args:
        path: Explicit config file. Must exist when given.
        env: Environment mapping (default: os.environ).

    Returns:
        Validated ClusterConfig with values and sources.

    Raises:
        ConfigError: Unreadable file, unknown key or invalid value.
    """
    env = os.environ if env is None else env
    config = ClusterConfig()
    sources: dict[str, str] = {key: "default" for key in config_keys()}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(message=f"Config file not found: {config_path}")
    else:
        config_path = Path(CONFIG_FILE)

    if config_path.exists():
        for key, value in _read_config_file(config_path).items():
            setattr(config, key, _coerce(key, value, getattr(ClusterConfig, key)))
            sources[key] = "config file"

    for key in config_keys():
        raw = env.get(env_var(key))
        if raw:
            setattr(config, key, _coerce(key, raw, getattr(ClusterConfig, key)))
            sources[key] = "environment"

    validate_config(config)
    config._sources = sources
    return config
