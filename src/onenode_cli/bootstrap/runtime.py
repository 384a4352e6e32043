"""containerd installation and configuration.

containerd ships from Docker's package repositories on both families. Its
default config is regenerated and patched for the systemd cgroup driver,
an enabled CRI plugin and the sandbox image kubeadm expects.
"""

from __future__ import annotations

import re

import structlog

from ..host import Host
from ..shared.paths import (
    APT_KEYRINGS_DIR,
    CONTAINERD_CONFIG,
    CONTAINERD_DIR,
    DOCKER_APT_SOURCE,
    DOCKER_KEYRING,
)
from .packages import AptPackageManager, DnfPackageManager, PackageManager
from .prerequisites import OSInfo

logger = structlog.get_logger(__name__)

DEBIAN_BASE_PACKAGES = (
    "ca-certificates",
    "curl",
    "gnupg",
    "apt-transport-https",
    "conntrack",
    "socat",
    "ebtables",
    "ethtool",
)
RHEL_BASE_PACKAGES = ("conntrack-tools", "socat", "ebtables", "ethtool")
DOCKER_RHEL_REPO = "https://download.docker.com/linux/centos/docker-ce.repo"

_DISABLED_CRI = re.compile(r'disabled_plugins = \["cri"\]')
_SYSTEMD_CGROUP = re.compile(r"SystemdCgroup = false")
_SANDBOX_IMAGE = re.compile(r'sandbox_image = ".*"')


def docker_repo_url(os_info: OSInfo) -> str:
    return f"https://download.docker.com/linux/{os_info.id}"


def install_containerd(host: Host, os_info: OSInfo, packages: PackageManager) -> None:
    """Install containerd.io and the networking tools kubeadm preflight wants."""
    if isinstance(packages, AptPackageManager):
        packages.refresh()
        packages.install(DEBIAN_BASE_PACKAGES)

        host.makedirs(APT_KEYRINGS_DIR)
        if not host.exists(DOCKER_KEYRING):
            host.download(f"{docker_repo_url(os_info)}/gpg", DOCKER_KEYRING)
            host.chmod(DOCKER_KEYRING, 0o644)

        arch = packages.architecture()
        host.write_text(
            DOCKER_APT_SOURCE,
            f"deb [arch={arch} signed-by={DOCKER_KEYRING}] {docker_repo_url(os_info)} "
            f"{os_info.version_codename} stable\n",
        )
        packages.refresh()
        packages.install(["containerd.io"])
    elif isinstance(packages, DnfPackageManager):
        packages.install(
            ["dnf-plugins-core", *RHEL_BASE_PACKAGES],
            yum_packages=["yum-utils", *RHEL_BASE_PACKAGES],
        )
        packages.add_repository(DOCKER_RHEL_REPO)
        packages.install(["containerd.io"])
    else:
        raise TypeError(f"No containerd install recipe for {type(packages).__name__}")


def containerd_installed(host: Host) -> bool:
    return host.which("containerd") is not None


def patch_containerd_config(config: str, pause_image: str) -> str:
    """Patch a default containerd config for kubeadm.

    Works for both the 1.x and 2.x config formats: each substitution is a
    no-op when its key is absent.
    """
    config = _DISABLED_CRI.sub("disabled_plugins = []", config)
    config = _SYSTEMD_CGROUP.sub("SystemdCgroup = true", config)
    return _SANDBOX_IMAGE.sub(f'sandbox_image = "{pause_image}"', config)


def configure_containerd(host: Host, pause_image: str) -> None:
    host.makedirs(CONTAINERD_DIR)
    default = host.run(["containerd", "config", "default"]).stdout
    host.write_text(CONTAINERD_CONFIG, patch_containerd_config(default, pause_image))
    logger.info("wrote containerd config", path=str(CONTAINERD_CONFIG))

    host.run(["systemctl", "daemon-reload"])
    host.run(["systemctl", "enable", "containerd"])
    host.run(["systemctl", "restart", "containerd"])


def containerd_active(host: Host) -> bool:
    return host.run(["systemctl", "is-active", "--quiet", "containerd"], check=False).ok


def containerd_configured(host: Host, pause_image: str) -> bool:
    """True when the on-disk config is already patched and the service runs."""
    if not host.exists(CONTAINERD_CONFIG):
        return False
    config = host.read_text(CONTAINERD_CONFIG)
    if "SystemdCgroup = true" not in config or _DISABLED_CRI.search(config):
        return False
    if "sandbox_image" in config and f'sandbox_image = "{pause_image}"' not in config:
        return False
    return containerd_active(host)
