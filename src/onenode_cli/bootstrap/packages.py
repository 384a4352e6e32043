"""OS package manager adapters.

Debian-family hosts use apt. RHEL-family hosts use dnf and fall back to yum
for each individual operation.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..host import Host
from .prerequisites import OSFamily, OSInfo

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class PackageManager:
    """Install packages and register repositories."""

    family: OSFamily

    def __init__(self, host: Host):
        self.host = host

    def refresh(self) -> None:
        """Refresh package metadata."""

    def install(self, packages: Sequence[str]) -> None:
        raise NotImplementedError

    def hold(self, packages: Sequence[str]) -> None:
        """Pin packages against unattended upgrades."""


class AptPackageManager(PackageManager):
    """apt-get on Debian and Ubuntu."""

    family = OSFamily.DEBIAN

    def refresh(self) -> None:
        self.host.run(["apt-get", "update", "-qq"], env=APT_ENV)

    def install(self, packages: Sequence[str]) -> None:
        self.host.run(["apt-get", "install", "-y", "-qq", *packages], env=APT_ENV)

    def fix_broken(self) -> None:
        """Install missing dependencies of a half-installed package."""
        self.refresh()
        self.host.run(["apt-get", "install", "-y", "-qq", "-f"], env=APT_ENV)

    def hold(self, packages: Sequence[str]) -> None:
        self.host.run(["apt-mark", "hold", *packages])

    def architecture(self) -> str:
        return self.host.run(["dpkg", "--print-architecture"]).stdout.strip()


class DnfPackageManager(PackageManager):
    """dnf, falling back to yum, on RHEL derivatives."""

    family = OSFamily.RHEL

    def install(
        self,
        packages: Sequence[str],
        yum_packages: Sequence[str] | None = None,
    ) -> None:
        """Install with dnf, or with yum when dnf fails.

        ``yum_packages`` replaces the list for the yum attempt where package
        names differ between the two tools.
        """
        fallback = packages if yum_packages is None else yum_packages
        self.host.run_first(
            [
                ["dnf", "install", "-y", "-q", *packages],
                ["yum", "install", "-y", "-q", *fallback],
            ]
        )

    def add_repository(self, url: str) -> None:
        self.host.run_first(
            [
                ["dnf", "config-manager", "--add-repo", url],
                ["yum-config-manager", "--add-repo", url],
            ]
        )


def package_manager_for(host: Host, os_info: OSInfo) -> PackageManager:
    """Get the package manager for the detected OS family."""
    if os_info.family == OSFamily.DEBIAN:
        return AptPackageManager(host)
    return DnfPackageManager(host)
