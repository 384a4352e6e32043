"""Prerequisite detection for provisioning.

Identifies the host OS family from /etc/os-release and checks that the
process has the privileges needed to provision the host.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum

from ..errors import PermissionDeniedError, UnsupportedOSError
from ..host import Host
from ..shared.paths import OS_RELEASE

DEBIAN_IDS = frozenset({"ubuntu", "debian"})
RHEL_IDS = frozenset({"centos", "rhel", "rocky", "almalinux", "fedora"})


class OSFamily(Enum):
    """Supported distribution families."""

    DEBIAN = "debian"
    RHEL = "rhel"


@dataclass
class OSInfo:
    """Host OS identification result."""

    id: str
    family: OSFamily
    pretty_name: str = ""
    version_codename: str = ""

    @property
    def is_debian(self) -> bool:
        return self.family == OSFamily.DEBIAN


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines, unquoting values."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw = line.split("=", 1)
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return values


class OSDetector:
    """Detect the host distribution."""

    def detect(self, host: Host) -> OSInfo:
        """Identify the host OS.

        Raises:
            UnsupportedOSError: os-release is missing or names a distribution
                outside the Debian and RHEL families.
        """
        if not host.exists(OS_RELEASE):
            raise UnsupportedOSError(message=f"Cannot detect OS. {OS_RELEASE} not found.")

        values = parse_os_release(host.read_text(OS_RELEASE))
        os_id = values.get("ID", "").lower()

        if os_id in DEBIAN_IDS:
            family = OSFamily.DEBIAN
        elif os_id in RHEL_IDS:
            family = OSFamily.RHEL
        else:
            raise UnsupportedOSError(
                message=f"Unsupported OS: {os_id or 'unknown'}. "
                "Supported: Debian/Ubuntu and RHEL/CentOS/Rocky/AlmaLinux/Fedora.",
                os_id=os_id or None,
            )

        return OSInfo(
            id=os_id,
            family=family,
            pretty_name=values.get("PRETTY_NAME", os_id),
            version_codename=values.get("VERSION_CODENAME", ""),
        )


def require_root(host: Host) -> None:
    """Fail unless running as root."""
    if not host.is_root():
        raise PermissionDeniedError(message="onenode must be run as root (or with sudo).")
