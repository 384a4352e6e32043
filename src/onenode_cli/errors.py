"""Error taxonomy for onenode-cli.

Every failure the provisioning flow knows how to report derives from
BootstrapError. Whether an error is fatal is decided by where it surfaces:
an action failure on a required stage aborts the run, the same error on an
optional stage or inside a readiness probe is downgraded to a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .bootstrap.sequencer import BootstrapReport


@dataclass
class BootstrapError(Exception):
    """Base error class for provisioning errors."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ConfigError(BootstrapError):
    """Configuration file or value is invalid."""

    key: str | None = None


@dataclass
class UnsupportedOSError(BootstrapError):
    """Host OS cannot be identified or is not Debian/RHEL based."""

    os_id: str | None = None


@dataclass
class PermissionDeniedError(BootstrapError):
    """Provisioning requires root privileges."""


@dataclass
class CommandError(BootstrapError):
    """External command exited nonzero or could not be started."""

    command: list[str] = field(default_factory=list)
    returncode: int | None = None
    stderr: str = ""


@dataclass
class DownloadError(BootstrapError):
    """Fetching a remote artifact failed."""

    url: str = ""


@dataclass
class StageFailedError(BootstrapError):
    """A required stage failed; the run was aborted."""

    stage: str = ""
    report: BootstrapReport | None = None
