"""Optional CLI tools.

k9s is a convenience; failing to install it never fails provisioning.
"""

from __future__ import annotations

import structlog

from ..errors import BootstrapError, CommandError
from ..host import Host
from ..shared.paths import DOWNLOAD_DIR
from .packages import AptPackageManager, PackageManager

logger = structlog.get_logger(__name__)

K9S_RELEASES = "https://github.com/derailed/k9s/releases/download"
K9S_DEB = "k9s_linux_amd64.deb"


def k9s_deb_url(version: str) -> str:
    return f"{K9S_RELEASES}/{version}/{K9S_DEB}"


def k9s_installed(host: Host) -> bool:
    return host.which("k9s") is not None


def install_k9s(host: Host, packages: PackageManager, version: str) -> None:
    """Install the k9s .deb release.

    Raises:
        BootstrapError: The host is not Debian based, the download failed,
            or dpkg and the dependency fix-up both failed.
    """
    if not isinstance(packages, AptPackageManager):
        raise BootstrapError(
            message="k9s is only installed on Debian-family hosts; "
            "install it from your distribution if desired"
        )

    deb = DOWNLOAD_DIR / K9S_DEB
    host.download(k9s_deb_url(version), deb)
    try:
        try:
            host.run(["dpkg", "-i", str(host.path(deb))])
        except CommandError:
            logger.info("fixing missing dependencies for k9s")
            packages.fix_broken()
    finally:
        host.remove(deb)
    logger.info("k9s installed", version=version)
