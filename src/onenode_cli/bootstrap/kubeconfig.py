"""Admin credential distribution.

Copies the kubeadm admin kubeconfig into the invoking user's home and, when
running under sudo, into the original user's home as well, owned by that
user and readable only by them.
"""

from __future__ import annotations

from pathlib import PurePosixPath

import structlog

from ..errors import BootstrapError
from ..host import Host, UserInfo
from ..shared.paths import ADMIN_CONF, user_kubeconfig

logger = structlog.get_logger(__name__)

KUBECONFIG_MODE = 0o600


def install_kubeconfig(
    host: Host,
    user: UserInfo,
    source: PurePosixPath = ADMIN_CONF,
) -> PurePosixPath:
    """Copy ``source`` to ``user``'s ~/.kube/config and hand it over."""
    dest = user_kubeconfig(user.home)
    host.makedirs(dest.parent)
    host.copy_file(source, dest)
    host.chown(dest.parent, user.uid, user.gid)
    host.chown(dest, user.uid, user.gid)
    host.chmod(dest, KUBECONFIG_MODE)
    logger.info("installed kubeconfig", user=user.name or user.uid, path=str(dest))
    return dest


def distribute_admin_kubeconfig(
    host: Host,
    source: PurePosixPath = ADMIN_CONF,
) -> list[PurePosixPath]:
    """Install the admin kubeconfig for the current user and the sudo user.

    Raises:
        BootstrapError: The admin credential is missing or the sudo user
            does not exist.
    """
    if not host.exists(source):
        raise BootstrapError(message=f"Admin kubeconfig {source} not found; was kubeadm init run?")

    installed = [install_kubeconfig(host, host.current_user(), source)]

    sudo_user = host.sudo_user
    if sudo_user and sudo_user != "root":
        try:
            user = host.lookup_user(sudo_user)
        except KeyError as e:
            raise BootstrapError(message=f"SUDO_USER '{sudo_user}' does not exist") from e
        dest = install_kubeconfig(host, user, source)
        if dest not in installed:
            installed.append(dest)

    return installed
