"""Shared modules for onenode-cli.

Logging setup and the well-known system paths used by every stage.
"""

from .logging import LOG_FORMATS, configure_logging, level_for_verbosity
from .paths import ADMIN_CONF, CONFIG_FILE, KUBEADM_INIT_LOG, user_kubeconfig

__all__ = [
    # Paths
    "ADMIN_CONF",
    "CONFIG_FILE",
    "KUBEADM_INIT_LOG",
    "user_kubeconfig",
    # Logging
    "configure_logging",
    "LOG_FORMATS",
    "level_for_verbosity",
]
