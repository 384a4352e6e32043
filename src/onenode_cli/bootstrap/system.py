"""Host preparation: swap, kernel modules and sysctl.

kubelet refuses to start with swap enabled, and pod networking needs the
overlay and br_netfilter modules plus bridged traffic visible to iptables.
"""

from __future__ import annotations

import re

import structlog

from ..host import Host
from ..shared.paths import (
    FSTAB,
    IP_FORWARD,
    MODULES_LOAD_CONF,
    PROC_MODULES,
    PROC_SWAPS,
    SYSCTL_CONF,
)

logger = structlog.get_logger(__name__)

KERNEL_MODULES = ("overlay", "br_netfilter")

SYSCTL_SETTINGS = {
    "net.bridge.bridge-nf-call-iptables": "1",
    "net.bridge.bridge-nf-call-ip6tables": "1",
    "net.ipv4.ip_forward": "1",
}

_SWAP_ENTRY = re.compile(r"\sswap\s")


def modules_load_content() -> str:
    return "".join(f"{module}\n" for module in KERNEL_MODULES)


def sysctl_content() -> str:
    width = max(len(key) for key in SYSCTL_SETTINGS)
    return "".join(f"{key:<{width}} = {value}\n" for key, value in SYSCTL_SETTINGS.items())


def strip_swap_entries(fstab: str) -> str:
    """Drop every fstab line that mounts a swap device."""
    return "".join(
        line for line in fstab.splitlines(keepends=True) if not _SWAP_ENTRY.search(line)
    )


# ── Swap ────────────────────────────────────────────────────────────────────


def swap_disabled(host: Host) -> bool:
    """True when no swap is active and fstab enables none at boot."""
    active = host.read_text(PROC_SWAPS, default="").splitlines()[1:]
    fstab = host.read_text(FSTAB, default="")
    return not any(line.strip() for line in active) and strip_swap_entries(fstab) == fstab


def disable_swap(host: Host) -> None:
    host.run(["swapoff", "-a"], check=False)
    if host.exists(FSTAB):
        fstab = host.read_text(FSTAB)
        stripped = strip_swap_entries(fstab)
        if stripped != fstab:
            host.write_text(FSTAB, stripped)
            logger.info("removed swap entries from fstab")


# ── Kernel modules ──────────────────────────────────────────────────────────


def kernel_modules_loaded(host: Host) -> bool:
    if host.read_text(MODULES_LOAD_CONF, default="") != modules_load_content():
        return False
    modules = host.read_text(PROC_MODULES, default="")
    loaded = {line.split()[0] for line in modules.splitlines() if line.strip()}
    return all(module in loaded for module in KERNEL_MODULES)


def load_kernel_modules(host: Host) -> None:
    host.write_text(MODULES_LOAD_CONF, modules_load_content())
    for module in KERNEL_MODULES:
        host.run(["modprobe", module])


# ── sysctl ──────────────────────────────────────────────────────────────────


def sysctl_applied(host: Host) -> bool:
    if host.read_text(SYSCTL_CONF, default="") != sysctl_content():
        return False
    return host.read_text(IP_FORWARD, default="0").strip() == "1"


def apply_sysctl(host: Host) -> None:
    host.write_text(SYSCTL_CONF, sysctl_content())
    host.run(["sysctl", "--system"])
