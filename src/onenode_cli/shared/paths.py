"""Well-known system paths touched while provisioning.

All paths are absolute host paths. They are resolved through
:meth:`onenode_cli.host.Host.path` so tests can relocate them under a
temporary root.
"""

from pathlib import PurePosixPath

# Cluster credentials written by kubeadm init
KUBERNETES_DIR = PurePosixPath("/etc/kubernetes")
ADMIN_CONF = KUBERNETES_DIR / "admin.conf"

# kubeadm init output
KUBEADM_INIT_LOG = PurePosixPath("/var/log/kubeadm-init.log")

# Host preparation
FSTAB = PurePosixPath("/etc/fstab")
PROC_SWAPS = PurePosixPath("/proc/swaps")
PROC_MODULES = PurePosixPath("/proc/modules")
MODULES_LOAD_CONF = PurePosixPath("/etc/modules-load.d/k8s.conf")
SYSCTL_CONF = PurePosixPath("/etc/sysctl.d/k8s.conf")
IP_FORWARD = PurePosixPath("/proc/sys/net/ipv4/ip_forward")

# OS identification
OS_RELEASE = PurePosixPath("/etc/os-release")

# Container runtime
CONTAINERD_DIR = PurePosixPath("/etc/containerd")
CONTAINERD_CONFIG = CONTAINERD_DIR / "config.toml"

# Package repositories
APT_KEYRINGS_DIR = PurePosixPath("/etc/apt/keyrings")
DOCKER_KEYRING = APT_KEYRINGS_DIR / "docker.asc"
KUBE_KEYRING = APT_KEYRINGS_DIR / "kubernetes-apt-keyring.gpg"
DOCKER_APT_SOURCE = PurePosixPath("/etc/apt/sources.list.d/docker.list")
KUBE_APT_SOURCE = PurePosixPath("/etc/apt/sources.list.d/kubernetes.list")
KUBE_YUM_REPO = PurePosixPath("/etc/yum.repos.d/kubernetes.repo")

# onenode's own configuration
CONFIG_FILE = PurePosixPath("/etc/onenode/config.yaml")

# Scratch space for downloaded packages
DOWNLOAD_DIR = PurePosixPath("/tmp")


def user_kubeconfig(home: str | PurePosixPath) -> PurePosixPath:
    """Get the kubeconfig path inside a user's home directory."""
    return PurePosixPath(home) / ".kube" / "config"
