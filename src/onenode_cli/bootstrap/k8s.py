"""kubeadm and kubectl wrappers.

Installs the Kubernetes toolchain from pkgs.k8s.io, bootstraps the control
plane and talks to the resulting cluster through kubectl with the admin
credential.
"""

from __future__ import annotations

from pathlib import PurePosixPath

import structlog

from ..errors import CommandError
from ..host import CommandResult, Host
from ..shared.paths import (
    ADMIN_CONF,
    APT_KEYRINGS_DIR,
    KUBE_APT_SOURCE,
    KUBE_KEYRING,
    KUBE_YUM_REPO,
    KUBEADM_INIT_LOG,
)
from .packages import AptPackageManager, PackageManager

logger = structlog.get_logger(__name__)

KUBE_PACKAGES = ("kubelet", "kubeadm", "kubectl")

# Taints kubeadm puts on a control-plane node; "master" is the pre-1.24 name.
CONTROL_PLANE_TAINTS = (
    "node-role.kubernetes.io/control-plane",
    "node-role.kubernetes.io/master",
)

NODE_READY_JSONPATH = '{.items[0].status.conditions[?(@.type=="Ready")].status}'
AVAILABLE_JSONPATH = '{.status.conditions[?(@.type=="Available")].status}'

UNKNOWN = "Unknown"


def kube_repo_base(kube_version: str) -> str:
    return f"https://pkgs.k8s.io/core:/stable:/v{kube_version}"


def kube_yum_repo(kube_version: str) -> str:
    base = kube_repo_base(kube_version)
    return (
        "[kubernetes]\n"
        "name=Kubernetes\n"
        f"baseurl={base}/rpm/\n"
        "enabled=1\n"
        "gpgcheck=1\n"
        f"gpgkey={base}/rpm/repodata/repomd.xml.key\n"
    )


def install_kube_tools(host: Host, packages: PackageManager, kube_version: str) -> None:
    """Install kubelet, kubeadm and kubectl pinned to one minor version."""
    base = kube_repo_base(kube_version)

    if isinstance(packages, AptPackageManager):
        packages.install(["ca-certificates", "curl", "gpg"])
        host.makedirs(APT_KEYRINGS_DIR)
        if not host.exists(KUBE_KEYRING):
            key = host.fetch_text(f"{base}/deb/Release.key")
            host.run(["gpg", "--dearmor", "-o", str(host.path(KUBE_KEYRING))], input=key)
        host.write_text(KUBE_APT_SOURCE, f"deb [signed-by={KUBE_KEYRING}] {base}/deb/ /\n")
        packages.refresh()
        packages.install(KUBE_PACKAGES)
        packages.hold(KUBE_PACKAGES)
    else:
        host.write_text(KUBE_YUM_REPO, kube_yum_repo(kube_version))
        packages.install(KUBE_PACKAGES)

    host.run(["systemctl", "enable", "--now", "kubelet"])
    logger.info("kubernetes tools installed", kubeadm=Kubeadm(host).version())


def kube_tools_installed(host: Host) -> bool:
    return all(host.which(tool) for tool in KUBE_PACKAGES)


class Kubeadm:
    """Control-plane bootstrap through kubeadm."""

    def __init__(self, host: Host):
        self.host = host

    def init(self, pod_cidr: str) -> CommandResult:
        """Initialize the control plane.

        kube-proxy is skipped during init and installed afterwards as a
        separate, best-effort phase. The combined output of init is kept
        in /var/log/kubeadm-init.log.

        Raises:
            CommandError: kubeadm init failed.
        """
        result = self.host.run(
            [
                "kubeadm",
                "init",
                f"--pod-network-cidr={pod_cidr}",
                "--skip-phases=addon/kube-proxy",
            ],
            check=False,
        )
        self.host.write_text(KUBEADM_INIT_LOG, result.stdout + result.stderr)
        if not result.ok:
            raise CommandError(
                message=f"kubeadm init failed (exit {result.returncode}); "
                f"see {KUBEADM_INIT_LOG}",
                command=result.command,
                returncode=result.returncode,
                stderr=result.stderr,
            )

        proxy = self.host.run(
            ["kubeadm", "init", "phase", "addon", "kube-proxy", f"--pod-network-cidr={pod_cidr}"],
            check=False,
        )
        if not proxy.ok:
            logger.warning("kube-proxy addon phase failed", stderr=proxy.stderr.strip())
        return result

    def version(self) -> str:
        result = self.host.run(["kubeadm", "version", "-o", "short"], check=False)
        return result.stdout.strip() if result.ok else UNKNOWN


class Kubectl:
    """kubectl bound to an explicit kubeconfig."""

    def __init__(self, host: Host, kubeconfig: str | PurePosixPath = ADMIN_CONF):
        """Initialize kubectl wrapper.

        Args:
            host: Host handle.
            kubeconfig: Host path of the kubeconfig to use.
        """
        self.host = host
        self.kubeconfig = kubeconfig

    def _kubectl_cmd(self) -> list[str]:
        """Build base kubectl command."""
        return ["kubectl", "--kubeconfig", str(self.host.path(self.kubeconfig))]

    def run(self, args: list[str], check: bool = True) -> CommandResult:
        return self.host.run(self._kubectl_cmd() + args, check=check)

    def apply_url(self, url: str) -> CommandResult:
        """Apply a manifest straight from a URL."""
        return self.run(["apply", "-f", url])

    def remove_control_plane_taints(self) -> list[str]:
        """Remove control-plane taints from every node.

        A taint that is not present makes kubectl exit nonzero; that is
        expected and ignored.

        Returns:
            Taints that were actually removed.
        """
        removed = []
        for taint in CONTROL_PLANE_TAINTS:
            result = self.run(["taint", "nodes", "--all", f"{taint}-"], check=False)
            if result.ok:
                removed.append(taint)
        return removed

    def node_ready_status(self) -> str:
        """Status of the first node's Ready condition ("True", "False" or "Unknown")."""
        result = self.run(["get", "nodes", "-o", f"jsonpath={NODE_READY_JSONPATH}"], check=False)
        return (result.stdout.strip() or UNKNOWN) if result.ok else UNKNOWN

    def deployment_available(self, namespace: str, name: str) -> str:
        """Status of a deployment's Available condition."""
        result = self.run(
            ["-n", namespace, "get", "deployment", name, "-o", f"jsonpath={AVAILABLE_JSONPATH}"],
            check=False,
        )
        return (result.stdout.strip() or UNKNOWN) if result.ok else UNKNOWN

    def deployments_available(self, namespace: str, names: list[str] | tuple[str, ...]) -> bool:
        return all(self.deployment_available(namespace, name) == "True" for name in names)

    def get_nodes_wide(self) -> str:
        result = self.run(["get", "nodes", "-o", "wide"], check=False)
        return result.stdout if result.ok else ""
