"""The single-node provisioning plan.

Builds the ordered stage list that takes a bare Debian or RHEL host to a
schedulable one-node cluster with Flannel, ingress-nginx and cert-manager.

Manifest stages carry no idempotency check: ``kubectl apply`` converges on
its own, so re-running them is safe.
"""

from __future__ import annotations

from functools import partial

from ..config import ClusterConfig
from ..host import Host
from ..shared.paths import ADMIN_CONF
from .health import ApiServerHealth
from .k8s import Kubeadm, Kubectl, install_kube_tools, kube_tools_installed
from .kubeconfig import distribute_admin_kubeconfig
from .packages import PackageManager, package_manager_for
from .prerequisites import OSInfo
from .runtime import (
    configure_containerd,
    containerd_active,
    containerd_configured,
    containerd_installed,
    install_containerd,
)
from .sequencer import ReadinessProbe, Stage
from .system import (
    apply_sysctl,
    disable_swap,
    kernel_modules_loaded,
    load_kernel_modules,
    swap_disabled,
    sysctl_applied,
)
from .tools import install_k9s, k9s_installed

INGRESS_NAMESPACE = "ingress-nginx"
INGRESS_DEPLOYMENTS = ("ingress-nginx-controller",)
CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_DEPLOYMENTS = ("cert-manager", "cert-manager-webhook", "cert-manager-cainjector")

CONTAINERD_READY_TIMEOUT = 10
CONTAINERD_READY_INTERVAL = 1


def control_plane_initialized(host: Host) -> bool:
    return host.exists(ADMIN_CONF)


def init_control_plane(host: Host, pod_cidr: str) -> None:
    Kubeadm(host).init(pod_cidr)


def remove_taints(host: Host) -> None:
    Kubectl(host).remove_control_plane_taints()


def apply_manifest(host: Host, url: str) -> None:
    Kubectl(host).apply_url(url)


def node_ready(host: Host) -> str:
    return Kubectl(host).node_ready_status()


def deployments_available(host: Host, namespace: str, names: tuple[str, ...]) -> bool:
    return Kubectl(host).deployments_available(namespace, names)


def build_stages(host: Host, config: ClusterConfig, os_info: OSInfo) -> list[Stage]:
    """Build the ordered provisioning plan for a host.

    Args:
        host: Host handle (used to pick the package manager).
        config: Cluster configuration.
        os_info: Detected OS.

    Returns:
        Stages in execution order.
    """
    packages: PackageManager = package_manager_for(host, os_info)
    interval = config.poll_interval

    stages = [
        Stage(
            "disable-swap",
            actions=[disable_swap],
            is_satisfied=swap_disabled,
            description="Disable swap now and at boot",
        ),
        Stage(
            "kernel-modules",
            actions=[load_kernel_modules],
            is_satisfied=kernel_modules_loaded,
            description="Load overlay and br_netfilter",
        ),
        Stage(
            "sysctl",
            actions=[apply_sysctl],
            is_satisfied=sysctl_applied,
            description="Enable bridged traffic filtering and IP forwarding",
        ),
        Stage(
            "install-containerd",
            actions=[partial(install_containerd, os_info=os_info, packages=packages)],
            is_satisfied=containerd_installed,
            description="Install containerd",
        ),
        Stage(
            "configure-containerd",
            actions=[partial(configure_containerd, pause_image=config.pause_image)],
            is_satisfied=partial(containerd_configured, pause_image=config.pause_image),
            probe=ReadinessProbe(
                containerd_active,
                timeout_seconds=CONTAINERD_READY_TIMEOUT,
                interval_seconds=CONTAINERD_READY_INTERVAL,
                description="containerd service",
            ),
            description="Configure containerd for the systemd cgroup driver",
        ),
        Stage(
            "install-kube-tools",
            actions=[
                partial(install_kube_tools, packages=packages, kube_version=config.kube_version)
            ],
            is_satisfied=kube_tools_installed,
            description=f"Install kubeadm, kubelet and kubectl v{config.kube_version}",
        ),
    ]

    if config.install_k9s:
        stages.append(
            Stage(
                "install-k9s",
                actions=[partial(install_k9s, packages=packages, version=config.k9s_version)],
                is_satisfied=k9s_installed,
                optional=True,
                description=f"Install k9s {config.k9s_version}",
            )
        )

    stages += [
        Stage(
            "init-control-plane",
            actions=[partial(init_control_plane, pod_cidr=config.pod_cidr)],
            is_satisfied=control_plane_initialized,
            probe=ReadinessProbe(
                ApiServerHealth().check,
                timeout_seconds=config.node_ready_timeout,
                interval_seconds=interval,
                description="API server /readyz",
            ),
            description=f"kubeadm init (pod CIDR {config.pod_cidr})",
        ),
        Stage(
            "configure-kubeconfig",
            actions=[distribute_admin_kubeconfig],
            description="Install admin kubeconfig for the current and sudo user",
        ),
        Stage(
            "remove-taints",
            actions=[remove_taints],
            description="Allow workloads on the control-plane node",
        ),
        Stage(
            "apply-cni",
            actions=[partial(apply_manifest, url=config.cni_manifest_url)],
            description="Install Flannel CNI",
        ),
        Stage(
            "wait-node-ready",
            probe=ReadinessProbe(
                node_ready,
                timeout_seconds=config.node_ready_timeout,
                interval_seconds=interval,
                target="True",
                description="node Ready condition",
            ),
            description="Wait for the node to become Ready",
        ),
        Stage(
            "install-ingress-nginx",
            actions=[partial(apply_manifest, url=config.ingress_manifest_url)],
            probe=ReadinessProbe(
                partial(
                    deployments_available,
                    namespace=INGRESS_NAMESPACE,
                    names=INGRESS_DEPLOYMENTS,
                ),
                timeout_seconds=config.deployment_timeout,
                interval_seconds=interval,
                description="ingress-nginx controller",
            ),
            description=f"Install NGINX Ingress Controller {config.ingress_nginx_version}",
        ),
        Stage(
            "install-cert-manager",
            actions=[partial(apply_manifest, url=config.cert_manager_manifest_url)],
            probe=ReadinessProbe(
                partial(
                    deployments_available,
                    namespace=CERT_MANAGER_NAMESPACE,
                    names=CERT_MANAGER_DEPLOYMENTS,
                ),
                timeout_seconds=config.deployment_timeout,
                interval_seconds=interval,
                description="cert-manager deployments",
            ),
            description=f"Install cert-manager {config.cert_manager_version}",
        ),
    ]
    return stages
