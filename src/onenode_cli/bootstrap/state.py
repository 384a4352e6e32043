"""Cluster state detection.

Nothing about a provisioning run is persisted; the state of a host is
always derived by asking the host and the cluster.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..host import Host
from .health import ApiServerHealth
from .k8s import UNKNOWN, Kubectl, kube_tools_installed
from .runtime import containerd_active, containerd_installed
from .stages import (
    CERT_MANAGER_DEPLOYMENTS,
    CERT_MANAGER_NAMESPACE,
    INGRESS_DEPLOYMENTS,
    INGRESS_NAMESPACE,
    control_plane_initialized,
)
from .tools import k9s_installed


@dataclass
class ClusterState:
    """Current state of a provisioned (or partially provisioned) host."""

    containerd_installed: bool = False
    containerd_running: bool = False
    kube_tools_installed: bool = False
    k9s_installed: bool = False
    control_plane_initialized: bool = False
    api_server_ready: bool = False
    node_ready: str = UNKNOWN
    components: dict[str, bool] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return (
            self.control_plane_initialized
            and self.api_server_ready
            and self.node_ready == "True"
            and all(self.components.values())
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "containerd_installed": self.containerd_installed,
            "containerd_running": self.containerd_running,
            "kube_tools_installed": self.kube_tools_installed,
            "k9s_installed": self.k9s_installed,
            "control_plane_initialized": self.control_plane_initialized,
            "api_server_ready": self.api_server_ready,
            "node_ready": self.node_ready,
            "components": dict(self.components),
            "healthy": self.healthy,
        }


class ClusterStateDetector:
    """Derive ClusterState from the host."""

    def __init__(self, host: Host):
        self.host = host

    def detect(self) -> ClusterState:
        """Detect current cluster state.

        Cluster queries are only attempted once the control plane has been
        initialized.
        """
        state = ClusterState(
            containerd_installed=containerd_installed(self.host),
            kube_tools_installed=kube_tools_installed(self.host),
            k9s_installed=k9s_installed(self.host),
            control_plane_initialized=control_plane_initialized(self.host),
        )
        if state.containerd_installed:
            state.containerd_running = containerd_active(self.host)

        if not state.control_plane_initialized:
            return state

        state.api_server_ready = ApiServerHealth().check(self.host)
        if not state.api_server_ready:
            return state

        kubectl = Kubectl(self.host)
        state.node_ready = kubectl.node_ready_status()
        state.components = {
            "ingress-nginx": kubectl.deployments_available(INGRESS_NAMESPACE, INGRESS_DEPLOYMENTS),
            "cert-manager": kubectl.deployments_available(
                CERT_MANAGER_NAMESPACE, CERT_MANAGER_DEPLOYMENTS
            ),
        }
        return state
