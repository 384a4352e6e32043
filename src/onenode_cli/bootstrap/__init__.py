"""Bootstrap package for provisioning a single-node cluster.

This package provides the `onenode up` flow which:
1. Detects the host OS family
2. Prepares the host (swap, kernel modules, sysctl)
3. Installs and configures containerd and the kubeadm toolchain
4. Initializes the control plane and distributes the admin kubeconfig
5. Installs Flannel, ingress-nginx and cert-manager, polling for readiness
"""

from .health import ApiServerHealth, HealthCheckResult
from .k8s import Kubeadm, Kubectl
from .packages import AptPackageManager, DnfPackageManager, PackageManager, package_manager_for
from .prerequisites import OSDetector, OSFamily, OSInfo, require_root
from .sequencer import (
    BootstrapReport,
    ClusterBootstrapper,
    PollResult,
    ReadinessProbe,
    Stage,
    StageOutcome,
    StageRecord,
)
from .stages import build_stages
from .state import ClusterState, ClusterStateDetector

__all__ = [
    # Sequencer
    "ClusterBootstrapper",
    "Stage",
    "ReadinessProbe",
    "StageOutcome",
    "StageRecord",
    "BootstrapReport",
    "PollResult",
    # Plan
    "build_stages",
    # Prerequisites
    "OSDetector",
    "OSFamily",
    "OSInfo",
    "require_root",
    # Package managers
    "PackageManager",
    "AptPackageManager",
    "DnfPackageManager",
    "package_manager_for",
    # Kubernetes
    "Kubeadm",
    "Kubectl",
    "ApiServerHealth",
    "HealthCheckResult",
    # State
    "ClusterState",
    "ClusterStateDetector",
]
