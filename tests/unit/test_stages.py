"""Unit tests for the provisioning plan."""

from unittest.mock import patch

import pytest

from onenode_cli.bootstrap.packages import AptPackageManager, DnfPackageManager
from onenode_cli.bootstrap.prerequisites import OSFamily, OSInfo
from onenode_cli.bootstrap.stages import (
    build_stages,
    control_plane_initialized,
    deployments_available,
)
from onenode_cli.config import ClusterConfig

UBUNTU = OSInfo(id="ubuntu", family=OSFamily.DEBIAN, version_codename="noble")
ROCKY = OSInfo(id="rocky", family=OSFamily.RHEL)

EXPECTED_ORDER = [
    "disable-swap",
    "kernel-modules",
    "sysctl",
    "install-containerd",
    "configure-containerd",
    "install-kube-tools",
    "install-k9s",
    "init-control-plane",
    "configure-kubeconfig",
    "remove-taints",
    "apply-cni",
    "wait-node-ready",
    "install-ingress-nginx",
    "install-cert-manager",
]


def _by_name(stages):
    return {stage.name: stage for stage in stages}


class TestBuildStages:
    """Tests for build_stages."""

    def test_order(self, host):
        """Test stages follow the provisioning order."""
        stages = build_stages(host, ClusterConfig(), UBUNTU)

        assert [s.name for s in stages] == EXPECTED_ORDER

    def test_k9s_can_be_disabled(self, host):
        """Test install_k9s=false drops the k9s stage."""
        stages = build_stages(host, ClusterConfig(install_k9s=False), UBUNTU)

        assert "install-k9s" not in [s.name for s in stages]

    def test_only_k9s_is_optional(self, host):
        stages = build_stages(host, ClusterConfig(), UBUNTU)
        assert [s.name for s in stages if s.optional] == ["install-k9s"]

    def test_guards(self, host):
        """Test which stages carry idempotency checks."""
        stages = _by_name(build_stages(host, ClusterConfig(), UBUNTU))

        guarded = {name for name, stage in stages.items() if stage.is_satisfied is not None}
        assert guarded == {
            "disable-swap",
            "kernel-modules",
            "sysctl",
            "install-containerd",
            "configure-containerd",
            "install-kube-tools",
            "install-k9s",
            "init-control-plane",
        }

    def test_probe_budgets_follow_config(self, host):
        """Test probe timeouts and intervals come from the config."""
        config = ClusterConfig(node_ready_timeout=60, deployment_timeout=90, poll_interval=3)
        stages = _by_name(build_stages(host, config, UBUNTU))

        node = stages["wait-node-ready"].probe
        assert (node.timeout_seconds, node.interval_seconds, node.target) == (60, 3, "True")
        assert not stages["wait-node-ready"].actions

        for name in ("install-ingress-nginx", "install-cert-manager"):
            probe = stages[name].probe
            assert (probe.timeout_seconds, probe.interval_seconds) == (90, 3)

        assert stages["init-control-plane"].probe.timeout_seconds == 60
        containerd = stages["configure-containerd"].probe
        assert (containerd.timeout_seconds, containerd.interval_seconds) == (10, 1)

    def test_rhel_plan_uses_dnf(self, host, commands):
        """Test the containerd action installs through dnf on RHEL hosts."""
        stages = _by_name(build_stages(host, ClusterConfig(), ROCKY))

        stages["install-containerd"].actions[0](host)

        assert commands.ran("dnf", "install", "containerd.io")
        assert not commands.ran("apt-get")

    @pytest.mark.parametrize(
        ("os_info", "manager"),
        [(UBUNTU, AptPackageManager), (ROCKY, DnfPackageManager)],
    )
    def test_package_manager_bound(self, host, os_info, manager):
        stages = _by_name(build_stages(host, ClusterConfig(), os_info))
        assert isinstance(stages["install-kube-tools"].actions[0].keywords["packages"], manager)


class TestStageActions:
    """Tests for actions the plan wires together."""

    def test_init_guard(self, host):
        """Test the control plane counts as initialized once admin.conf exists."""
        assert not control_plane_initialized(host)
        host.write_text("/etc/kubernetes/admin.conf", "x")
        assert control_plane_initialized(host)

    def test_init_action_passes_pod_cidr(self, host, commands):
        stages = _by_name(build_stages(host, ClusterConfig(pod_cidr="10.50.0.0/16"), UBUNTU))

        stages["init-control-plane"].actions[0](host)

        assert commands.ran("kubeadm", "init", "--pod-network-cidr=10.50.0.0/16")

    def test_apply_actions_use_pinned_urls(self, host, commands):
        """Test manifest stages apply the configured URLs."""
        config = ClusterConfig()
        stages = _by_name(build_stages(host, config, UBUNTU))

        stages["apply-cni"].actions[0](host)
        stages["install-ingress-nginx"].actions[0](host)
        stages["install-cert-manager"].actions[0](host)

        assert commands.ran("apply", "-f", config.cni_manifest_url)
        assert commands.ran("apply", "-f", config.ingress_manifest_url)
        assert commands.ran("apply", "-f", config.cert_manager_manifest_url)

    def test_remove_taints_never_fails(self, host, commands):
        """Test absent taints do not fail the stage."""
        commands.respond("taint", returncode=1, stderr="not found")
        stages = _by_name(build_stages(host, ClusterConfig(), UBUNTU))

        stages["remove-taints"].actions[0](host)

    def test_cert_manager_probe_needs_all_deployments(self, host, commands):
        """Test the cert-manager probe waits for webhook and cainjector."""
        commands.respond("get", "deployment", stdout="True")
        commands.respond("cert-manager-cainjector", stdout="False")
        stages = _by_name(build_stages(host, ClusterConfig(), UBUNTU))

        assert not stages["install-cert-manager"].probe.check(host)
        assert deployments_available(host, "cert-manager", ("cert-manager",))

    def test_k9s_guard(self, host):
        stages = _by_name(build_stages(host, ClusterConfig(), UBUNTU))
        with patch("shutil.which", return_value="/usr/bin/k9s"):
            assert stages["install-k9s"].is_satisfied(host)
