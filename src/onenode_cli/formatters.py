"""CLI output formatting helpers."""

from typing import Any

import click
import yaml

from .bootstrap.sequencer import BootstrapReport, Stage, StageOutcome, StageRecord
from .bootstrap.state import ClusterState
from .config import ClusterConfig, config_keys, env_var

OUTCOME_MARKS = {
    StageOutcome.SKIPPED: "↷",
    StageOutcome.SUCCEEDED: "✓",
    StageOutcome.TIMED_OUT: "⚠",
    StageOutcome.FAILED: "✗",
}


def print_record(record: StageRecord) -> None:
    """Print one finished stage as a progress line."""
    mark = OUTCOME_MARKS[record.outcome]
    line = f"  {mark} {record.name}: {record.outcome.value}"
    if record.attempts:
        line += f" ({record.attempts} probe{'s' if record.attempts != 1 else ''})"
    click.echo(line)
    if record.message and record.outcome != StageOutcome.SUCCEEDED:
        click.echo(f"      {record.message}")


def print_report(report: BootstrapReport) -> None:
    """Print stage outcome counts and warnings."""
    counts: dict[StageOutcome, int] = {}
    for record in report.records:
        counts[record.outcome] = counts.get(record.outcome, 0) + 1

    summary = ", ".join(f"{n} {outcome.value}" for outcome, n in counts.items())
    click.echo(f"Stages: {summary or 'none'}")

    if report.warnings:
        click.echo("\nIncomplete components:")
        for record in report.warnings:
            click.echo(f"  ⚠ {record.name}: {record.message}")


def print_summary(
    config: ClusterConfig,
    report: BootstrapReport,
    nodes: str,
    kubeconfig: str,
) -> None:
    """Print the closing banner after a completed run."""
    click.echo("\n" + "=" * 60)
    if report.warnings:
        click.echo(" Single-node Kubernetes cluster is up (with warnings)")
    else:
        click.echo(" Single-node Kubernetes cluster is ready!")
    click.echo("=" * 60 + "\n")

    if nodes:
        click.echo(nodes.rstrip() + "\n")

    skipped_k9s = report.outcome_of("install-k9s") in (None, StageOutcome.FAILED)
    click.echo("Installed components:")
    click.echo("  - containerd (container runtime)")
    click.echo(f"  - kubeadm / kubelet / kubectl  v{config.kube_version}.x")
    click.echo("  - Flannel CNI (pod networking)")
    click.echo(f"  - NGINX Ingress Controller {config.ingress_nginx_version}")
    click.echo(f"  - cert-manager {config.cert_manager_version}")
    if not skipped_k9s:
        click.echo(f"  - k9s {config.k9s_version} (Kubernetes CLI)")

    click.echo(f"\nKUBECONFIG: {kubeconfig}\n")
    click.echo("Next steps:")
    click.echo("  kubectl get pods -A               # verify all system pods")
    click.echo("  kubectl get svc -n ingress-nginx  # ingress controller service")


def print_plan(stages: list[Stage], satisfied: dict[str, bool]) -> None:
    """Print the provisioning plan.

    Args:
        stages: Stages in execution order.
        satisfied: Stage name -> whether its idempotency check holds now.
    """
    for i, stage in enumerate(stages, 1):
        if stage.is_satisfied is None:
            status = "always runs"
        elif satisfied.get(stage.name):
            status = "satisfied, will skip"
        else:
            status = "pending"
        flags = " [optional]" if stage.optional else ""
        click.echo(f"  {i:2}. {stage.name}{flags}: {stage.description} ({status})")
        if stage.probe:
            click.echo(
                f"      waits for {stage.probe.description} "
                f"(every {stage.probe.interval_seconds:g}s, up to {stage.probe.timeout_seconds:g}s)"
            )


def print_state(state: ClusterState) -> None:
    """Print detected cluster state."""

    def mark(ok: bool) -> str:
        return "✓" if ok else "✗"

    click.echo(f"  {mark(state.containerd_installed)} containerd installed")
    click.echo(f"  {mark(state.containerd_running)} containerd running")
    click.echo(f"  {mark(state.kube_tools_installed)} kubeadm / kubelet / kubectl installed")
    click.echo(f"  {mark(state.k9s_installed)} k9s installed")
    click.echo(f"  {mark(state.control_plane_initialized)} control plane initialized")
    click.echo(f"  {mark(state.api_server_ready)} API server ready")
    click.echo(f"  {mark(state.node_ready == 'True')} node Ready: {state.node_ready}")
    for name, available in state.components.items():
        click.echo(f"  {mark(available)} {name} available")


def print_config(config: ClusterConfig) -> None:
    """Print effective configuration as YAML with value sources."""
    data: dict[str, Any] = config.to_dict()
    click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False).rstrip())
    click.echo("\nSources:")
    for key in config_keys():
        source = config.get_source(key)
        hint = f" ({env_var(key)})" if source == "environment" else ""
        click.echo(f"  {key}: {source}{hint}")
