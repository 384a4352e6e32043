"""Cluster commands: up, plan and status.

`onenode up` provisions this host as a single-node cluster. It is safe to
re-run: stages whose effects are already in place are skipped.
"""

from __future__ import annotations

import json
from typing import Any

import click

from ..bootstrap import (
    ClusterBootstrapper,
    ClusterStateDetector,
    Kubectl,
    OSDetector,
    OSInfo,
    Stage,
    build_stages,
    require_root,
)
from ..config import ClusterConfig, load_config
from ..decorators import fail, reports_errors
from ..errors import BootstrapError, StageFailedError
from ..formatters import print_plan, print_record, print_report, print_state, print_summary
from ..host import Host
from ..shared.paths import user_kubeconfig


def _host(ctx: click.Context) -> Host:
    host = ctx.obj.get("host")
    if host is None:
        host = ctx.obj["host"] = Host()
    return host


def _echo_json(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2))


def _prepare(ctx: click.Context, need_root: bool) -> tuple[Host, ClusterConfig, OSInfo]:
    host = _host(ctx)
    config = load_config(ctx.obj.get("config_path"), env=host.env)
    if need_root:
        require_root(host)
    return host, config, OSDetector().detect(host)


def _on_attempt(stage: Stage, attempt: int, max_attempts: int, value: Any) -> None:
    click.echo(f"    {stage.name}: attempt {attempt}/{max_attempts} ({value})", nl=False)
    click.echo("\r", nl=False)


@click.command()
@click.pass_context
@reports_errors
def up(ctx: click.Context) -> None:
    """Provision this host as a single-node Kubernetes cluster.

    Installs containerd and kubeadm/kubelet/kubectl, initializes the control
    plane, removes the control-plane taints and installs Flannel,
    ingress-nginx and cert-manager.

    Examples:

        sudo onenode up

        sudo ONENODE_KUBE_VERSION=1.30 onenode up

        sudo onenode -c cluster.yaml up
    """
    json_output = ctx.obj.get("json_output", False)
    host, config, os_info = _prepare(ctx, need_root=True)

    if not json_output:
        click.echo(f"\nDetected {os_info.family.value}-based OS: {os_info.pretty_name}\n")

    bootstrapper = ClusterBootstrapper(
        host,
        on_record=None if json_output else print_record,
        on_attempt=None if json_output else _on_attempt,
    )
    try:
        report = bootstrapper.run(build_stages(host, config, os_info))
    except StageFailedError as e:
        if e.report is not None:
            if json_output:
                _echo_json(e.report.to_dict())
            else:
                click.echo()
                print_report(e.report)
        fail(e)

    if json_output:
        _echo_json(report.to_dict())
        return

    click.echo()
    print_report(report)
    print_summary(
        config,
        report,
        nodes=Kubectl(host).get_nodes_wide(),
        kubeconfig=str(user_kubeconfig(host.home)),
    )


@click.command()
@click.pass_context
@reports_errors
def plan(ctx: click.Context) -> None:
    """Show the provisioning stages and which are already satisfied."""
    host, config, os_info = _prepare(ctx, need_root=False)
    stages = build_stages(host, config, os_info)

    satisfied: dict[str, bool] = {}
    for stage in stages:
        if stage.is_satisfied is None:
            continue
        try:
            satisfied[stage.name] = bool(stage.is_satisfied(host))
        except (BootstrapError, OSError):
            satisfied[stage.name] = False

    if ctx.obj.get("json_output"):
        _echo_json(
            {
                "os": os_info.id,
                "stages": [
                    {
                        "name": stage.name,
                        "description": stage.description,
                        "optional": stage.optional,
                        "satisfied": satisfied.get(stage.name),
                        "probe": stage.probe.description if stage.probe else None,
                    }
                    for stage in stages
                ],
            }
        )
        return

    click.echo(f"\nProvisioning plan for {os_info.pretty_name}:\n")
    print_plan(stages, satisfied)


@click.command()
@click.pass_context
@reports_errors
def status(ctx: click.Context) -> None:
    """Show the state of the cluster on this host."""
    host = _host(ctx)
    state = ClusterStateDetector(host).detect()

    if ctx.obj.get("json_output"):
        _echo_json(state.to_dict())
        return

    if not state.control_plane_initialized:
        click.echo("No cluster found on this host. Run: sudo onenode up")
    print_state(state)
    if state.control_plane_initialized and not state.api_server_ready and not host.is_root():
        click.echo("API server not reachable as this user. Try: sudo onenode status")
