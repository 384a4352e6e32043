"""Shared test fixtures for onenode-cli tests.

- host: a Host rooted in a temporary directory
- commands: records every subprocess.run call and answers with canned results
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog

from onenode_cli.host import Host

DEBIAN_OS_RELEASE = """\
PRETTY_NAME="Ubuntu 24.04.1 LTS"
NAME="Ubuntu"
VERSION_ID="24.04"
VERSION_CODENAME=noble
ID=ubuntu
ID_LIKE=debian
"""

ROCKY_OS_RELEASE = """\
NAME="Rocky Linux"
VERSION="9.4 (Blue Onyx)"
ID="rocky"
ID_LIKE="rhel centos fedora"
PRETTY_NAME="Rocky Linux 9.4 (Blue Onyx)"
"""


@dataclass
class CannedResponse:
    """Result returned for commands containing ``tokens`` in order."""

    tokens: tuple[str, ...]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


def _contains_in_order(command: list[str], tokens: tuple[str, ...]) -> bool:
    remaining = iter(command)
    return all(token in remaining for token in tokens)


class CommandRecorder:
    """Stand-in for subprocess.run.

    The most recently registered matching response wins; unmatched commands
    succeed with empty output.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self.envs: list[dict[str, str]] = []
        self._responses: list[CannedResponse] = []

    def respond(self, *tokens: str, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self._responses.insert(0, CannedResponse(tokens, returncode, stdout, stderr))

    def __call__(self, cmd, *args, **kwargs):
        command = list(cmd)
        self.calls.append(command)
        self.inputs.append(kwargs.get("input"))
        self.envs.append(kwargs.get("env") or {})
        for response in self._responses:
            if _contains_in_order(command, response.tokens):
                return MagicMock(
                    returncode=response.returncode,
                    stdout=response.stdout,
                    stderr=response.stderr,
                )
        return MagicMock(returncode=0, stdout="", stderr="")

    def ran(self, *tokens: str) -> bool:
        return any(_contains_in_order(call, tokens) for call in self.calls)

    def count(self, *tokens: str) -> int:
        return sum(1 for call in self.calls if _contains_in_order(call, tokens))

    def index(self, *tokens: str) -> int:
        for i, call in enumerate(self.calls):
            if _contains_in_order(call, tokens):
                return i
        raise ValueError(f"no command matching {tokens}")


@pytest.fixture
def host(tmp_path: Path) -> Host:
    """Host rooted in a temporary directory, invoked by root."""
    return Host(root=tmp_path, env={"HOME": "/root", "PATH": "/usr/bin:/bin", "USER": "root"})


@pytest.fixture
def debian_host(host: Host) -> Host:
    host.write_text("/etc/os-release", DEBIAN_OS_RELEASE)
    return host


@pytest.fixture
def rocky_host(host: Host) -> Host:
    host.write_text("/etc/os-release", ROCKY_OS_RELEASE)
    return host


@pytest.fixture
def commands() -> Generator[CommandRecorder, None, None]:
    recorder = CommandRecorder()
    with patch("subprocess.run", side_effect=recorder):
        yield recorder


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Drop handlers bound to CliRunner streams once a test finishes."""
    yield
    structlog.reset_defaults()
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)
