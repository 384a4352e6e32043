"""Handle on the machine being provisioned.

Everything the provisioning stages do to the outside world goes through a
Host: spawning commands, reading and writing files, looking up users and
fetching remote artifacts. Absolute paths are resolved under ``root`` so the
same stage code can be pointed at a scratch directory.
"""

from __future__ import annotations

import os
import pwd
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import httpx
import structlog

from .errors import CommandError, DownloadError

logger = structlog.get_logger(__name__)

DOWNLOAD_TIMEOUT = 120.0


@dataclass
class CommandResult:
    """Result of a finished external command."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class UserInfo:
    """Account details needed to hand a file over to a user."""

    name: str
    uid: int
    gid: int
    home: PurePosixPath


class Host:
    """External-system handle passed to every stage."""

    def __init__(
        self,
        root: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ):
        """Initialize host handle.

        Args:
            root: Directory that absolute paths are resolved under (default: /).
            env: Environment for spawned commands (default: os.environ).
        """
        self.root = Path(root) if root else Path("/")
        self.env = dict(os.environ if env is None else env)

    # ── Commands ────────────────────────────────────────────────────────────

    def run(
        self,
        command: Sequence[str],
        *,
        check: bool = True,
        input: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command to completion and capture its output.

        Args:
            command: Program and arguments.
            check: Raise CommandError on a nonzero exit status.
            input: Text fed to stdin.
            env: Extra environment variables layered over the host env.
            timeout: Seconds before the command is killed.

        Returns:
            CommandResult with exit status and captured output.
        """
        cmd = [str(part) for part in command]
        logger.debug("run", command=" ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                input=input,
                env={**self.env, **(env or {})},
                timeout=timeout,
            )
        except FileNotFoundError:
            result = CommandResult(cmd, 127, "", f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            result = CommandResult(cmd, 124, "", f"timed out after {timeout}s")
        else:
            result = CommandResult(cmd, proc.returncode, proc.stdout or "", proc.stderr or "")

        if check and not result.ok:
            raise CommandError(
                message=f"'{' '.join(cmd)}' failed (exit {result.returncode}): "
                f"{result.stderr.strip()}",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def run_first(self, candidates: Sequence[Sequence[str]], **kwargs) -> CommandResult:
        """Run candidate commands in order until one succeeds.

        Raises the last CommandError when every candidate fails.
        """
        if not candidates:
            raise ValueError("run_first needs at least one candidate command")

        last_error: CommandError | None = None
        for command in candidates:
            try:
                return self.run(command, check=True, **kwargs)
            except CommandError as e:
                logger.debug("candidate failed", command=" ".join(e.command), code=e.returncode)
                last_error = e
        assert last_error is not None
        raise last_error

    def which(self, program: str) -> str | None:
        """Locate a program on the host PATH."""
        return shutil.which(program, path=self.env.get("PATH"))

    # ── Filesystem ──────────────────────────────────────────────────────────

    def path(self, path: str | PurePosixPath) -> Path:
        """Resolve an absolute host path under the configured root."""
        relative = PurePosixPath(path)
        if relative.is_absolute():
            relative = relative.relative_to("/")
        return self.root / relative

    def exists(self, path: str | PurePosixPath) -> bool:
        return self.path(path).exists()

    def read_text(self, path: str | PurePosixPath, default: str | None = None) -> str:
        """Read a text file, or return ``default`` when it is missing."""
        target = self.path(path)
        if default is not None and not target.exists():
            return default
        return target.read_text()

    def write_text(
        self,
        path: str | PurePosixPath,
        content: str,
        mode: int | None = None,
    ) -> Path:
        """Write a text file, creating parent directories."""
        target = self.path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        if mode is not None:
            target.chmod(mode)
        return target

    def write_bytes(self, path: str | PurePosixPath, content: bytes) -> Path:
        target = self.path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return target

    def makedirs(self, path: str | PurePosixPath, mode: int = 0o755) -> Path:
        target = self.path(path)
        target.mkdir(mode=mode, parents=True, exist_ok=True)
        return target

    def copy_file(self, src: str | PurePosixPath, dest: str | PurePosixPath) -> Path:
        """Copy a file, overwriting the destination (``cp -f``)."""
        target = self.path(dest)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path(src), target)
        return target

    def chown(self, path: str | PurePosixPath, uid: int, gid: int) -> None:
        os.chown(self.path(path), uid, gid)

    def chmod(self, path: str | PurePosixPath, mode: int) -> None:
        self.path(path).chmod(mode)

    def remove(self, path: str | PurePosixPath) -> None:
        self.path(path).unlink(missing_ok=True)

    # ── Users ───────────────────────────────────────────────────────────────

    def is_root(self) -> bool:
        return os.geteuid() == 0

    @property
    def home(self) -> PurePosixPath:
        """Home directory of the invoking user."""
        return PurePosixPath(self.env.get("HOME") or pwd.getpwuid(os.getuid()).pw_dir)

    @property
    def sudo_user(self) -> str | None:
        """Original user when running under sudo."""
        return self.env.get("SUDO_USER") or None

    def current_user(self) -> UserInfo:
        return UserInfo(
            name=self.env.get("USER", ""),
            uid=os.getuid(),
            gid=os.getgid(),
            home=self.home,
        )

    def lookup_user(self, name: str) -> UserInfo:
        """Look up an account by name.

        Raises:
            KeyError: The account does not exist.
        """
        entry = pwd.getpwnam(name)
        return UserInfo(
            name=name,
            uid=entry.pw_uid,
            gid=entry.pw_gid,
            home=PurePosixPath(entry.pw_dir),
        )

    # ── Network ─────────────────────────────────────────────────────────────

    def _get(self, url: str) -> httpx.Response:
        try:
            response = httpx.get(url, follow_redirects=True, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                message=f"Download of {url} failed: HTTP {e.response.status_code}",
                url=url,
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(message=f"Download of {url} failed: {e}", url=url) from e
        return response

    def fetch_text(self, url: str) -> str:
        """Fetch a small text artifact such as a signing key."""
        logger.debug("fetch", url=url)
        return self._get(url).text

    def download(self, url: str, dest: str | PurePosixPath) -> Path:
        """Download a file to ``dest`` on the host."""
        logger.debug("download", url=url, dest=str(dest))
        return self.write_bytes(dest, self._get(url).content)
