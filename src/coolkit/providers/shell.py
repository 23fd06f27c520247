"""External command execution for the CLI-driven backends.

Every backend talks to its cloud through that cloud's own CLI (``hcloud``,
``doctl``, ``aws``, ``gcloud``, ``az``), to servers through ``ssh`` and to
the local stack through ``docker compose``. ``CommandRunner`` is the single
place those processes are started, so failures always surface as
:class:`~coolkit.core.errors.CommandError` with stderr attached for the
error classifier.
"""

from __future__ import annotations

import json
import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coolkit.core.errors import CommandError

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs commands with captured output and a timeout.

    Example::

        runner = CommandRunner()
        servers = runner.run_json(["hcloud", "server", "list", "-o", "json"])
    """

    def __init__(
        self,
        *,
        env: dict[str, str] | None = None,
        cwd: Path | str | None = None,
        timeout: int = 300,
    ) -> None:
        self.env = env
        self.cwd = cwd
        self.timeout = timeout

    def run(
        self,
        args: list[str],
        *,
        check: bool = True,
        timeout: int | None = None,
        input: str | None = None,
        cwd: Path | str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run ``args``; raise :class:`CommandError` on non-zero exit when ``check``."""
        timeout = timeout or self.timeout
        logger.debug("command.exec", extra={"cmd": shlex.join(args)})
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout,
                input=input,
                cwd=cwd or self.cwd,
                env=self.env,
            )
        except FileNotFoundError as exc:
            raise CommandError(args, None, stderr=f"{args[0]}: command not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                args,
                None,
                message=f"{args[0]} timed out after {timeout}s: {shlex.join(args[1:])}",
            ) from exc

        if check and result.returncode != 0:
            logger.debug(
                "command.failed",
                extra={"cmd": args[0], "returncode": result.returncode, "stderr": result.stderr[-500:]},
            )
            raise CommandError(args, result.returncode, result.stderr, stdout=result.stdout)
        return result

    def output(self, args: list[str], **kwargs: Any) -> str:
        return self.run(args, **kwargs).stdout.strip()

    def run_json(self, args: list[str], **kwargs: Any) -> Any:
        """Run and parse stdout as JSON (``None`` for empty output)."""
        text = self.output(args, **kwargs)
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise CommandError(args, 0, stdout=text, message=f"{args[0]} returned invalid JSON: {exc}") from exc

    @staticmethod
    def available(program: str) -> bool:
        return shutil.which(program) is not None


@dataclass(frozen=True)
class SSHTarget:
    host: str
    user: str = "root"
    port: int = 22
    key_path: Path | None = None

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"


class SSHClient:
    """Runs shell commands on a remote host through the system ``ssh``."""

    OPTIONS = (
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "BatchMode=yes",
        "-o", "ConnectTimeout=10",
        "-o", "LogLevel=ERROR",
    )

    def __init__(self, target: SSHTarget, runner: CommandRunner | None = None) -> None:
        self.target = target
        self.runner = runner or CommandRunner()

    def command(self, remote: str) -> list[str]:
        args = ["ssh", *self.OPTIONS, "-p", str(self.target.port)]
        if self.target.key_path is not None:
            args += ["-i", str(self.target.key_path)]
        args += [f"{self.target.user}@{self.target.host}", remote]
        return args

    def run(self, remote: str, *, timeout: int | None = None, check: bool = True) -> subprocess.CompletedProcess[str]:
        return self.runner.run(self.command(remote), timeout=timeout, check=check)

    def is_reachable(self) -> bool:
        try:
            return self.run("true", timeout=20, check=False).returncode == 0
        except CommandError:
            return False
