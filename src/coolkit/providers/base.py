"""Shared plumbing for the CLI-driven backends."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import ClassVar, Generic, TypeVar

from coolkit.config.models import ProviderConfig, SectionModel
from coolkit.core.errors import ConfigError, ProviderError
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.provider import StepProvider
from coolkit.execution.retry import poll_until
from coolkit.providers.install import remote_install_steps
from coolkit.providers.shell import CommandRunner, SSHClient, SSHTarget

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=SectionModel)

# inbound ports the platform needs: ssh, http, https, dashboard, realtime
PLATFORM_PORTS = (22, 80, 443, 8000, 6001, 6002)

# wait before deleting a parent whose children were just deleted
SETTLE_SECONDS = 5.0


class CLIProvider(StepProvider, Generic[C]):
    """A backend that drives a vendor CLI through :class:`CommandRunner`.

    ``sleep`` replaces the cancel-aware wait inside polling loops (tests).
    """

    cli: ClassVar[str] = ""
    description: ClassVar[str] = ""
    # config keys written by a deployment and cleared by a successful destroy
    recorded_keys: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        config: C,
        *,
        runner: CommandRunner | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.runner = runner or CommandRunner(env=self.command_env())
        self.sleep = sleep
        self.host: str | None = None

    def command_env(self) -> dict[str, str] | None:
        return None

    # ── Helpers for steps ────────────────────────────────────────

    def check_cli(self, sink: EventSink, *version_args: str) -> None:
        sink.progress(0.2, f"Checking {self.cli}")
        version = self.runner.output([self.cli, *(version_args or ("--version",))])
        first_line = version.splitlines()[0] if version else self.cli
        sink.info(f"Using {first_line}")

    def poll(
        self,
        check: Callable[[], object],
        sink: EventSink,
        cancel: CancelToken,
        *,
        description: str,
        timeout: float,
        interval: float = 5.0,
    ):
        return poll_until(
            check,
            timeout=timeout,
            interval=interval,
            description=description,
            cancel=cancel,
            sleep=self.sleep,
            on_wait=lambda fraction: sink.progress(0.9 * fraction, description),
        )

    def read_public_key(self) -> str:
        config = self.provider_config
        path = config.public_key
        if not path.exists():
            raise ConfigError(f"SSH public key not found: {path} (set {self.name}.ssh_key_path)")
        return path.read_text(encoding="utf-8").strip()

    @property
    def provider_config(self) -> ProviderConfig:
        if not isinstance(self.config, ProviderConfig):
            raise ProviderError(f"{self.name} does not use SSH")
        return self.config

    # ── Remote install ───────────────────────────────────────────

    ssh_user: ClassVar[str] = "root"

    def ssh_user_name(self) -> str:
        return self.ssh_user

    def ssh(self) -> SSHClient:
        if not self.host:
            raise ProviderError("Server address is not known yet")
        target = SSHTarget(self.host, user=self.ssh_user_name(), key_path=self.provider_config.private_key)
        return SSHClient(target, self.runner)

    def set_host(self, host: str, sink: EventSink) -> None:
        self.host = host
        self.record("public_ip", host)
        sink.info(f"Public IP: {host}")

    def install_steps(self, *, wait_for_host: bool = True) -> list[StepDefinition]:
        config = self.provider_config
        return remote_install_steps(
            self.ssh,
            port=lambda: config.dashboard_port,
            ready_timeout=config.ready_timeout,
            install_timeout=config.install_timeout,
            on_ready=self._ready,
            wait_for_host=wait_for_host,
            sleep=self.sleep,
        )

    def _ready(self, url: str) -> None:
        self.dashboard_url = url
        logger.info("provider.ready", extra={"provider": self.name, "url": url})
