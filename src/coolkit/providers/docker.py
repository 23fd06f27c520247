"""Local development stack (``docker compose`` on this machine)."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from pathlib import Path

from coolkit.config.models import DockerConfig, GitConfig
from coolkit.core.errors import CommandError
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.teardown import ResourceHandle, TeardownAction
from coolkit.providers.base import CLIProvider
from coolkit.providers.install import check_health
from coolkit.providers.shell import CommandRunner


class DockerProvider(CLIProvider[DockerConfig]):
    name = "docker"
    display_name = "Local Docker"
    description = "Coolify from source with docker compose on this machine"
    cli = "docker"
    recorded_keys = ()

    def __init__(
        self,
        config: DockerConfig,
        *,
        git: GitConfig | None = None,
        runner: CommandRunner | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        super().__init__(config, runner=runner, sleep=sleep)
        self.git = git or GitConfig()
        self.credentials: dict[str, str] = {}

    @property
    def work_dir(self) -> Path:
        return Path(self.config.work_dir).expanduser()

    def compose(self, *args: str) -> list[str]:
        return ["docker", "compose", "-f", self.config.compose_file, "-p", self.config.project_name, *args]

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate Docker installation", "Checking Docker and Docker Compose", self.validate),
            StepDefinition("Clone Coolify repository", "Fetching latest Coolify from GitHub", self.clone),
            StepDefinition("Generate credentials", "Creating secure credentials", self.generate_credentials),
            StepDefinition("Configure environment", "Writing the .env file", self.configure_environment),
            StepDefinition("Pull Docker images", "Downloading required images", self.pull_images),
            StepDefinition("Start services", "Starting Docker Compose services", self.start_services),
            StepDefinition("Wait for services", "Waiting for containers to run", self.wait_for_services),
            StepDefinition("Run health checks", "Validating deployment", self.health_check),
        ]

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        sink.progress(0.3, "Checking Docker")
        self.runner.run(["docker", "version"])
        sink.progress(0.6, "Checking Docker Compose")
        self.runner.run(["docker", "compose", "version"])
        sink.success("Docker and Docker Compose available")

    def clone(self, sink: EventSink, cancel: CancelToken) -> None:
        work_dir = self.work_dir
        if (work_dir / ".git").exists():
            sink.progress(0.3, "Updating repository")
            self.runner.run(["git", "-C", str(work_dir), "pull", "--ff-only"], timeout=600)
        else:
            sink.progress(0.3, f"Cloning {self.git.repository}")
            self.runner.run(
                ["git", "clone", "--depth", "1", "--branch", self.git.branch, self.git.repository, str(work_dir)],
                timeout=600,
            )
        commit = self.runner.output(["git", "-C", str(work_dir), "log", "-1", "--format=%h %s"])
        if commit:
            sink.info(f"Using commit: {commit[:60]}")

    def generate_credentials(self, sink: EventSink, cancel: CancelToken) -> None:
        sink.progress(0.3, "Generating credentials")
        self.credentials = {
            "APP_KEY": "base64:" + secrets.token_urlsafe(32),
            "DB_PASSWORD": secrets.token_urlsafe(24),
            "REDIS_PASSWORD": secrets.token_urlsafe(24),
            "PUSHER_APP_ID": secrets.token_hex(8),
            "PUSHER_APP_KEY": secrets.token_hex(16),
            "PUSHER_APP_SECRET": secrets.token_hex(16),
        }
        sink.success("Secure credentials generated")

    def configure_environment(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        env = {
            "APP_NAME": "Coolify",
            "APP_ENV": "local",
            "APP_DEBUG": "true" if c.debug else "false",
            "APP_PORT": str(c.app_port),
            "SOKETI_PORT": str(c.websocket_port),
            **self.credentials,
        }
        env_file = self.work_dir / ".env"
        env_file.write_text("".join(f"{key}={value}\n" for key, value in env.items()), encoding="utf-8")
        env_file.chmod(0o600)
        sink.info(f"Wrote {env_file}")

    def pull_images(self, sink: EventSink, cancel: CancelToken) -> None:
        sink.progress(0.2, "Pulling images")
        self.runner.run(self.compose("pull"), cwd=self.work_dir, timeout=1800)

    def start_services(self, sink: EventSink, cancel: CancelToken) -> None:
        sink.progress(0.3, "Starting services")
        self.runner.run(self.compose("up", "-d"), cwd=self.work_dir, timeout=900)
        self.record("project_name", self.config.project_name)
        sink.success("Docker Compose services started")

    def wait_for_services(self, sink: EventSink, cancel: CancelToken) -> None:
        def running() -> bool:
            try:
                ids = self.runner.output(self.compose("ps", "--status", "running", "-q"), cwd=self.work_dir)
            except CommandError:
                return False
            return bool(ids)

        self.poll(running, sink, cancel, description="Compose services", timeout=self.config.ready_timeout)

    def health_check(self, sink: EventSink, cancel: CancelToken) -> None:
        url = f"http://localhost:{self.config.app_port}"
        self.poll(
            lambda: check_health(url),
            sink,
            cancel,
            description=f"Dashboard at {url}",
            timeout=self.config.ready_timeout,
            interval=3.0,
        )
        self.dashboard_url = url
        sink.success(f"Dashboard available at {url}")

    def teardown_plan(self) -> list[TeardownAction]:
        if not self.work_dir.exists():
            return []
        return [
            TeardownAction(
                ResourceHandle("compose_project", self.config.project_name),
                lambda: self.runner.run(self.compose("down", "--volumes"), cwd=self.work_dir, timeout=600),
                cascading=True,
            )
        ]
