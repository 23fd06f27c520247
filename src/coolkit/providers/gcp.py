"""Google Cloud backend (``gcloud`` CLI)."""

from __future__ import annotations

from coolkit.config.models import GCPConfig
from coolkit.core.errors import CommandError, MissingConfigError, ProviderError
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.teardown import ResourceHandle, TeardownAction
from coolkit.providers.base import PLATFORM_PORTS, SETTLE_SECONDS, CLIProvider

NETWORK_TAG = "coolify"


class GCPProvider(CLIProvider[GCPConfig]):
    name = "gcp"
    display_name = "Google Cloud"
    description = "Compute Engine instance provisioned with the gcloud CLI"
    cli = "gcloud"
    recorded_keys = ("created_instance", "created_firewall", "public_ip")

    def ssh_user_name(self) -> str:
        return self.config.ssh_user

    def gcloud(self, *args: str) -> list[str]:
        return ["gcloud", *args, "--project", self.config.project, "--format", "json"]

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate GCP credentials", "Checking gcloud CLI and credentials", self.validate),
            StepDefinition("Configure firewall rules", "Setting up security rules", self.configure_firewall),
            StepDefinition("Launch Compute Engine instance", "Creating virtual machine", self.create_instance),
            StepDefinition("Wait for instance", "Waiting for the instance to run", self.wait_for_instance),
            *self.install_steps(),
        ]

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        if not self.config.project:
            raise MissingConfigError("gcp.project")
        self.check_cli(sink)
        sink.progress(0.6, "Checking active account")
        accounts = self.runner.run_json(
            ["gcloud", "auth", "list", "--filter", "status:ACTIVE", "--format", "json"]
        )
        if not accounts:
            raise ProviderError("No active gcloud account. Run: gcloud auth login")
        sink.success(f"Authenticated as {accounts[0].get('account', 'unknown')}")

    def configure_firewall(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        allow = ",".join(f"tcp:{port}" for port in PLATFORM_PORTS)
        sink.progress(0.4, f"Creating rule {c.firewall_name}")
        try:
            self.runner.run(
                self.gcloud(
                    "compute", "firewall-rules", "create", c.firewall_name,
                    "--network", c.network,
                    "--allow", allow,
                    "--target-tags", NETWORK_TAG,
                )
            )
            self.record("created_firewall", c.firewall_name)
        except CommandError as exc:
            if "already exists" not in exc.stderr:
                raise
            sink.info(f"Firewall rule {c.firewall_name} already exists")

    def create_instance(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.2, f"Creating {c.machine_type} in {c.zone}")
        self.runner.run_json(
            self.gcloud(
                "compute", "instances", "create", c.instance_name,
                "--zone", c.zone,
                "--machine-type", c.machine_type,
                "--image-family", c.image_family,
                "--image-project", c.image_project,
                "--tags", NETWORK_TAG,
                "--metadata", f"ssh-keys={c.ssh_user}:{self.read_public_key()}",
            ),
            timeout=600,
        )
        self.record("created_instance", c.instance_name)
        sink.info(f"Instance {c.instance_name} created")

    def wait_for_instance(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config

        def running() -> str | None:
            instance = self.runner.run_json(
                self.gcloud("compute", "instances", "describe", c.instance_name, "--zone", c.zone)
            )
            if instance.get("status") != "RUNNING":
                return None
            for interface in instance.get("networkInterfaces", []):
                for access in interface.get("accessConfigs", []):
                    if access.get("natIP"):
                        return access["natIP"]
            return None

        ip = self.poll(running, sink, cancel, description="Compute Engine instance", timeout=c.ready_timeout)
        self.set_host(ip, sink)

    def teardown_plan(self) -> list[TeardownAction]:
        c = self.config
        actions = []
        if c.created_instance:
            actions.append(
                TeardownAction(
                    ResourceHandle("compute_instance", c.created_instance),
                    lambda: self.runner.run(
                        self.gcloud("compute", "instances", "delete", c.created_instance, "--zone", c.zone, "--quiet"),
                        timeout=900,
                    ),
                    config_keys=("created_instance", "public_ip"),
                )
            )
        if c.created_firewall:
            actions.append(
                TeardownAction(
                    ResourceHandle("firewall_rule", c.created_firewall),
                    lambda: self.runner.run(
                        self.gcloud("compute", "firewall-rules", "delete", c.created_firewall, "--quiet")
                    ),
                    settle_seconds=SETTLE_SECONDS if c.created_instance else 0.0,
                    config_keys=("created_firewall",),
                )
            )
        return actions
