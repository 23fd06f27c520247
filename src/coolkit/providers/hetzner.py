"""Hetzner Cloud backend (``hcloud`` CLI)."""

from __future__ import annotations

import os

from coolkit.config.models import HetznerConfig
from coolkit.core.errors import ProviderError
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.teardown import ResourceHandle, TeardownAction
from coolkit.providers.base import PLATFORM_PORTS, SETTLE_SECONDS, CLIProvider


class HetznerProvider(CLIProvider[HetznerConfig]):
    name = "hetzner"
    display_name = "Hetzner Cloud"
    description = "Cloud server provisioned with the hcloud CLI"
    cli = "hcloud"
    recorded_keys = ("server_id", "firewall_id", "ssh_key_id", "public_ip")

    def command_env(self) -> dict[str, str] | None:
        if not self.config.token:
            return None
        return {**os.environ, "HCLOUD_TOKEN": self.config.token}

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate credentials", "Checking Hetzner Cloud API access", self.validate),
            StepDefinition("Setup SSH key", "Configuring SSH key for server access", self.setup_ssh_key),
            StepDefinition("Create server", "Provisioning Hetzner Cloud server", self.create_server),
            StepDefinition("Wait for server", "Waiting for server to be running", self.wait_for_server),
            StepDefinition("Configure firewall", "Setting up firewall rules", self.configure_firewall),
            *self.install_steps(),
        ]

    # ── Steps ────────────────────────────────────────────────────

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        self.check_cli(sink, "version")
        sink.progress(0.6, "Checking API token")
        self.runner.run_json(["hcloud", "location", "list", "-o", "json"])
        sink.success("Hetzner Cloud API reachable")

    def setup_ssh_key(self, sink: EventSink, cancel: CancelToken) -> None:
        name = self.config.ssh_key_name
        existing = self.runner.run(["hcloud", "ssh-key", "describe", name, "-o", "json"], check=False)
        if existing.returncode != 0:
            sink.progress(0.5, f"Uploading SSH key {name}")
            self.runner.run(
                ["hcloud", "ssh-key", "create", "--name", name, "--public-key", self.read_public_key()]
            )
        else:
            sink.info(f"Reusing SSH key {name}")
        key = self.runner.run_json(["hcloud", "ssh-key", "describe", name, "-o", "json"])
        self.record("ssh_key_id", key["id"])

    def create_server(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.2, f"Creating {c.server_type} in {c.location}")
        created = self.runner.run_json(
            [
                "hcloud", "server", "create",
                "--name", c.server_name,
                "--type", c.server_type,
                "--location", c.location,
                "--image", c.image,
                "--ssh-key", c.ssh_key_name,
                "--label", "managed-by=cool-kit",
                "-o", "json",
            ],
            timeout=600,
        )
        server = created.get("server", created)
        self.record("server_id", server["id"])
        sink.info(f"Server {server['id']} created")

    def wait_for_server(self, sink: EventSink, cancel: CancelToken) -> None:
        server_id = self.output.resources["server_id"]

        def running() -> str | None:
            server = self.runner.run_json(["hcloud", "server", "describe", server_id, "-o", "json"])
            if server.get("status") != "running":
                return None
            return server.get("public_net", {}).get("ipv4", {}).get("ip")

        ip = self.poll(running, sink, cancel, description="Hetzner server", timeout=self.config.ready_timeout)
        self.set_host(ip, sink)

    def configure_firewall(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        server_id = self.output.resources.get("server_id")
        if not server_id:
            raise ProviderError("No server to protect")
        created = self.runner.run_json(["hcloud", "firewall", "create", "--name", c.firewall_name, "-o", "json"])
        firewall = created.get("firewall", created)
        self.record("firewall_id", firewall["id"])
        for n, port in enumerate(PLATFORM_PORTS, start=1):
            sink.progress(n / (len(PLATFORM_PORTS) + 1), f"Allowing tcp/{port}")
            self.runner.run(
                [
                    "hcloud", "firewall", "add-rule", str(firewall["id"]),
                    "--direction", "in", "--protocol", "tcp", "--port", str(port),
                    "--source-ips", "0.0.0.0/0", "--source-ips", "::/0",
                ]
            )
        self.runner.run(
            ["hcloud", "firewall", "apply-to-resource", str(firewall["id"]), "--type", "server", "--server", server_id]
        )
        sink.success(f"Firewall {c.firewall_name} applied")

    # ── Teardown ─────────────────────────────────────────────────

    def teardown_plan(self) -> list[TeardownAction]:
        c = self.config
        actions = []
        if c.server_id:
            actions.append(
                TeardownAction(
                    ResourceHandle("server", c.server_id),
                    lambda: self.runner.run(["hcloud", "server", "delete", c.server_id]),
                    config_keys=("server_id", "public_ip"),
                )
            )
        if c.firewall_id:
            actions.append(
                TeardownAction(
                    ResourceHandle("firewall", c.firewall_id),
                    lambda: self.runner.run(["hcloud", "firewall", "delete", c.firewall_id]),
                    settle_seconds=SETTLE_SECONDS if c.server_id else 0.0,
                    config_keys=("firewall_id",),
                )
            )
        return actions
