"""DigitalOcean backend (``doctl`` CLI)."""

from __future__ import annotations

import os

from coolkit.config.models import DigitalOceanConfig
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.teardown import ResourceHandle, TeardownAction
from coolkit.providers.base import PLATFORM_PORTS, SETTLE_SECONDS, CLIProvider


class DigitalOceanProvider(CLIProvider[DigitalOceanConfig]):
    name = "digitalocean"
    display_name = "DigitalOcean"
    description = "Droplet provisioned with the doctl CLI"
    cli = "doctl"
    recorded_keys = ("droplet_id", "firewall_id", "ssh_key_id", "public_ip")

    def command_env(self) -> dict[str, str] | None:
        if not self.config.token:
            return None
        return {**os.environ, "DIGITALOCEAN_ACCESS_TOKEN": self.config.token}

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate credentials", "Checking DigitalOcean API access", self.validate),
            StepDefinition("Setup SSH key", "Configuring SSH key for droplet access", self.setup_ssh_key),
            StepDefinition("Create droplet", "Provisioning DigitalOcean droplet", self.create_droplet),
            StepDefinition("Wait for droplet", "Waiting for droplet to be active", self.wait_for_droplet),
            StepDefinition("Configure firewall", "Setting up firewall rules", self.configure_firewall),
            *self.install_steps(),
        ]

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        self.check_cli(sink, "version")
        sink.progress(0.6, "Checking account")
        account = self.runner.run_json(["doctl", "account", "get", "-o", "json"])
        sink.success(f"Authenticated as {account.get('email', 'unknown')}")

    def setup_ssh_key(self, sink: EventSink, cancel: CancelToken) -> None:
        name = self.config.ssh_key_name
        keys = self.runner.run_json(["doctl", "compute", "ssh-key", "list", "-o", "json"]) or []
        match = next((k for k in keys if k.get("name") == name), None)
        if match is None:
            sink.progress(0.5, f"Importing SSH key {name}")
            imported = self.runner.run_json(
                [
                    "doctl", "compute", "ssh-key", "import", name,
                    "--public-key-file", str(self.config.public_key),
                    "-o", "json",
                ]
            )
            match = imported[0]
        else:
            sink.info(f"Reusing SSH key {name}")
        self.record("ssh_key_id", match["id"])

    def create_droplet(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.2, f"Creating {c.size} droplet in {c.region}")
        created = self.runner.run_json(
            [
                "doctl", "compute", "droplet", "create", c.droplet_name,
                "--region", c.region,
                "--size", c.size,
                "--image", c.image,
                "--ssh-keys", self.output.resources["ssh_key_id"],
                "--tag-name", "cool-kit",
                "-o", "json",
            ],
            timeout=600,
        )
        droplet = created[0]
        self.record("droplet_id", droplet["id"])
        sink.info(f"Droplet {droplet['id']} created")

    def wait_for_droplet(self, sink: EventSink, cancel: CancelToken) -> None:
        droplet_id = self.output.resources["droplet_id"]

        def active() -> str | None:
            droplet = self.runner.run_json(["doctl", "compute", "droplet", "get", droplet_id, "-o", "json"])[0]
            if droplet.get("status") != "active":
                return None
            for network in droplet.get("networks", {}).get("v4", []):
                if network.get("type") == "public":
                    return network.get("ip_address")
            return None

        ip = self.poll(active, sink, cancel, description="DigitalOcean droplet", timeout=self.config.ready_timeout)
        self.set_host(ip, sink)

    def configure_firewall(self, sink: EventSink, cancel: CancelToken) -> None:
        inbound = " ".join(f"protocol:tcp,ports:{port},address:0.0.0.0/0,address:::/0" for port in PLATFORM_PORTS)
        outbound = " ".join(
            f"protocol:{proto},ports:all,address:0.0.0.0/0,address:::/0" for proto in ("tcp", "udp")
        )
        sink.progress(0.4, "Creating firewall")
        created = self.runner.run_json(
            [
                "doctl", "compute", "firewall", "create",
                "--name", self.config.firewall_name,
                "--inbound-rules", inbound,
                "--outbound-rules", outbound,
                "--droplet-ids", self.output.resources["droplet_id"],
                "-o", "json",
            ]
        )
        self.record("firewall_id", created[0]["id"])
        sink.success(f"Firewall {self.config.firewall_name} attached")

    def teardown_plan(self) -> list[TeardownAction]:
        c = self.config
        actions = []
        if c.droplet_id:
            actions.append(
                TeardownAction(
                    ResourceHandle("droplet", c.droplet_id),
                    lambda: self.runner.run(["doctl", "compute", "droplet", "delete", c.droplet_id, "--force"]),
                    config_keys=("droplet_id", "public_ip"),
                )
            )
        if c.firewall_id:
            actions.append(
                TeardownAction(
                    ResourceHandle("firewall", c.firewall_id),
                    lambda: self.runner.run(["doctl", "compute", "firewall", "delete", c.firewall_id, "--force"]),
                    settle_seconds=SETTLE_SECONDS if c.droplet_id else 0.0,
                    config_keys=("firewall_id",),
                )
            )
        return actions
