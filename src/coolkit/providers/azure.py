"""Azure backend (``az`` CLI).

Everything is created inside one resource group, so teardown is a single
cascading ``az group delete``; the CLI asks for a second confirmation
before that.
"""

from __future__ import annotations

from coolkit.config.models import AzureConfig
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.teardown import ResourceHandle, TeardownAction
from coolkit.providers.base import PLATFORM_PORTS, CLIProvider


class AzureProvider(CLIProvider[AzureConfig]):
    name = "azure"
    display_name = "Microsoft Azure"
    description = "Azure VM provisioned with the az CLI"
    cli = "az"
    recorded_keys = ("created_resource_group", "created_vm", "public_ip")

    def ssh_user_name(self) -> str:
        return self.config.admin_username

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate Azure credentials", "Checking Azure CLI and credentials", self.validate),
            StepDefinition("Create resource group", "Setting up Azure resource group", self.create_resource_group),
            StepDefinition("Create virtual machine", "Launching Azure VM", self.create_vm),
            StepDefinition("Create network resources", "Opening platform ports on the NSG", self.open_ports),
            StepDefinition("Wait for VM ready", "Waiting for VM to be running", self.wait_for_vm),
            *self.install_steps(),
        ]

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        self.check_cli(sink, "version", "-o", "tsv")
        sink.progress(0.6, "Checking subscription")
        account = self.runner.run_json(["az", "account", "show", "-o", "json"])
        sink.success(f"Subscription: {account.get('name', 'unknown')}")

    def create_resource_group(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.3, f"Creating {c.resource_group} in {c.location}")
        self.runner.run_json(
            ["az", "group", "create", "--name", c.resource_group, "--location", c.location, "-o", "json"]
        )
        self.record("created_resource_group", c.resource_group)

    def create_vm(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.2, f"Creating {c.vm_size} VM {c.vm_name}")
        created = self.runner.run_json(
            [
                "az", "vm", "create",
                "--resource-group", c.resource_group,
                "--name", c.vm_name,
                "--image", c.image,
                "--size", c.vm_size,
                "--admin-username", c.admin_username,
                "--ssh-key-values", str(c.public_key),
                "--public-ip-sku", "Standard",
                "-o", "json",
            ],
            timeout=900,
        )
        self.record("created_vm", c.vm_name)
        if created.get("publicIpAddress"):
            self.set_host(created["publicIpAddress"], sink)

    def open_ports(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.4, "Opening ports")
        self.runner.run(
            [
                "az", "vm", "open-port",
                "--resource-group", c.resource_group,
                "--name", c.vm_name,
                "--port", ",".join(str(p) for p in PLATFORM_PORTS),
                "--priority", "1001",
                "-o", "json",
            ]
        )
        sink.success("Inbound rules created")

    def wait_for_vm(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config

        def running() -> str | None:
            vm = self.runner.run_json(
                ["az", "vm", "show", "-d", "--resource-group", c.resource_group, "--name", c.vm_name, "-o", "json"]
            )
            if vm.get("powerState") != "VM running":
                return None
            return vm.get("publicIps") or None

        ip = self.poll(running, sink, cancel, description="Azure VM", timeout=c.ready_timeout)
        self.set_host(ip, sink)

    def teardown_plan(self) -> list[TeardownAction]:
        group = self.config.created_resource_group
        if not group:
            return []
        return [
            TeardownAction(
                ResourceHandle("resource_group", group),
                lambda: self.runner.run(["az", "group", "delete", "--name", group, "--yes"], timeout=1800),
                cascading=True,
                config_keys=("created_resource_group", "created_vm", "public_ip"),
            )
        ]
