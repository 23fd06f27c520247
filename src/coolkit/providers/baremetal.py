"""Existing Linux server reachable over SSH."""

from __future__ import annotations

from coolkit.config.models import BareMetalConfig
from coolkit.core.errors import MissingConfigError, ProviderError
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.providers.base import CLIProvider
from coolkit.providers.shell import SSHClient, SSHTarget

SUPPORTED_DISTROS = ("ubuntu", "debian", "centos", "rhel", "rocky", "almalinux", "fedora", "alpine", "arch")
MIN_MEMORY_MB = 2048


class BareMetalProvider(CLIProvider[BareMetalConfig]):
    name = "baremetal"
    display_name = "Bare metal (SSH)"
    description = "Any Linux server you can SSH into"
    cli = "ssh"
    recorded_keys = ()

    def ssh(self) -> SSHClient:
        c = self.config
        if not c.host:
            raise MissingConfigError("baremetal.host")
        return SSHClient(SSHTarget(c.host, user=c.user, port=c.port, key_path=c.private_key), self.runner)

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate SSH connectivity", "Testing SSH connection to server", self.validate),
            StepDefinition("Check system requirements", "Verifying OS and resources", self.check_requirements),
            *self.install_steps(wait_for_host=False),
        ]

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        ssh = self.ssh()
        sink.progress(0.3, f"Connecting to {ssh.target}")
        hostname = ssh.run("hostname").stdout.strip()
        self.host = self.config.host
        self.record("host", self.config.host)
        sink.success(f"Connected to {hostname or self.config.host}")

    def check_requirements(self, sink: EventSink, cancel: CancelToken) -> None:
        ssh = self.ssh()
        sink.progress(0.3, "Checking operating system")
        os_release = ssh.run("cat /etc/os-release").stdout
        distro = ""
        for line in os_release.splitlines():
            if line.startswith("ID="):
                distro = line.split("=", 1)[1].strip().strip('"')
        if distro not in SUPPORTED_DISTROS:
            raise ProviderError(f"Unsupported distribution: {distro or 'unknown'}")
        sink.info(f"Distribution: {distro}")

        sink.progress(0.7, "Checking memory")
        memory = ssh.run("free -m | awk '/^Mem:/ {print $2}'").stdout.strip()
        if memory.isdigit() and int(memory) < MIN_MEMORY_MB:
            sink.warning(f"Only {memory} MB RAM; {MIN_MEMORY_MB} MB or more is recommended")
