"""AWS EC2 backend (``aws`` CLI).

Teardown order matters here: a security group cannot be deleted while an
instance still references it, and EC2 takes a while to release it after
``terminate-instances`` returns. The group delete therefore settles first
and is retried by the teardown coordinator until the dependency clears.
"""

from __future__ import annotations

from coolkit.config.models import AWSConfig
from coolkit.core.errors import CommandError
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.teardown import ResourceHandle, TeardownAction
from coolkit.providers.base import PLATFORM_PORTS, SETTLE_SECONDS, CLIProvider


class AWSProvider(CLIProvider[AWSConfig]):
    name = "aws"
    display_name = "Amazon Web Services"
    description = "EC2 instance provisioned with the aws CLI"
    cli = "aws"
    recorded_keys = ("instance_id", "security_group_id", "key_pair_name", "public_ip")
    ssh_user = "ubuntu"

    def aws(self, *args: str) -> list[str]:
        return ["aws", *args, "--region", self.config.region, "--output", "json"]

    def steps(self) -> list[StepDefinition]:
        return [
            StepDefinition("Validate AWS credentials", "Checking AWS CLI and credentials", self.validate),
            StepDefinition("Import key pair", "Registering the SSH public key", self.import_key_pair),
            StepDefinition("Configure security groups", "Setting up firewall rules", self.configure_security_group),
            StepDefinition("Launch EC2 instance", "Creating virtual machine", self.launch_instance),
            StepDefinition("Wait for instance", "Waiting for the instance to run", self.wait_for_instance),
            *self.install_steps(),
        ]

    def validate(self, sink: EventSink, cancel: CancelToken) -> None:
        self.check_cli(sink)
        sink.progress(0.6, "Checking credentials")
        identity = self.runner.run_json(self.aws("sts", "get-caller-identity"))
        sink.success(f"Authenticated as {identity.get('Arn', 'unknown')}")

    def import_key_pair(self, sink: EventSink, cancel: CancelToken) -> None:
        name = self.config.key_name
        existing = self.runner.run(self.aws("ec2", "describe-key-pairs", "--key-names", name), check=False)
        if existing.returncode == 0:
            sink.info(f"Reusing key pair {name}")
        else:
            sink.progress(0.5, f"Importing key pair {name}")
            self.runner.run(
                self.aws(
                    "ec2", "import-key-pair",
                    "--key-name", name,
                    "--public-key-material", f"fileb://{self.config.public_key}",
                )
            )
        self.record("key_pair_name", name)

    def configure_security_group(self, sink: EventSink, cancel: CancelToken) -> None:
        name = self.config.security_group_name
        try:
            created = self.runner.run_json(
                self.aws("ec2", "create-security-group", "--group-name", name, "--description", "Coolify (cool-kit)")
            )
            group_id = created["GroupId"]
        except CommandError as exc:
            if "InvalidGroup.Duplicate" not in exc.stderr:
                raise
            sink.info(f"Security group {name} already exists")
            found = self.runner.run_json(self.aws("ec2", "describe-security-groups", "--group-names", name))
            group_id = found["SecurityGroups"][0]["GroupId"]
        self.record("security_group_id", group_id)

        for n, port in enumerate(PLATFORM_PORTS, start=1):
            sink.progress(n / (len(PLATFORM_PORTS) + 1), f"Allowing tcp/{port}")
            result = self.runner.run(
                self.aws(
                    "ec2", "authorize-security-group-ingress",
                    "--group-id", group_id,
                    "--protocol", "tcp",
                    "--port", str(port),
                    "--cidr", "0.0.0.0/0",
                ),
                check=False,
            )
            if result.returncode != 0 and "InvalidPermission.Duplicate" not in result.stderr:
                raise CommandError(["aws", "ec2", "authorize-security-group-ingress"], result.returncode, result.stderr)
        sink.success(f"Security group {group_id} ready")

    def launch_instance(self, sink: EventSink, cancel: CancelToken) -> None:
        c = self.config
        sink.progress(0.2, f"Launching {c.instance_type}")
        tags = (
            f"ResourceType=instance,Tags=[{{Key=Name,Value={c.instance_name}}},"
            "{Key=Application,Value=coolify}]"
        )
        launched = self.runner.run_json(
            self.aws(
                "ec2", "run-instances",
                "--image-id", c.ami,
                "--instance-type", c.instance_type,
                "--key-name", c.key_name,
                "--security-group-ids", self.output.resources["security_group_id"],
                "--count", "1",
                "--tag-specifications", tags,
            ),
            timeout=600,
        )
        instance_id = launched["Instances"][0]["InstanceId"]
        self.record("instance_id", instance_id)
        sink.info(f"Instance {instance_id} launched")

    def wait_for_instance(self, sink: EventSink, cancel: CancelToken) -> None:
        instance_id = self.output.resources["instance_id"]

        def running() -> str | None:
            described = self.runner.run_json(self.aws("ec2", "describe-instances", "--instance-ids", instance_id))
            instance = described["Reservations"][0]["Instances"][0]
            if instance.get("State", {}).get("Name") != "running":
                return None
            return instance.get("PublicIpAddress")

        ip = self.poll(running, sink, cancel, description="EC2 instance", timeout=self.config.ready_timeout)
        self.set_host(ip, sink)

    # ── Teardown ─────────────────────────────────────────────────

    def terminate_instance(self, instance_id: str) -> None:
        self.runner.run(self.aws("ec2", "terminate-instances", "--instance-ids", instance_id))
        self.runner.run(self.aws("ec2", "wait", "instance-terminated", "--instance-ids", instance_id), timeout=900)

    def teardown_plan(self) -> list[TeardownAction]:
        c = self.config
        actions = []
        if c.instance_id:
            actions.append(
                TeardownAction(
                    ResourceHandle("ec2_instance", c.instance_id),
                    lambda: self.terminate_instance(c.instance_id),
                    config_keys=("instance_id", "public_ip"),
                )
            )
        if c.security_group_id:
            actions.append(
                TeardownAction(
                    ResourceHandle("security_group", c.security_group_id),
                    lambda: self.runner.run(self.aws("ec2", "delete-security-group", "--group-id", c.security_group_id)),
                    settle_seconds=SETTLE_SECONDS if c.instance_id else 0.0,
                    config_keys=("security_group_id",),
                )
            )
        if c.key_pair_name:
            actions.append(
                TeardownAction(
                    ResourceHandle("key_pair", c.key_pair_name),
                    lambda: self.runner.run(self.aws("ec2", "delete-key-pair", "--key-name", c.key_pair_name)),
                    config_keys=("key_pair_name",),
                )
            )
        return actions
