"""Tests for the CLI-driven backends: declared steps, provisioning and teardown plans."""

import subprocess
from unittest.mock import patch

import pytest

from coolkit.config.models import (
    AWSConfig,
    AzureConfig,
    BareMetalConfig,
    DigitalOceanConfig,
    DockerConfig,
    GCPConfig,
    HetznerConfig,
)
from coolkit.core.errors import CommandError, ProviderError
from coolkit.deploy.channel import EventChannel, EventSink
from coolkit.deploy.diagnostics import DeploymentError
from coolkit.providers import (
    AWSProvider,
    AzureProvider,
    BareMetalProvider,
    DigitalOceanProvider,
    DockerProvider,
    GCPProvider,
    HetznerProvider,
)

INSTALL_STEPS = ["Wait for SSH", "Install Docker", "Deploy Coolify", "Run health checks"]


def _proc(stdout="", returncode=0):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr="")


class TestDeclaredSteps:
    @pytest.mark.parametrize(
        ("provider_cls", "config", "first"),
        [
            (HetznerProvider, HetznerConfig(), ["Validate credentials", "Setup SSH key", "Create server"]),
            (DigitalOceanProvider, DigitalOceanConfig(), ["Validate credentials", "Setup SSH key", "Create droplet"]),
            (AWSProvider, AWSConfig(), ["Validate AWS credentials", "Import key pair", "Configure security groups"]),
            (GCPProvider, GCPConfig(), ["Validate GCP credentials", "Configure firewall rules"]),
            (AzureProvider, AzureConfig(), ["Validate Azure credentials", "Create resource group"]),
        ],
    )
    def test_vm_backends_end_with_remote_install(self, runner, provider_cls, config, first):
        names = [s.name for s in provider_cls(config, runner=runner).declare_steps()]
        assert names[: len(first)] == first
        assert names[-4:] == INSTALL_STEPS

    def test_baremetal_skips_ssh_wait(self, runner):
        names = [s.name for s in BareMetalProvider(BareMetalConfig(), runner=runner).declare_steps()]
        assert names == [
            "Validate SSH connectivity",
            "Check system requirements",
            "Install Docker",
            "Deploy Coolify",
            "Run health checks",
        ]

    def test_docker_steps(self, runner):
        names = [s.name for s in DockerProvider(DockerConfig(), runner=runner).declare_steps()]
        assert names[0] == "Validate Docker installation"
        assert names[-1] == "Run health checks"
        assert len(names) == 8

    def test_declared_steps_have_descriptions(self, runner):
        for step in HetznerProvider(HetznerConfig(), runner=runner).declare_steps():
            assert step.description


class TestHetznerProvisioning:
    @pytest.fixture
    def hcloud(self, runner):
        def respond(args, **kwargs):
            if args[1:3] == ["ssh-key", "describe"]:
                return {"id": 7}
            if args[1:3] == ["server", "create"]:
                return {"server": {"id": 42}}
            if args[1:3] == ["server", "describe"]:
                return {"status": "running", "public_net": {"ipv4": {"ip": "1.2.3.4"}}}
            if args[1:3] == ["firewall", "create"]:
                return {"firewall": {"id": 9}}
            return []

        runner.run_json.side_effect = respond
        return runner

    @patch("coolkit.providers.install.check_health", return_value=True)
    def test_full_run_records_resources(self, mock_health, hcloud, sink, cancel):
        provider = HetznerProvider(HetznerConfig(token="t"), runner=hcloud, sleep=lambda s: None)
        output = provider.execute(sink, cancel)

        assert output.resources == {"ssh_key_id": "7", "server_id": "42", "public_ip": "1.2.3.4", "firewall_id": "9"}
        assert output.dashboard_url == "http://1.2.3.4:8000"
        add_rules = [c.args[0] for c in hcloud.run.call_args_list if c.args[0][1:3] == ["firewall", "add-rule"]]
        assert len(add_rules) == 6
        assert any("curl -fsSL https://cdn.coollabs.io/coolify/install.sh | sudo bash" in c.args[0] for c in hcloud.run.call_args_list)

    def test_token_is_passed_through_the_environment(self):
        provider = HetznerProvider(HetznerConfig(token="secret"))
        assert provider.runner.env["HCLOUD_TOKEN"] == "secret"
        assert HetznerProvider(HetznerConfig()).command_env() is None

    def test_rejected_token_is_classified(self, runner, sink, cancel):
        runner.run_json.side_effect = CommandError(["hcloud"], 1, "hcloud: invalid token (unauthorized)")
        provider = HetznerProvider(HetznerConfig(), runner=runner)

        with pytest.raises(DeploymentError) as exc_info:
            provider.execute(sink, cancel)
        assert exc_info.value.diagnostic.code == "HetznerUnauthorized"
        assert exc_info.value.step_index == 0
        assert provider.recorded_output().resources == {}

    def test_partial_resources_survive_a_failure(self, hcloud, sink, cancel):
        def run(args, **kwargs):
            if args[1:3] == ["firewall", "add-rule"]:
                raise CommandError(args, 1, "boom")
            return _proc()

        hcloud.run.side_effect = run
        provider = HetznerProvider(HetznerConfig(), runner=hcloud, sleep=lambda s: None)

        with pytest.raises(DeploymentError):
            provider.execute(sink, cancel)
        assert provider.recorded_output().resources["server_id"] == "42"
        assert provider.recorded_output().resources["firewall_id"] == "9"


class TestTeardownPlans:
    def test_hetzner_deletes_server_then_firewall(self, runner):
        provider = HetznerProvider(HetznerConfig(server_id="42", firewall_id="9"), runner=runner)
        actions = provider.teardown_plan()

        assert [str(a.handle) for a in actions] == ["server 42", "firewall 9"]
        assert actions[1].settle_seconds > 0
        assert actions[0].config_keys == ("server_id", "public_ip")
        assert actions[1].config_keys == ("firewall_id",)
        actions[0].delete()
        runner.run.assert_called_with(["hcloud", "server", "delete", "42"])

    def test_nothing_recorded_means_empty_plan(self, runner):
        for provider in (
            HetznerProvider(HetznerConfig(), runner=runner),
            DigitalOceanProvider(DigitalOceanConfig(), runner=runner),
            AWSProvider(AWSConfig(), runner=runner),
            GCPProvider(GCPConfig(), runner=runner),
            AzureProvider(AzureConfig(), runner=runner),
            BareMetalProvider(BareMetalConfig(), runner=runner),
        ):
            assert provider.teardown_plan() == []

    def test_firewall_alone_has_no_settle_delay(self, runner):
        actions = DigitalOceanProvider(DigitalOceanConfig(firewall_id="3"), runner=runner).teardown_plan()
        assert [a.handle.kind for a in actions] == ["firewall"]
        assert actions[0].settle_seconds == 0.0

    def test_aws_order(self, runner):
        config = AWSConfig(instance_id="i-1", security_group_id="sg-1", key_pair_name="coolify-key")
        actions = AWSProvider(config, runner=runner).teardown_plan()
        assert [a.handle.kind for a in actions] == ["ec2_instance", "security_group", "key_pair"]
        assert [a.config_keys for a in actions] == [
            ("instance_id", "public_ip"),
            ("security_group_id",),
            ("key_pair_name",),
        ]

    def test_gcp_order(self, runner):
        config = GCPConfig(project="p", created_instance="coolify", created_firewall="coolify-allow-web")
        actions = GCPProvider(config, runner=runner).teardown_plan()
        assert [a.handle.kind for a in actions] == ["compute_instance", "firewall_rule"]

    def test_azure_resource_group_is_cascading(self, runner):
        actions = AzureProvider(AzureConfig(created_resource_group="coolify-rg"), runner=runner).teardown_plan()
        assert len(actions) == 1
        assert actions[0].cascading

    def test_docker_plan_needs_work_dir(self, runner, tmp_path):
        assert DockerProvider(DockerConfig(work_dir=str(tmp_path / "missing")), runner=runner).teardown_plan() == []
        actions = DockerProvider(DockerConfig(work_dir=str(tmp_path)), runner=runner).teardown_plan()
        assert actions[0].handle.kind == "compose_project"
        actions[0].delete()
        assert runner.run.call_args.args[0][-2:] == ["down", "--volumes"]


class TestBareMetal:
    def test_unsupported_distribution(self, runner, sink, cancel):
        runner.run.return_value = _proc('NAME="Gentoo"\nID=gentoo\n')
        provider = BareMetalProvider(BareMetalConfig(host="10.0.0.2"), runner=runner)
        with pytest.raises(ProviderError, match="gentoo"):
            provider.check_requirements(sink, cancel)

    def test_low_memory_is_a_warning(self, runner, cancel):
        logs = EventChannel("log")
        sink = EventSink(EventChannel("progress"), logs)
        sink.bind_step(1, "Check system requirements")
        runner.run.side_effect = [_proc('ID="ubuntu"\n'), _proc("1024\n")]
        provider = BareMetalProvider(BareMetalConfig(host="10.0.0.2"), runner=runner)
        provider.check_requirements(sink, cancel)
        sink.close()
        assert any("1024 MB" in entry.message for entry in logs)

    def test_missing_host_fails_validation(self, runner, sink, cancel):
        with pytest.raises(DeploymentError) as exc_info:
            BareMetalProvider(BareMetalConfig(), runner=runner).execute(sink, cancel)
        assert "baremetal.host" in exc_info.value.diagnostic.message
