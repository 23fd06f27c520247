"""Tests for coolkit.providers.install - remote platform installation."""

import subprocess
from unittest.mock import MagicMock, patch

import httpx
import pytest

from coolkit.core.errors import ProviderError
from coolkit.providers.install import (
    DOCKER_INSTALL_COMMAND,
    INSTALL_COMMAND,
    check_health,
    dashboard_url,
    install_docker,
    remote_install_steps,
    run_install_script,
    wait_for_dashboard,
)


def completed(returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess([], returncode, stdout="", stderr="")


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestCheckHealth:
    @pytest.mark.parametrize(("status", "healthy"), [(200, True), (302, True), (404, False), (502, False)])
    def test_status_codes(self, status, healthy):
        client = _client(lambda request: httpx.Response(status))
        assert check_health("http://1.2.3.4:8000", client=client) is healthy

    def test_connection_error_is_unhealthy(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert check_health("http://1.2.3.4:8000", client=_client(refuse)) is False


def test_dashboard_url():
    assert dashboard_url("1.2.3.4") == "http://1.2.3.4:8000"
    assert dashboard_url("1.2.3.4", 9000) == "http://1.2.3.4:9000"


class TestInstallSteps:
    def test_step_names(self):
        names = [s.name for s in remote_install_steps(MagicMock)]
        assert names == ["Wait for SSH", "Install Docker", "Deploy Coolify", "Run health checks"]
        names = [s.name for s in remote_install_steps(MagicMock, wait_for_host=False)]
        assert names == ["Install Docker", "Deploy Coolify", "Run health checks"]

    def test_install_docker_skips_when_present(self, sink):
        ssh = MagicMock()
        ssh.run.return_value = completed(returncode=0)
        install_docker(ssh, sink)
        ssh.run.assert_called_once_with("docker --version", check=False)

    def test_install_docker_installs_when_missing(self, sink):
        ssh = MagicMock()
        ssh.run.return_value = completed(returncode=127)
        install_docker(ssh, sink)
        assert ssh.run.call_args.args == (DOCKER_INSTALL_COMMAND,)

    def test_run_install_script(self, sink):
        ssh = MagicMock()
        run_install_script(ssh, sink, timeout=60)
        ssh.run.assert_called_once_with(INSTALL_COMMAND, timeout=60)

    @patch("coolkit.providers.install.check_health", side_effect=[False, False, True])
    def test_wait_for_dashboard_polls_until_healthy(self, mock_health, sink, cancel):
        waits = []
        url = wait_for_dashboard("http://h:8000", sink, cancel, timeout=100, interval=10, sleep=waits.append)
        assert url == "http://h:8000"
        assert mock_health.call_count == 3
        assert waits == [10, 10]

    @patch("coolkit.providers.install.check_health", return_value=False)
    def test_wait_for_dashboard_times_out(self, mock_health, sink, cancel):
        with pytest.raises(ProviderError, match="did not complete within 0s"):
            wait_for_dashboard("http://h:8000", sink, cancel, timeout=0, sleep=lambda s: None)

    @patch("coolkit.providers.install.check_health", return_value=True)
    def test_health_step_reports_url(self, mock_health, sink, cancel):
        ssh = MagicMock()
        ssh.target.host = "5.6.7.8"
        ready = []
        steps = remote_install_steps(lambda: ssh, port=lambda: 8080, on_ready=ready.append)
        steps[-1].action(sink, cancel)
        assert ready == ["http://5.6.7.8:8080"]
