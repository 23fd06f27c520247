"""Platform installation on a reachable Linux host.

Shared by every VM-style backend: once a server exists and answers on
SSH, the remaining steps are identical: wait for SSH, install Docker, run
the platform's install script, then poll the dashboard until it answers.

:func:`remote_install_steps` returns those as ``StepDefinition`` objects
so a provider simply appends them to its own provisioning steps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.execution.retry import poll_until
from coolkit.providers.shell import SSHClient

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_URL = "https://cdn.coollabs.io/coolify/install.sh"
INSTALL_COMMAND = f"curl -fsSL {INSTALL_SCRIPT_URL} | sudo bash"
DOCKER_INSTALL_COMMAND = "curl -fsSL https://get.docker.com | sudo sh"
HEALTHY_STATUS = (200, 302)
DEFAULT_PORT = 8000


def dashboard_url(host: str, port: int = DEFAULT_PORT) -> str:
    return f"http://{host}:{port}"


def check_health(url: str, *, client: httpx.Client | None = None, timeout: float = 10.0) -> bool:
    """True when ``url`` answers 200 or 302 (the login redirect)."""
    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            response = httpx.get(url, timeout=timeout, follow_redirects=False)
    except httpx.HTTPError as exc:
        logger.debug("install.health_pending", extra={"url": url, "error": str(exc)})
        return False
    return response.status_code in HEALTHY_STATUS


def wait_for_ssh(
    ssh: SSHClient,
    sink: EventSink,
    cancel: CancelToken,
    *,
    timeout: float = 300,
    interval: float = 10,
    sleep: Callable[[float], None] | None = None,
) -> None:
    sink.info(f"Waiting for SSH on {ssh.target.host}")
    poll_until(
        ssh.is_reachable,
        timeout=timeout,
        interval=interval,
        description=f"SSH on {ssh.target.host}",
        cancel=cancel,
        sleep=sleep,
        on_wait=lambda fraction: sink.progress(0.9 * fraction, "Waiting for SSH"),
    )
    sink.success(f"SSH reachable at {ssh.target}")


def install_docker(ssh: SSHClient, sink: EventSink) -> None:
    sink.progress(0.1, "Checking for Docker")
    if ssh.run("docker --version", check=False).returncode == 0:
        sink.info("Docker already installed")
        return
    sink.progress(0.3, "Installing Docker")
    ssh.run(DOCKER_INSTALL_COMMAND, timeout=900)
    sink.success("Docker installed")


def run_install_script(ssh: SSHClient, sink: EventSink, *, timeout: int = 1800) -> None:
    sink.progress(0.1, "Running install script")
    sink.info(f"Running {INSTALL_SCRIPT_URL}")
    ssh.run(INSTALL_COMMAND, timeout=timeout)
    sink.success("Install script finished")


def wait_for_dashboard(
    url: str,
    sink: EventSink,
    cancel: CancelToken,
    *,
    timeout: float = 900,
    interval: float = 10,
    sleep: Callable[[float], None] | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Poll until the dashboard is healthy; logs the URL as the final line."""
    sink.info(f"Waiting for dashboard at {url}")
    poll_until(
        lambda: check_health(url, client=client),
        timeout=timeout,
        interval=interval,
        description=f"Dashboard at {url}",
        cancel=cancel,
        sleep=sleep,
        on_wait=lambda fraction: sink.progress(0.9 * fraction, "Waiting for dashboard"),
    )
    sink.success(f"Dashboard available at {url}")
    return url


def remote_install_steps(
    ssh: Callable[[], SSHClient],
    *,
    port: Callable[[], int] = lambda: DEFAULT_PORT,
    ready_timeout: float = 300,
    install_timeout: float = 900,
    on_ready: Callable[[str], None] | None = None,
    wait_for_host: bool = True,
    sleep: Callable[[float], None] | None = None,
) -> list[StepDefinition]:
    """Install steps for a host that will exist by the time they run.

    ``ssh`` is called lazily because the host address is only known once the
    provisioning steps before these have created the server.
    ``wait_for_host=False`` drops the SSH wait for hosts that already exist.
    """

    def wait(sink: EventSink, cancel: CancelToken) -> None:
        wait_for_ssh(ssh(), sink, cancel, timeout=ready_timeout, sleep=sleep)

    def docker(sink: EventSink, cancel: CancelToken) -> None:
        install_docker(ssh(), sink)

    def deploy(sink: EventSink, cancel: CancelToken) -> None:
        run_install_script(ssh(), sink, timeout=int(install_timeout) * 2)

    def health(sink: EventSink, cancel: CancelToken) -> None:
        url = wait_for_dashboard(
            dashboard_url(ssh().target.host, port()), sink, cancel, timeout=install_timeout, sleep=sleep
        )
        if on_ready is not None:
            on_ready(url)

    steps = [
        StepDefinition("Install Docker", "Installing Docker Engine", docker),
        StepDefinition("Deploy Coolify", "Running the Coolify install script", deploy),
        StepDefinition("Run health checks", "Waiting for the dashboard to answer", health),
    ]
    if wait_for_host:
        steps.insert(0, StepDefinition("Wait for SSH", "Waiting for the server to accept SSH", wait))
    return steps
