"""Typed configuration models, one per backend.

The persisted ``config.json`` is a JSON object with one section per
backend plus ``platform`` and ``git``::

    {
      "platform": {"url": "https://coolify.example.com", "token": "..."},
      "hetzner": {"server_type": "cx22", "location": "nbg1", "server_id": "4711"},
      "aws": {"region": "eu-west-1", "instance_id": "i-0abc..."}
    }

Each section validates into the model below, so provider code reads
``config.region`` instead of casting values out of a dict. Fields ending
in ``_id`` / ``_name`` without a default are written by a deployment and
read back by ``destroy``.

Key Concepts:
    ProviderConfig: Shared base (ssh key path, platform port, timeouts).
    CONFIG_MODELS: Section name → model class. ``ConfigStore`` validates
        dotted keys against this map.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class SectionModel(BaseModel):
    """Base for every config section: assignment is validated, unknown keys kept."""

    model_config = ConfigDict(validate_assignment=True, extra="allow")


class PlatformConfig(SectionModel):
    """Connection to an already-running platform instance."""

    url: str = ""
    token: str = ""
    github_token: str = ""

    @property
    def api_url(self) -> str:
        return self.url.rstrip("/") + "/api/v1"


class GitConfig(SectionModel):
    """Where the platform sources are checked out from (local docker stack)."""

    repository: str = "https://github.com/coollabsio/coolify.git"
    branch: str = "v4.x"
    work_dir: str = "./coolify-source"


class ProviderConfig(SectionModel):
    """Fields shared by all VM-style backends."""

    ssh_key_path: str = "~/.ssh/id_rsa.pub"
    dashboard_port: int = Field(default=8000, ge=1, le=65535)
    ready_timeout: int = Field(default=300, ge=1, description="Seconds to wait for the VM")
    install_timeout: int = Field(default=900, ge=1, description="Seconds to wait for the dashboard")

    @property
    def public_key(self) -> Path:
        return Path(self.ssh_key_path).expanduser()

    @property
    def private_key(self) -> Path:
        path = self.public_key
        return path.with_suffix("") if path.suffix == ".pub" else path


class DockerConfig(SectionModel):
    """Local compose stack."""

    app_port: int = Field(default=8000, ge=1, le=65535)
    websocket_port: int = Field(default=6001, ge=1, le=65535)
    work_dir: str = "./coolify-local"
    compose_file: str = "docker-compose.dev.yml"
    project_name: str = "coolify"
    ready_timeout: int = Field(default=300, ge=1)
    debug: bool = True


class BareMetalConfig(ProviderConfig):
    host: str = ""
    user: str = "root"
    port: int = Field(default=22, ge=1, le=65535)
    ssh_key_path: str = "~/.ssh/id_rsa"


class HetznerConfig(ProviderConfig):
    token: str = ""
    server_name: str = "coolify"
    server_type: str = "cx22"
    location: str = "nbg1"
    image: str = "ubuntu-24.04"
    ssh_key_name: str = "coolify-key"
    firewall_name: str = "coolify-firewall"

    server_id: str | None = None
    firewall_id: str | None = None
    ssh_key_id: str | None = None


class DigitalOceanConfig(ProviderConfig):
    token: str = ""
    droplet_name: str = "coolify"
    region: str = "nyc3"
    size: str = "s-2vcpu-4gb"
    image: str = "ubuntu-24-04-x64"
    ssh_key_name: str = "coolify-key"
    firewall_name: str = "coolify-firewall"

    droplet_id: str | None = None
    firewall_id: str | None = None
    ssh_key_id: str | None = None


class AWSConfig(ProviderConfig):
    region: str = "us-east-1"
    instance_type: str = "t3.medium"
    ami: str = "ami-0c55b159cbfafe1f0"
    key_name: str = "coolify-key"
    security_group_name: str = "coolify-sg"
    instance_name: str = "coolify"

    instance_id: str | None = None
    security_group_id: str | None = None
    key_pair_name: str | None = None


class GCPConfig(ProviderConfig):
    project: str = ""
    zone: str = "us-central1-a"
    machine_type: str = "e2-medium"
    network: str = "default"
    instance_name: str = "coolify"
    image_family: str = "ubuntu-2204-lts"
    image_project: str = "ubuntu-os-cloud"
    ssh_user: str = "coolify"
    firewall_name: str = "coolify-allow-web"

    created_instance: str | None = None
    created_firewall: str | None = None


class AzureConfig(ProviderConfig):
    location: str = "swedencentral"
    resource_group: str = "coolify-rg"
    vm_name: str = "coolify-vm"
    vm_size: str = "Standard_B2s"
    admin_username: str = "azureuser"
    image: str = "Ubuntu2204"

    created_resource_group: str | None = None
    created_vm: str | None = None


CONFIG_MODELS: dict[str, type[SectionModel]] = {
    "platform": PlatformConfig,
    "git": GitConfig,
    "docker": DockerConfig,
    "baremetal": BareMetalConfig,
    "hetzner": HetznerConfig,
    "digitalocean": DigitalOceanConfig,
    "aws": AWSConfig,
    "gcp": GCPConfig,
    "azure": AzureConfig,
}
