"""Provider registry.

Each backend is described by a frozen :class:`ProviderSpec`; adding a
backend means adding one entry to :data:`PROVIDERS`. Lookup is
case-insensitive and unknown names raise
:class:`~coolkit.core.errors.UnknownProviderError` listing what exists.

Example:
    >>> store = ConfigStore(settings.config_path)
    >>> provider = get_provider("hetzner", store)
    >>> [s.name for s in provider.declare_steps()][:2]
    ['Validate credentials', 'Setup SSH key']
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from coolkit.config.models import (
    AWSConfig,
    AzureConfig,
    BareMetalConfig,
    DigitalOceanConfig,
    DockerConfig,
    GCPConfig,
    GitConfig,
    HetznerConfig,
)
from coolkit.config.store import ConfigStore
from coolkit.core.errors import UnknownProviderError
from coolkit.providers.aws import AWSProvider
from coolkit.providers.azure import AzureProvider
from coolkit.providers.baremetal import BareMetalProvider
from coolkit.providers.base import CLIProvider
from coolkit.providers.digitalocean import DigitalOceanProvider
from coolkit.providers.docker import DockerProvider
from coolkit.providers.gcp import GCPProvider
from coolkit.providers.hetzner import HetznerProvider
from coolkit.providers.shell import CommandRunner


@dataclass(frozen=True)
class ProviderSpec:
    """Registry entry for one backend."""

    name: str
    display_name: str
    description: str
    build: Callable[[ConfigStore, CommandRunner | None], CLIProvider]


def _docker(store: ConfigStore, runner: CommandRunner | None) -> CLIProvider:
    return DockerProvider(
        store.typed("docker", DockerConfig),
        git=store.typed("git", GitConfig),
        runner=runner,
    )


def _simple(cls: type[CLIProvider], model: type) -> Callable[[ConfigStore, CommandRunner | None], CLIProvider]:
    def build(store: ConfigStore, runner: CommandRunner | None) -> CLIProvider:
        return cls(store.typed(cls.name, model), runner=runner)

    return build


PROVIDERS: dict[str, ProviderSpec] = {
    spec.name: spec
    for spec in (
        ProviderSpec("docker", DockerProvider.display_name, DockerProvider.description, _docker),
        ProviderSpec(
            "baremetal", BareMetalProvider.display_name, BareMetalProvider.description,
            _simple(BareMetalProvider, BareMetalConfig),
        ),
        ProviderSpec(
            "hetzner", HetznerProvider.display_name, HetznerProvider.description,
            _simple(HetznerProvider, HetznerConfig),
        ),
        ProviderSpec(
            "digitalocean", DigitalOceanProvider.display_name, DigitalOceanProvider.description,
            _simple(DigitalOceanProvider, DigitalOceanConfig),
        ),
        ProviderSpec("aws", AWSProvider.display_name, AWSProvider.description, _simple(AWSProvider, AWSConfig)),
        ProviderSpec("gcp", GCPProvider.display_name, GCPProvider.description, _simple(GCPProvider, GCPConfig)),
        ProviderSpec(
            "azure", AzureProvider.display_name, AzureProvider.description,
            _simple(AzureProvider, AzureConfig),
        ),
    )
}


def list_providers() -> list[ProviderSpec]:
    return list(PROVIDERS.values())


def get_spec(name: str) -> ProviderSpec:
    spec = PROVIDERS.get(name.lower())
    if spec is None:
        raise UnknownProviderError(name, list(PROVIDERS))
    return spec


def get_provider(name: str, store: ConfigStore, *, runner: CommandRunner | None = None) -> CLIProvider:
    """Build the provider ``name`` from its section of ``store``."""
    return get_spec(name).build(store, runner)


__all__ = [
    "AWSProvider",
    "AzureProvider",
    "BareMetalProvider",
    "CLIProvider",
    "CommandRunner",
    "DigitalOceanProvider",
    "DockerProvider",
    "GCPProvider",
    "HetznerProvider",
    "PROVIDERS",
    "ProviderSpec",
    "get_provider",
    "get_spec",
    "list_providers",
]
