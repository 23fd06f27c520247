"""
Provider configuration: typed section models, the JSON store and the
per-project ``cdp.json``.
"""

from coolkit.config.models import (
    CONFIG_MODELS,
    AWSConfig,
    AzureConfig,
    BareMetalConfig,
    DigitalOceanConfig,
    DockerConfig,
    GCPConfig,
    GitConfig,
    HetznerConfig,
    PlatformConfig,
    ProviderConfig,
)
from coolkit.config.project import ProjectConfig
from coolkit.config.store import ConfigStore

__all__ = [
    "AWSConfig",
    "AzureConfig",
    "BareMetalConfig",
    "CONFIG_MODELS",
    "ConfigStore",
    "DigitalOceanConfig",
    "DockerConfig",
    "GCPConfig",
    "GitConfig",
    "HetznerConfig",
    "PlatformConfig",
    "ProjectConfig",
    "ProviderConfig",
]
