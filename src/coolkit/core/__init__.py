"""
Core primitives shared by every cool-kit layer: the error hierarchy and
process settings.
"""

from coolkit.core.errors import (
    ApiError,
    CommandError,
    ConfigError,
    CoolKitError,
    DeploymentCancelled,
    ErrorCategory,
    ErrorContext,
    OrchestrationError,
    ProviderError,
    StepContractError,
    TeardownError,
    UnknownProviderError,
)
from coolkit.core.settings import CoolKitSettings, get_settings

__all__ = [
    "ApiError",
    "CommandError",
    "ConfigError",
    "CoolKitError",
    "CoolKitSettings",
    "DeploymentCancelled",
    "ErrorCategory",
    "ErrorContext",
    "OrchestrationError",
    "ProviderError",
    "StepContractError",
    "TeardownError",
    "UnknownProviderError",
    "get_settings",
]
