"""
Structured error types for cool-kit.

Every failure that crosses a module boundary is a ``CoolKitError`` subclass
carrying a category, a retry hint, structured context and the chained
cause. The deployment core never shows these raw to the user: errors that
reach the terminal are turned into a ``Diagnostic`` first (see
:mod:`coolkit.deploy.diagnostics`).

Architecture:
    ::

        CoolKitError (category, retryable, context, cause)
          ├── NetworkError          retryable
          ├── CommandError          external CLI exit status + stderr
          ├── ApiError              HTTP status + body, retryable on 5xx/429
          ├── ConfigError
          │     ├── MissingConfigError
          │     └── InvalidConfigError
          ├── ProviderError
          │     └── UnknownProviderError
          ├── OrchestrationError
          │     └── StepContractError
          ├── DeploymentCancelled
          └── TeardownError

Examples:
    >>> err = CommandError(["aws", "sts", "get-caller-identity"], 255, "AccessDenied")
    >>> err.category.value
    'PROVIDER'
    >>> err.with_context(provider="aws").context.provider
    'aws'

Tags:
    errors, exceptions, taxonomy, retry-logic, context
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used for retry decisions and reporting."""

    NETWORK = "NETWORK"
    PROVIDER = "PROVIDER"
    CONFIG = "CONFIG"
    AUTH = "AUTH"
    VALIDATION = "VALIDATION"
    ORCHESTRATION = "ORCHESTRATION"
    TEARDOWN = "TEARDOWN"
    CANCELLED = "CANCELLED"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        provider: Backend name (``aws``, ``hetzner`` ...)
        operation: High-level operation (``deploy``, ``destroy``, ``reset``)
        step: Step name active when the error happened
        run_id: Orchestration run identifier
        resource: Resource kind or id involved
        metadata: Anything else worth logging
    """

    provider: str | None = None
    operation: str | None = None
    step: str | None = None
    run_id: str | None = None
    resource: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return non-empty fields, with metadata flattened in."""
        result: dict[str, Any] = {}
        for key in ("provider", "operation", "step", "run_id", "resource"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class CoolKitError(Exception):
    """Base exception for all cool-kit errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    can override both per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CoolKitError:
        """Add context to this error (fluent API).

        Usage:
            raise ProviderError("VM never became ready").with_context(
                provider="azure", step="Wait for VM ready"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# NETWORK
# =============================================================================


class NetworkError(CoolKitError):
    """Connection refused, DNS failure, timeout talking to a remote host."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


# =============================================================================
# EXTERNAL TOOLS AND APIS
# =============================================================================


class CommandError(CoolKitError):
    """An external command (cloud CLI, ssh, docker) exited unsuccessfully.

    The message carries the command's stderr so the classifier can match
    provider error patterns against it.
    """

    default_category = ErrorCategory.PROVIDER

    def __init__(
        self,
        command: list[str],
        returncode: int | None,
        stderr: str = "",
        *,
        stdout: str = "",
        message: str | None = None,
        **kwargs: Any,
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        if message is None:
            detail = (stderr or stdout).strip()
            program = command[0] if command else "command"
            if returncode is None:
                message = f"{program} did not complete"
            else:
                message = f"{program} exited with status {returncode}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message, **kwargs)


class ApiError(CoolKitError):
    """Non-2xx response from an HTTP API."""

    default_category = ErrorCategory.PROVIDER

    def __init__(self, status_code: int, body: str = "", *, url: str | None = None, **kwargs: Any):
        self.status_code = status_code
        self.body = body
        self.url = url
        message = f"API error (status {status_code})"
        if body.strip():
            message = f"{message}: {body.strip()}"
        kwargs.setdefault("retryable", status_code >= 500 or status_code == 429)
        super().__init__(message, **kwargs)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(CoolKitError):
    """Configuration error. Never retryable, the configuration must be fixed."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# PROVIDER / ORCHESTRATION ERRORS
# =============================================================================


class ProviderError(CoolKitError):
    """A backend failed to do what a step asked of it."""

    default_category = ErrorCategory.PROVIDER


class UnknownProviderError(ProviderError):
    """Provider name not present in the registry."""

    def __init__(self, name: str, available: list[str]):
        self.provider_name = name
        self.available = list(available)
        super().__init__(
            f"Unknown provider: {name!r}. Available: {', '.join(self.available)}",
            category=ErrorCategory.CONFIG,
        )


class OrchestrationError(CoolKitError):
    """Fault in the orchestration machinery itself rather than a backend."""

    default_category = ErrorCategory.ORCHESTRATION


class StepContractError(OrchestrationError):
    """A provider executed steps that differ from the ones it declared."""

    def __init__(self, index: int, expected: str | None, actual: str | None):
        self.index = index
        self.expected = expected
        self.actual = actual
        if actual is None:
            message = f"Provider finished without running declared step #{index + 1} {expected!r}"
        elif expected is None:
            message = f"Provider started undeclared step #{index + 1} {actual!r}"
        else:
            message = f"Provider started step #{index + 1} as {actual!r}, declared {expected!r}"
        super().__init__(message)


class DeploymentCancelled(CoolKitError):
    """The run was cancelled by the user. Not a failure."""

    default_category = ErrorCategory.CANCELLED


class TeardownError(CoolKitError):
    """A resource could not be deleted."""

    default_category = ErrorCategory.TEARDOWN
    default_retryable = True


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is worth retrying."""
    if isinstance(error, CoolKitError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CoolKitError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, PermissionError):
        return ErrorCategory.AUTH
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ApiError",
    "CommandError",
    "ConfigError",
    "CoolKitError",
    "DeploymentCancelled",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "MissingConfigError",
    "NetworkError",
    "OrchestrationError",
    "ProviderError",
    "StepContractError",
    "TeardownError",
    "UnknownProviderError",
    "categorize_error",
    "is_retryable",
]
