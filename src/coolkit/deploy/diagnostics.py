"""Error classification and remediation hints.

Turns whatever a backend threw (CLI stderr, HTTP error bodies, exceptions,
``None``) into a :class:`Diagnostic`: a short taxonomy code, a cleaned
message and, when the failure is recognised, a one-line suggested fix.

Why This Matters:
    Cloud CLIs and SDKs fail with walls of text: request URLs, separator
    lines, status banners, embedded JSON. Users need "Insufficient
    permissions" and "Check your AWS credentials: aws configure list", not
    the raw dump. Every error that crosses from the worker to the terminal
    goes through :func:`classify` first.

Key Concepts:
    ErrorMatcher: Recognises one failure class. Matchers are tried in
        registration order and the first match wins.
    MatcherRegistry: Ordered matcher list plus the ``classify`` entry point.
        The module-level registry is pre-loaded with Azure, AWS, GCP,
        Hetzner, DigitalOcean, SSH and generic matchers.
    Fallback: When nothing matches, transport noise is stripped, whitespace
        collapsed and the text truncated to 200 characters plus ``...``.

Architecture Decisions:
    - ``classify`` is total. ``None``, empty strings, exceptions with no
      message and already-built Diagnostics all yield a Diagnostic with a
      non-empty message; a matcher that raises is skipped.
    - String and regex matching is isolated behind ``ErrorMatcher`` so a
      backend that returns typed errors can get a structured matcher
      without touching callers.

Related Modules:
    - :mod:`coolkit.deploy.executor` - Classifies step failures
    - :mod:`coolkit.deploy.renderer` - Displays Diagnostics

Tags:
    errors, classification, diagnostics, remediation, regex
"""

from __future__ import annotations

import json
import logging
import re
import textwrap
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from coolkit.core.errors import CommandError, CoolKitError, ErrorCategory

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"
MAX_MESSAGE_LENGTH = 200

# ---------------------------------------------------------------------------
# Diagnostic
# ---------------------------------------------------------------------------


class Diagnostic(BaseModel):
    """Structured, user-facing description of a failure.

    ``cause`` keeps the original error for logging; it is never rendered
    and is excluded from serialisation.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: str = ""
    operation: str = ""
    code: str = ""
    message: str = UNKNOWN_ERROR
    suggestion: str = ""
    cause: Any = Field(default=None, exclude=True, repr=False)

    @property
    def classified(self) -> bool:
        return bool(self.code)

    def __str__(self) -> str:
        return format_diagnostic(self)


class DeploymentError(CoolKitError):
    """Raised by the executor when a step fails. Carries the Diagnostic."""

    default_category = ErrorCategory.PROVIDER

    def __init__(self, diagnostic: Diagnostic, *, step: str | None = None, step_index: int | None = None):
        self.diagnostic = diagnostic
        self.step_index = step_index
        cause = diagnostic.cause if isinstance(diagnostic.cause, BaseException) else None
        super().__init__(diagnostic.message, cause=cause)
        self.with_context(provider=diagnostic.provider or None, operation=diagnostic.operation or None, step=step)


# ---------------------------------------------------------------------------
# Cleaning
# ---------------------------------------------------------------------------

_NOISE_PATTERNS = [
    re.compile(r"\b(?:PUT|GET|POST|PATCH|DELETE|HEAD)\s+https?://\S+"),
    re.compile(r"-{10,}"),
    re.compile(r"={10,}"),
    re.compile(r"RESPONSE\s+\d+:\s+\d+\s+[A-Za-z]+"),
    re.compile(r"ERROR CODE:\s+[A-Za-z]+"),
]
_WHITESPACE = re.compile(r"\s+")


def clean_error_message(text: str | None, limit: int = MAX_MESSAGE_LENGTH) -> str:
    """Strip transport noise, collapse whitespace and truncate.

    >>> clean_error_message("PUT https://management.azure.com/x  ----------  boom")
    'boom'
    """
    if not text:
        return UNKNOWN_ERROR
    result = text
    for pattern in _NOISE_PATTERNS:
        result = pattern.sub("", result)
    result = _WHITESPACE.sub(" ", result).strip()
    if not result:
        return UNKNOWN_ERROR
    if len(result) > limit:
        result = result[:limit] + "..."
    return result


def error_text(err: Any) -> str:
    """Best-effort textual form of an error value."""
    if err is None:
        return ""
    if isinstance(err, str):
        return err
    if isinstance(err, CommandError):
        parts = [err.message]
        if err.stderr and err.stderr.strip() not in err.message:
            parts.append(err.stderr)
        return "\n".join(parts)
    if isinstance(err, BaseException):
        text = str(err)
        return text if text else type(err).__name__
    return str(err)


def try_parse_json(text: str) -> dict[str, Any] | None:
    """Extract the first JSON object embedded in ``text``, if any."""
    start = text.find("{")
    while start != -1:
        try:
            value, _ = json.JSONDecoder().raw_decode(text[start:])
        except ValueError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Match:
    """What a matcher contributes to a Diagnostic."""

    code: str
    suggestion: str = ""
    message: str | None = None


class ErrorMatcher(ABC):
    """Recognises one class of failure in error text."""

    name: str
    providers: frozenset[str]

    def applies_to(self, provider: str) -> bool:
        providers = getattr(self, "providers", None)
        return not providers or not provider or provider in providers

    @abstractmethod
    def match(self, text: str, err: Any) -> Match | None:
        ...


@dataclass(frozen=True)
class PatternMatcher(ErrorMatcher):
    """Matches when any pattern (regex, or plain substring) occurs in the text.

    ``message`` replaces the raw text when set; otherwise the cleaned raw
    text is kept as the message.
    """

    name: str
    code: str
    patterns: tuple[str, ...]
    suggestion: str = ""
    message: str | None = None
    ignore_case: bool = False
    regex: bool = False
    providers: frozenset[str] = field(default_factory=frozenset)

    def match(self, text: str, err: Any) -> Match | None:
        haystack = text.lower() if self.ignore_case and not self.regex else text
        for pattern in self.patterns:
            if self.regex:
                flags = re.IGNORECASE if self.ignore_case else 0
                found = re.search(pattern, haystack, flags) is not None
            else:
                needle = pattern.lower() if self.ignore_case else pattern
                found = needle in haystack
            if found:
                return Match(code=self.code, suggestion=self.suggestion, message=self.message)
        return None


AZURE_SUGGESTIONS: dict[str, str] = {
    "PropertyChangeNotAllowed": "Delete existing resources first: az group delete --name coolify-rg --yes",
    "ResourceNotFound": "The resource may have been deleted or doesn't exist",
    "ResourceGroupNotFound": "The resource group will be created on the next deploy",
    "AuthorizationFailed": "Check your Azure permissions - Contributor role required",
    "QuotaExceeded": "Request a quota increase in Azure portal or try a different region",
    "SkuNotAvailable": "This VM size is not available in the region. Try a different VM size or region",
    "OperationNotAllowed": "This operation is not permitted. Check subscription restrictions",
    "SubscriptionNotRegistered": "Register the resource provider: az provider register --namespace Microsoft.Compute",
    "InvalidParameter": "Check your configuration values",
    "ConflictingUserInput": "There's a conflict with existing resources. Try deleting and recreating",
}

_AZURE_JSON = re.compile(
    r'\{[^{}]*"error"\s*:\s*\{[^{}]*"code"\s*:\s*"([^"]+)"[^{}]*"message"\s*:\s*"([^"]+)"'
)


class AzureErrorMatcher(ErrorMatcher):
    """Azure ARM error bodies: ``{"error": {"code": ..., "message": ...}}``."""

    name = "azure-json"
    providers: frozenset[str] = frozenset()

    def match(self, text: str, err: Any) -> Match | None:
        found = _AZURE_JSON.search(text)
        if found:
            code, message = found.group(1), found.group(2)
            return Match(code=code, message=message, suggestion=AZURE_SUGGESTIONS.get(code, ""))
        body = try_parse_json(text)
        if body and isinstance(body.get("error"), dict):
            code = str(body["error"].get("code") or "")
            message = str(body["error"].get("message") or "")
            if code:
                return Match(code=code, message=message or None, suggestion=AZURE_SUGGESTIONS.get(code, ""))
        return None


def builtin_matchers() -> list[ErrorMatcher]:
    """The default matcher set, in priority order."""
    return [
        AzureErrorMatcher(),
        PatternMatcher(
            name="azure-property-change",
            code="PropertyChangeNotAllowed",
            patterns=("PropertyChangeNotAllowed",),
            message="Cannot modify existing VM configuration",
            suggestion="Delete the resource group first: az group delete --name coolify-rg --yes",
        ),
        PatternMatcher(
            name="azure-resource-group-missing",
            code="ResourceGroupNotFound",
            patterns=("ResourceGroupNotFound",),
            message="Resource group does not exist",
            suggestion=AZURE_SUGGESTIONS["ResourceGroupNotFound"],
        ),
        PatternMatcher(
            name="azure-authorization",
            code="AuthorizationFailed",
            patterns=("AuthorizationFailed",),
            message="Insufficient permissions",
            suggestion="Ensure your Azure account has Contributor role on the subscription",
        ),
        PatternMatcher(
            name="azure-login",
            code="AzureLoginRequired",
            patterns=("Please run 'az login'", "az login"),
            message="Azure CLI is not logged in",
            suggestion="Run: az login",
        ),
        PatternMatcher(
            name="aws-access-denied",
            code="AccessDenied",
            patterns=("UnauthorizedAccess", "AccessDenied", "UnauthorizedOperation"),
            message="AWS access denied",
            suggestion="Check your AWS credentials: aws configure list",
        ),
        PatternMatcher(
            name="aws-credentials",
            code="NoCredentials",
            patterns=("Unable to locate credentials", "InvalidClientTokenId", "ExpiredToken"),
            message="AWS credentials missing or expired",
            suggestion="Configure credentials: aws configure",
        ),
        PatternMatcher(
            name="aws-instance-limit",
            code="InstanceLimitExceeded",
            patterns=("InstanceLimitExceeded", "VcpuLimitExceeded"),
            message="Instance limit exceeded",
            suggestion="Request a limit increase or terminate unused instances",
        ),
        PatternMatcher(
            name="aws-dependency",
            code="DependencyViolation",
            patterns=("DependencyViolation",),
            suggestion="Another resource still uses this one; wait for it to be deleted and retry",
        ),
        PatternMatcher(
            name="gcp-permission",
            code="PERMISSION_DENIED",
            patterns=("PERMISSION_DENIED",),
            message="GCP permission denied",
            suggestion="Run: gcloud auth login && gcloud config set project YOUR_PROJECT",
        ),
        PatternMatcher(
            name="gcp-quota",
            code="QUOTA_EXCEEDED",
            patterns=("QUOTA_EXCEEDED", "Quota '"),
            message="GCP quota exceeded",
            suggestion="Request a quota increase in the Cloud Console or pick another zone",
        ),
        PatternMatcher(
            name="hetzner-unauthorized",
            code="HetznerUnauthorized",
            patterns=(r"hcloud: .*\(unauthorized\)", r"invalid token"),
            regex=True,
            ignore_case=True,
            message="Hetzner Cloud token rejected",
            suggestion="Create a new API token and run: hcloud context create cool-kit",
        ),
        PatternMatcher(
            name="hetzner-limit",
            code="ResourceLimitExceeded",
            patterns=("resource_limit_exceeded", "server_limit_exceeded"),
            message="Hetzner Cloud resource limit reached",
            suggestion="Delete unused servers or ask Hetzner support to raise the limit",
        ),
        PatternMatcher(
            name="digitalocean-auth",
            code="DigitalOceanUnauthorized",
            patterns=("Unable to authenticate you",),
            message="DigitalOcean token rejected",
            suggestion="Run: doctl auth init",
        ),
        PatternMatcher(
            name="digitalocean-limit",
            code="DropletLimitExceeded",
            patterns=("droplet limit", "exceed your droplet limit"),
            ignore_case=True,
            message="DigitalOcean droplet limit reached",
            suggestion="Destroy unused droplets or request a higher limit",
        ),
        PatternMatcher(
            name="ssh-auth",
            code="SSHAuthFailed",
            patterns=("Permission denied (publickey",),
            message="SSH authentication failed",
            suggestion="Check the SSH key path and that the public key is authorized on the server",
        ),
        PatternMatcher(
            name="tool-missing",
            code="ToolNotInstalled",
            patterns=("command not found",),
            suggestion="Install the required CLI and make sure it is on PATH",
        ),
        PatternMatcher(
            name="permission-denied",
            code="PermissionDenied",
            patterns=(r"permission denied", r"access denied", r"\bforbidden\b", r"\bunauthori[sz]ed\b"),
            regex=True,
            ignore_case=True,
            suggestion="Check that your credentials are valid and allowed to perform this operation",
        ),
        PatternMatcher(
            name="quota-exceeded",
            code="QuotaExceeded",
            patterns=(r"quota", r"limit exceeded"),
            regex=True,
            ignore_case=True,
            suggestion="Request a quota increase or choose a smaller size or another region",
        ),
        PatternMatcher(
            name="conflict",
            code="ResourceConflict",
            patterns=(r"already exists", r"\bconflict\b"),
            regex=True,
            ignore_case=True,
            suggestion="A resource with this name exists; destroy it first or choose another name",
        ),
        PatternMatcher(
            name="not-found",
            code="ResourceNotFound",
            patterns=(r"\bnot found\b", r"does not exist"),
            regex=True,
            ignore_case=True,
            suggestion="The resource may have been deleted already or the id is wrong",
        ),
        PatternMatcher(
            name="network",
            code="NetworkError",
            patterns=(r"connection refused", r"timed out", r"name or service not known", r"no route to host"),
            regex=True,
            ignore_case=True,
            suggestion="Check network connectivity and that the host is reachable",
        ),
    ]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class MatcherRegistry:
    """Ordered set of matchers; registration order breaks ties."""

    def __init__(self, matchers: list[ErrorMatcher] | None = None) -> None:
        self._matchers: list[ErrorMatcher] = list(matchers or [])

    @property
    def matchers(self) -> list[ErrorMatcher]:
        return list(self._matchers)

    def register(self, matcher: ErrorMatcher, *, before: str | None = None) -> None:
        """Append a matcher, or insert it ahead of the matcher named ``before``."""
        if before is not None:
            for i, existing in enumerate(self._matchers):
                if existing.name == before:
                    self._matchers.insert(i, matcher)
                    return
        self._matchers.append(matcher)

    def classify(self, provider: str | None, operation: str | None, err: Any) -> Diagnostic:
        """Map any error value to a Diagnostic. Never raises."""
        provider = provider or ""
        operation = operation or ""

        if isinstance(err, Diagnostic):
            return _fill(err, provider, operation)
        if isinstance(err, DeploymentError):
            return _fill(err.diagnostic, provider, operation)
        if err is None:
            return Diagnostic(provider=provider, operation=operation, message=UNKNOWN_ERROR)

        try:
            text = error_text(err)
        except Exception:  # noqa: BLE001 - str() of a foreign object can fail
            text = type(err).__name__

        for matcher in self._matchers:
            if not matcher.applies_to(provider):
                continue
            try:
                found = matcher.match(text, err)
            except Exception:  # noqa: BLE001
                logger.warning("diagnostics.matcher_failed", extra={"matcher": matcher.name}, exc_info=True)
                continue
            if found is not None:
                message = clean_error_message(found.message or text)
                return Diagnostic(
                    provider=provider,
                    operation=operation,
                    code=found.code,
                    message=message,
                    suggestion=found.suggestion,
                    cause=err,
                )

        return Diagnostic(
            provider=provider,
            operation=operation,
            message=clean_error_message(text),
            cause=err,
        )


def _fill(diagnostic: Diagnostic, provider: str, operation: str) -> Diagnostic:
    updates: dict[str, str] = {}
    if provider and not diagnostic.provider:
        updates["provider"] = provider
    if operation and not diagnostic.operation:
        updates["operation"] = operation
    if not diagnostic.message:
        updates["message"] = UNKNOWN_ERROR
    return diagnostic.model_copy(update=updates) if updates else diagnostic


default_registry = MatcherRegistry(builtin_matchers())


def classify(provider: str | None, operation: str | None, err: Any) -> Diagnostic:
    """Classify ``err`` with the default registry."""
    return default_registry.classify(provider, operation, err)


def register_matcher(matcher: ErrorMatcher, *, before: str | None = None) -> None:
    """Add a matcher to the default registry."""
    default_registry.register(matcher, before=before)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_diagnostic(diagnostic: Diagnostic) -> str:
    """``[CODE] message`` plus a fix line when a suggestion exists."""
    text = f"[{diagnostic.code}] {diagnostic.message}" if diagnostic.code else diagnostic.message
    if diagnostic.suggestion:
        text += f"\n\n💡 Fix: {diagnostic.suggestion}"
    return text


def format_diagnostic_box(diagnostic: Diagnostic, width: int = 70) -> str:
    """Plain-text box for terminals without rich rendering."""
    inner = max(width - 4, 20)
    title = "Deployment Failed"
    if diagnostic.provider:
        title += f" ({diagnostic.provider})"
    lines = [title, ""]
    if diagnostic.code:
        lines.append(f"Error: {diagnostic.code}")
    lines.extend(textwrap.wrap(diagnostic.message, inner) or [""])
    if diagnostic.suggestion:
        lines.append("")
        lines.extend(textwrap.wrap(f"💡 Fix: {diagnostic.suggestion}", inner))
    border = "─" * (inner + 2)
    body = [f"│ {line.ljust(inner)} │" for line in lines]
    return "\n".join([f"╭{border}╮", *body, f"╰{border}╯"])
