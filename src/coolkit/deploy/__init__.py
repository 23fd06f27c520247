"""
Deployment orchestration core.

Providers declare an ordered list of steps and execute them against an
event sink; the orchestrator runs that on a worker thread while a
renderer draws progress on the main thread; failures are classified into
Diagnostics; teardown deletes resources with bounded retries.

Usage:
    from coolkit.deploy import Orchestrator
    from coolkit.providers import get_provider

    result = Orchestrator(settings).deploy(get_provider("hetzner", store, settings))
    if result.success:
        print(result.dashboard_url)
"""

from coolkit.deploy.channel import CancelToken, ChannelClosed, EventChannel, EventSink
from coolkit.deploy.diagnostics import (
    DeploymentError,
    Diagnostic,
    ErrorMatcher,
    MatcherRegistry,
    PatternMatcher,
    classify,
    clean_error_message,
    format_diagnostic,
    format_diagnostic_box,
    register_matcher,
)
from coolkit.deploy.events import (
    LogEvent,
    LogLevel,
    ProgressEvent,
    RunCompleted,
    RunOutcome,
    RunResult,
    Step,
    StepFinished,
    StepInfo,
    StepProgress,
    StepStarted,
    StepStatus,
)
from coolkit.deploy.executor import StepDefinition, StepExecutor
from coolkit.deploy.orchestrator import Orchestrator
from coolkit.deploy.provider import DeploymentOutput, Provider, StepProvider
from coolkit.deploy.renderer import LiveRenderer, PlainRenderer, Renderer, RendererExit
from coolkit.deploy.teardown import (
    ConfirmationGate,
    ResourceHandle,
    TeardownAction,
    TeardownCoordinator,
    TeardownReport,
)
from coolkit.deploy.view import LogPane, ProgressView, extract_access_url

__all__ = [
    "CancelToken",
    "ChannelClosed",
    "ConfirmationGate",
    "DeploymentError",
    "DeploymentOutput",
    "Diagnostic",
    "ErrorMatcher",
    "EventChannel",
    "EventSink",
    "LiveRenderer",
    "LogEvent",
    "LogLevel",
    "LogPane",
    "MatcherRegistry",
    "Orchestrator",
    "PatternMatcher",
    "PlainRenderer",
    "ProgressEvent",
    "ProgressView",
    "Provider",
    "Renderer",
    "RendererExit",
    "ResourceHandle",
    "RunCompleted",
    "RunOutcome",
    "RunResult",
    "Step",
    "StepDefinition",
    "StepExecutor",
    "StepFinished",
    "StepInfo",
    "StepProgress",
    "StepProvider",
    "StepStarted",
    "StepStatus",
    "TeardownAction",
    "TeardownCoordinator",
    "TeardownReport",
    "classify",
    "clean_error_message",
    "extract_access_url",
    "format_diagnostic",
    "format_diagnostic_box",
    "register_matcher",
]
