"""Provider contract.

A Provider is one deployment backend. The orchestrator only ever talks to
it through two methods:

- ``declare_steps()`` - the ordered (name, description) list, known before
  anything runs. The renderer draws these as Pending rows.
- ``execute(sink, cancel)`` - performs exactly those steps, in that order,
  reporting through the sink. Returns a :class:`DeploymentOutput` or raises
  (``DeploymentError`` for a failed step, ``DeploymentCancelled`` when the
  token fires).

Most backends subclass :class:`StepProvider`, which derives both methods
from one ``steps()`` list so the declared and executed sequences cannot
drift apart.

Related Modules:
    - :mod:`coolkit.providers` - Concrete backends and the registry
    - :mod:`coolkit.deploy.orchestrator` - Consumer of this contract
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.events import StepInfo
from coolkit.deploy.executor import StepDefinition, StepExecutor
from coolkit.deploy.teardown import TeardownAction


@dataclass
class DeploymentOutput:
    """What a successful ``execute`` hands back.

    ``resources`` maps config keys (``server_id``, ``instance_id`` ...) to the
    ids created, so the CLI can persist them for a later ``destroy``.
    """

    dashboard_url: str | None = None
    resources: dict[str, str] = field(default_factory=dict)


class Provider(ABC):
    """A deployment backend."""

    name: str = ""
    display_name: str = ""

    @abstractmethod
    def declare_steps(self) -> list[StepInfo]:
        ...

    @abstractmethod
    def execute(self, sink: EventSink, cancel: CancelToken) -> DeploymentOutput:
        ...

    def recorded_output(self) -> DeploymentOutput | None:
        """What was created so far, readable after a failed or cancelled run."""
        return None

    def teardown_plan(self) -> list[TeardownAction]:
        """Ordered deletions undoing a previous deployment (dependents first)."""
        return []


class StepProvider(Provider):
    """Provider built from a list of :class:`StepDefinition`.

    Subclasses implement :meth:`steps`; step actions record what they
    create through :meth:`record` and set :attr:`dashboard_url`.
    """

    def __init__(self) -> None:
        self.output = DeploymentOutput()

    @abstractmethod
    def steps(self) -> list[StepDefinition]:
        ...

    def declare_steps(self) -> list[StepInfo]:
        return [definition.info for definition in self.steps()]

    def execute(self, sink: EventSink, cancel: CancelToken) -> DeploymentOutput:
        self.output = DeploymentOutput()
        StepExecutor(self.name).run(self.steps(), sink, cancel)
        return self.output

    def recorded_output(self) -> DeploymentOutput:
        return self.output

    # ── Helpers for step actions ─────────────────────────────────

    def record(self, key: str, value: object) -> None:
        self.output.resources[key] = str(value)

    @property
    def dashboard_url(self) -> str | None:
        return self.output.dashboard_url

    @dashboard_url.setter
    def dashboard_url(self, value: str | None) -> None:
        self.output.dashboard_url = value
