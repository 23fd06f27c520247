"""Keyboard input for the live view.

The live renderer owns stdout; keys are read on a small daemon thread from
prompt_toolkit's raw-mode input and posted into the renderer inbox as
:class:`KeyPressed` values, so the render loop handles them like any other
event. Raw mode disables ISIG, which is why Ctrl+C shows up here as the
``c-c`` key rather than as SIGINT.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from prompt_toolkit.input import Input, create_input

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPressed:
    key: str


class KeyAction(str, Enum):
    CANCEL = "cancel"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    TOP = "top"
    BOTTOM = "bottom"


KEY_BINDINGS: dict[str, KeyAction] = {
    "c-c": KeyAction.CANCEL,
    "escape": KeyAction.CANCEL,
    "q": KeyAction.CANCEL,
    "up": KeyAction.SCROLL_UP,
    "k": KeyAction.SCROLL_UP,
    "down": KeyAction.SCROLL_DOWN,
    "j": KeyAction.SCROLL_DOWN,
    "pageup": KeyAction.PAGE_UP,
    "pagedown": KeyAction.PAGE_DOWN,
    "home": KeyAction.TOP,
    "end": KeyAction.BOTTOM,
}


def action_for(key: str) -> KeyAction | None:
    return KEY_BINDINGS.get(key.lower() if len(key) == 1 else key)


class KeyReader:
    """Polls the terminal for key presses until stopped.

    Parameters
    ----------
    on_key
        Receives a :class:`KeyPressed` for every key (called on the reader thread).
    poll_interval
        Seconds between non-blocking reads.
    input_factory
        Builds the prompt_toolkit ``Input``; replaced in tests.
    """

    def __init__(
        self,
        on_key: Callable[[KeyPressed], None],
        *,
        poll_interval: float = 0.05,
        input_factory: Callable[[], Input] = create_input,
    ) -> None:
        self.on_key = on_key
        self.poll_interval = poll_interval
        self.input_factory = input_factory
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._input: Input | None = None

    @staticmethod
    def available() -> bool:
        return sys.stdin is not None and sys.stdin.isatty()

    def start(self) -> bool:
        """Begin reading. Returns False when stdin is not a terminal."""
        if not self.available():
            return False
        self._input = self.input_factory()
        self._thread = threading.Thread(target=self._loop, name="coolkit-keys", daemon=True)
        self._thread.start()
        return True

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._input is not None:
            self._input.close()
            self._input = None

    def _loop(self) -> None:
        assert self._input is not None
        try:
            with self._input.raw_mode():
                while not self._stop.is_set():
                    presses = self._input.read_keys()
                    if not presses:
                        presses = self._input.flush_keys()
                    for press in presses:
                        self.on_key(KeyPressed(key=getattr(press.key, "value", press.key)))
                    self._stop.wait(self.poll_interval)
        except (OSError, ValueError) as exc:
            # terminal went away; the render loop keeps working without keys
            logger.debug("keys.reader_stopped", extra={"error": str(exc)})
