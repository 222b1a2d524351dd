"""
Pytest configuration and shared fixtures for the agent console test suite.
"""

import pytest
import asyncio
import os
import sys
import tempfile
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple
import logging

# Add src to path for imports during testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from agent_console.interface.backend import (  # noqa: E402
    KeyCode, KeyEvent, KeyModifiers, TerminalBackend, TerminalError, TerminalSize,
)
from agent_console.output import OutputRouter, OutputSink  # noqa: E402
from agent_console.utils.config import ConsoleConfig  # noqa: E402

# Disable logging during tests to reduce noise
logging.getLogger("agent_console").setLevel(logging.CRITICAL)


@dataclass
class DrawCall:
    rows: Tuple[str, ...]
    cursor: Tuple[int, int]
    clear: bool


class FakeBackend(TerminalBackend):
    """Scripted terminal: replays queued events and records every draw."""

    # Idle polls sleep for their timeout; a script that runs dry for this
    # long has nothing left to say.
    MAX_IDLE_SECONDS = 1.0

    def __init__(self, columns: int = 40, rows: int = 12, events=()):
        self.columns = columns
        self.rows = rows
        self.events = deque(events)
        self.draws: List[DrawCall] = []
        self.entered = False
        self.restored = False
        self.idle_time = 0.0

    def push(self, *events) -> None:
        self.events.extend(events)

    def type_text(self, text: str) -> None:
        for char in text:
            self.events.append(KeyEvent(KeyCode.CHAR, char))

    def pause(self) -> None:
        """Make the next poll time out, as if the user stopped typing."""
        self.events.append(None)

    def enter(self) -> None:
        self.entered = True

    def restore(self) -> None:
        self.restored = True

    def size(self) -> TerminalSize:
        return TerminalSize(self.columns, self.rows)

    def poll(self, timeout: float) -> bool:
        if self.events and self.events[0] is None:
            self.events.popleft()
            return False
        if self.events:
            return True
        if self.idle_time > self.MAX_IDLE_SECONDS:
            raise TerminalError("no more scripted events")
        time.sleep(timeout)
        self.idle_time += timeout
        return False

    def read(self):
        if not self.events:
            raise TerminalError("no more scripted events")
        return self.events.popleft()

    def draw(self, rows, cursor, clear) -> None:
        self.draws.append(DrawCall(tuple(rows), cursor, clear))

    @property
    def last_draw(self) -> DrawCall:
        return self.draws[-1]


class CaptureSink(OutputSink):
    """Records routed output."""

    def __init__(self):
        self.writes: List[Tuple[str, bool]] = []
        self.flushes = 0

    def write(self, text: str, is_error: bool = False) -> None:
        self.writes.append((text, is_error))

    def flush(self) -> None:
        self.flushes += 1

    @property
    def text(self) -> str:
        return "".join(text for text, _ in self.writes)


def key(code: KeyCode, char: str = "", modifiers: KeyModifiers = KeyModifiers.NONE) -> KeyEvent:
    return KeyEvent(code, char, modifiers)


def ctrl(char: str) -> KeyEvent:
    return KeyEvent(KeyCode.CHAR, char, KeyModifiers.CONTROL)


ENTER = KeyEvent(KeyCode.ENTER)
ESCAPE = KeyEvent(KeyCode.ESCAPE)


@pytest.fixture
def backend():
    """A 40x12 scripted terminal."""
    return FakeBackend()


@pytest.fixture
def console_config():
    """Console settings with redraw debouncing off and no paste window wait."""
    return ConsoleConfig(render_interval_ms=0, poll_interval_ms=1, paste_window_ms=1)


@pytest.fixture
def router():
    """A private output router so tests never touch the global one."""
    return OutputRouter(default=CaptureSink())


@pytest.fixture
def console(backend, console_config, router):
    """A started console over the scripted backend."""
    from agent_console.interface.console import Console

    instance = Console(backend, config=console_config, router=router)
    instance.start()
    yield instance
    instance.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def clean_environment():
    """Ensure clean environment variables for testing."""
    original_env = os.environ.copy()

    for var in list(os.environ):
        if var.startswith("AGENT_CONSOLE_"):
            del os.environ[var]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        item.add_marker(pytest.mark.unit)

        # Mark async tests
        if asyncio.iscoroutinefunction(item.function):
            item.add_marker(pytest.mark.asyncio)
