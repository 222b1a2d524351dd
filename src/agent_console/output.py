"""Process-wide output routing.

Every print-style call in the program goes through the module level ``router``.
While a full-screen console is active it installs a sink and all output lands
in the console's output pane; otherwise text passes straight through to the
standard streams.
"""

import io
import sys
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO


class OutputSink(ABC):
    """Destination for routed output."""

    @abstractmethod
    def write(self, text: str, is_error: bool = False) -> None:
        """Write text. ``is_error`` marks text bound for the error stream."""
        pass

    @abstractmethod
    def flush(self) -> None:
        """Flush any buffered output."""
        pass


class StdStreamSink(OutputSink):
    """Passthrough sink writing to stdout/stderr."""

    def __init__(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self._stdout = stdout
        self._stderr = stderr

    def _stream(self, is_error: bool) -> TextIO:
        if is_error:
            stream = self._stderr or sys.stderr
            fallback = sys.__stderr__
        else:
            stream = self._stdout or sys.stdout
            fallback = sys.__stdout__
        # A routed stream would send the text straight back to the router.
        if isinstance(stream, RoutedStream):
            return fallback
        return stream

    def write(self, text: str, is_error: bool = False) -> None:
        stream = self._stream(is_error)
        stream.write(text)
        if is_error:
            stream.flush()

    def flush(self) -> None:
        self._stream(False).flush()
        self._stream(True).flush()


class OutputRouter:
    """Routes output to the installed sink or to the default passthrough."""

    def __init__(self, default: Optional[OutputSink] = None):
        self._default = default or StdStreamSink()
        self._sink: Optional[OutputSink] = None
        self._lock = threading.Lock()

    def install(self, sink: OutputSink) -> None:
        """Install a sink; replaces any previously installed one."""
        with self._lock:
            self._sink = sink

    def uninstall(self, sink: Optional[OutputSink] = None) -> None:
        """Remove the installed sink.

        When ``sink`` is given, only that sink is removed; a different sink
        installed in the meantime stays in place.
        """
        with self._lock:
            if sink is None or self._sink is sink:
                self._sink = None

    def is_redirected(self) -> bool:
        """Whether a sink other than the default passthrough is installed."""
        with self._lock:
            return self._sink is not None

    @contextmanager
    def redirected(self, sink: OutputSink) -> Iterator[OutputSink]:
        """Install ``sink`` for the duration of the block."""
        self.install(sink)
        try:
            yield sink
        finally:
            self.uninstall(sink)

    def _current(self) -> OutputSink:
        with self._lock:
            return self._sink or self._default

    def write(self, text: str, is_error: bool = False) -> None:
        """Write text through the active sink."""
        # The sink may redraw the screen, so it is called outside the lock.
        self._current().write(text, is_error)

    def write_line(self, text: str = "", is_error: bool = False) -> None:
        """Write text followed by a newline."""
        self.write(f"{text}\n", is_error)

    def flush(self) -> None:
        """Flush the active sink."""
        self._current().flush()


class RoutedStream(io.TextIOBase):
    """File-like object that forwards writes to an output router."""

    def __init__(self, target: OutputRouter, is_error: bool = False):
        super().__init__()
        self._router = target
        self._is_error = is_error

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        if text:
            self._router.write(text, self._is_error)
        return len(text)

    def flush(self) -> None:
        self._router.flush()

    def isatty(self) -> bool:
        return False


@contextmanager
def redirect_std_streams(target: Optional["OutputRouter"] = None) -> Iterator[None]:
    """Point ``sys.stdout``/``sys.stderr`` at the router for the block."""
    target = target or router
    saved_stdout, saved_stderr = sys.stdout, sys.stderr
    sys.stdout = RoutedStream(target)
    sys.stderr = RoutedStream(target, is_error=True)
    try:
        yield
    finally:
        sys.stdout, sys.stderr = saved_stdout, saved_stderr


# Global output router instance
router = OutputRouter()


def set_output_sink(sink: OutputSink) -> None:
    """Install a sink on the global router."""
    router.install(sink)


def clear_output_sink(sink: Optional[OutputSink] = None) -> None:
    """Remove the sink from the global router."""
    router.uninstall(sink)


def is_console_active() -> bool:
    """Whether output is currently redirected into a console."""
    return router.is_redirected()


def write(text: str, is_error: bool = False) -> None:
    router.write(text, is_error)


def write_line(text: str = "", is_error: bool = False) -> None:
    router.write_line(text, is_error)


def flush() -> None:
    router.flush()
