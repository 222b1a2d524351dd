"""Full-screen console facade.

``Console`` ties together the shared state, the screen renderer and the
terminal backend. Two locks keep it consistent: one guards the state, one the
terminal. A render takes a snapshot under the state lock and draws it under
the terminal lock only, so output producers never wait for the terminal while
holding the state.
"""

import asyncio
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from .. import output
from ..utils.config import ConsoleConfig
from .backend import (
    KeyCode, KeyEvent, KeyModifiers, MouseEvent, MouseKind, PasteEvent, ResizeEvent,
    TerminalBackend, TerminalEvent,
)
from .buffer import normalize_newlines
from .clipboard import ClipboardProvider, create_provider
from .completion import Completer
from .history import InputHistory
from .layout import output_position_at
from .permission import PermissionMenu, PermissionPrompt
from .screen import ConsoleScreen
from .sink import ConsoleOutputSink
from .state import ConsoleSnapshot, ConsoleState, InputMode, InputResult, TodoItem

logger = logging.getLogger(__name__)


class ReaderGate:
    """Keeps the input loop and a permission loop from reading at the same time.

    The input loop enters ``reading()`` around each bounded poll; the
    permission loop holds ``exclusive()`` for its whole duration, which parks
    the input loop at its next poll.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._readers = 0
        self._exclusive = False

    @contextmanager
    def reading(self) -> Iterator[None]:
        with self._condition:
            while self._exclusive:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                self._condition.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._condition:
            while self._exclusive:
                self._condition.wait()
            self._exclusive = True
            while self._readers:
                self._condition.wait()
        try:
            yield
        finally:
            with self._condition:
                self._exclusive = False
                self._condition.notify_all()


class Console:
    """Interactive terminal console: output, queue and todo panes over an input editor."""

    def __init__(self, backend: TerminalBackend, formatter: Optional[Callable[[str], str]] = None,
                 history: Optional[InputHistory] = None,
                 completer: Optional[Callable[[str, int], Optional[str]]] = None,
                 config: Optional[ConsoleConfig] = None,
                 router: Optional[output.OutputRouter] = None,
                 clipboard: Optional[ClipboardProvider] = None):
        self.config = config or ConsoleConfig()
        self.backend = backend
        self.formatter = formatter or (lambda text: text)
        self.router = router or output.router
        self.clipboard = clipboard or create_provider(self.config.clipboard)
        if history is None:
            history = InputHistory(self.config.history_limit)
        self._state = ConsoleState(
            max_output_lines=self.config.max_output_lines,
            history=history,
            completer=completer or Completer(),
            scroll_step=self.config.scroll_step,
        )
        self._state_lock = threading.Lock()
        self._screen = ConsoleScreen(
            backend,
            prompt_marker=self.config.prompt_marker,
            continuation_marker=self.config.continuation_marker,
            min_output_height=self.config.min_output_height,
        )
        self._screen_lock = threading.Lock()
        self._gate = ReaderGate()
        self._active_prompt: Optional[Tuple[PermissionPrompt, PermissionMenu]] = None
        self._interrupt_handler: Optional[Callable[[], None]] = None
        self._sink: Optional[ConsoleOutputSink] = None
        self._std_streams = None
        self._active = False

    # Lifecycle

    def start(self) -> "Console":
        """Enter full-screen mode and draw the first frame."""
        try:
            self.backend.enter()
        except Exception:
            self.backend.restore()
            raise
        self._active = True
        try:
            self.render(force_full=True)
        except Exception:
            self.close()
            raise
        return self

    def install_output(self, capture_std_streams: bool = True) -> ConsoleOutputSink:
        """Route program output into the output pane."""
        if self._sink is None:
            self._sink = self.output_sink()
            self.router.install(self._sink)
        if capture_std_streams and self._std_streams is None:
            self._std_streams = output.redirect_std_streams(self.router)
            self._std_streams.__enter__()
        return self._sink

    def close(self) -> None:
        """Restore output routing and the terminal. Safe to call twice."""
        if self._std_streams is not None:
            self._std_streams.__exit__(None, None, None)
            self._std_streams = None
        if self._sink is not None:
            self.router.uninstall(self._sink)
            self._sink = None
        if self._active:
            self._active = False
            self.backend.restore()

    def __enter__(self) -> "Console":
        self.start()
        self.install_output()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def active(self) -> bool:
        return self._active

    def set_interrupt_handler(self, handler: Optional[Callable[[], None]]) -> None:
        """Called on the input thread whenever the interrupt key is pressed."""
        self._interrupt_handler = handler

    def output_sink(self) -> ConsoleOutputSink:
        return ConsoleOutputSink(self)

    # Rendering

    def snapshot(self) -> ConsoleSnapshot:
        with self._state_lock:
            return self._state.snapshot()

    def history_entries(self) -> List[str]:
        with self._state_lock:
            return list(self._state.history.entries)

    def _take_snapshot(self) -> ConsoleSnapshot:
        # Caller holds the state lock.
        self._state.output_dirty = False
        self._state.last_render = time.monotonic()
        return self._state.snapshot()

    def _draw(self, snapshot: ConsoleSnapshot, force_full: bool = False) -> None:
        if not self._active:
            return
        snapshot = snapshot.formatted(self.formatter)
        with self._screen_lock:
            prompt, menu = self._active_prompt or (None, None)
            self._screen.render(snapshot, force_full, prompt, menu)
            area = self._screen.output_area
        if area is not None:
            with self._state_lock:
                self._state.output_width = area[0]

    def render(self, force_full: bool = False) -> None:
        with self._state_lock:
            snapshot = self._take_snapshot()
        self._draw(snapshot, force_full)

    # Output

    def append_output(self, text: str) -> None:
        """Append to the output pane, redrawing at most once per render interval."""
        interval = self.config.render_interval_ms / 1000
        with self._state_lock:
            self._state.append_output(text)
            if time.monotonic() - self._state.last_render < interval:
                return
            snapshot = self._take_snapshot()
        self._draw(snapshot)

    def flush_output(self) -> None:
        """Redraw now, whatever the render interval."""
        with self._state_lock:
            snapshot = self._take_snapshot()
        self._draw(snapshot)

    def clear_output(self) -> None:
        with self._state_lock:
            self._state.clear_output()
            snapshot = self._take_snapshot()
        self._draw(snapshot)

    def set_queue(self, items: Iterable[str]) -> None:
        """Replace the items listed in the queue pane."""
        with self._state_lock:
            self._state.set_queue(items)
            snapshot = self._take_snapshot()
        self._draw(snapshot)

    def set_todos(self, todos: Iterable[TodoItem]) -> None:
        """Replace the items listed in the todo pane."""
        with self._state_lock:
            self._state.set_todos(todos)
            snapshot = self._take_snapshot()
        self._draw(snapshot)

    # Input

    def read_input(self, stop: Optional[threading.Event] = None) -> Optional[InputResult]:
        """Block until the user submits, cancels or exits.

        Polls in short bounded waits. Returns None when ``stop`` is set.
        """
        interval = self.config.poll_interval_ms / 1000
        while stop is None or not stop.is_set():
            with self._gate.reading():
                if not self.backend.poll(interval):
                    continue
                result = self._dispatch(self.backend.read())
            if result is not None:
                return result
        return None

    def _dispatch(self, event: TerminalEvent) -> Optional[InputResult]:
        if isinstance(event, KeyEvent):
            return self._handle_key(event)
        if isinstance(event, PasteEvent):
            with self._state_lock:
                self._state.insert_text(event.text)
            self.render()
        elif isinstance(event, MouseEvent):
            if self._handle_mouse(event):
                self.render()
        elif isinstance(event, ResizeEvent):
            self.render(force_full=True)
        return None

    def _handle_mouse(self, event: MouseEvent) -> bool:
        """Apply wheel scrolling or drag selection; True if a redraw is due."""
        kind = event.kind
        if kind in (MouseKind.SCROLL_UP, MouseKind.SCROLL_DOWN):
            with self._state_lock:
                return self._state.scroll_output(kind)
        if kind is MouseKind.RELEASE:
            with self._state_lock:
                self._state.finish_selection()
            return False
        if kind is MouseKind.OTHER:
            with self._state_lock:
                return self._state.clear_selection()

        with self._screen_lock:
            area = self._screen.output_area
        if area is None:
            return False
        width, height = area
        with self._state_lock:
            state = self._state
            if kind is MouseKind.DRAG and not state.selecting:
                return False
            position = output_position_at(state.output.lines(), width, height, state.output_scroll,
                                          event.row, event.column)
            if position is None:
                return False
            if kind is MouseKind.PRESS:
                state.start_selection(position)
                return True
            return state.extend_selection(position)

    def _copy(self, text: str) -> None:
        if not text:
            return
        # The OSC 52 sequence shares the terminal stream with draws.
        with self._screen_lock:
            try:
                copied = self.clipboard.copy(text)
            except OSError as exc:
                logger.warning("Copying the selection failed: %s", exc)
                return
        if not copied:
            logger.debug("%s clipboard did not accept the selection", self.clipboard.name)

    def _handle_key(self, event: KeyEvent) -> Optional[InputResult]:
        if event.is_interrupt:
            with self._state_lock:
                selected = self._state.take_selection()
            if selected is not None:
                self._copy(selected)
                self.render()
                return None
            if self._interrupt_handler is not None:
                try:
                    self._interrupt_handler()
                except Exception:
                    logger.exception("Interrupt handler failed")
            return InputResult.exit()

        if event.code is KeyCode.ENTER and not event.modifiers:
            with self._state_lock:
                normal = self._state.mode is InputMode.NORMAL
            if normal:
                burst = self._drain_paste_burst()
                if burst is not None:
                    with self._state_lock:
                        self._state.insert_text(burst)
                    self.render()
                    return None

        with self._state_lock:
            result = self._state.handle_key(event)
        self.render()
        return result

    def _drain_paste_burst(self) -> Optional[str]:
        """Collect events arriving right after Enter.

        Terminals without bracketed paste deliver a pasted block as keystrokes,
        with Enter for every newline. If anything but newlines follows within
        the paste window, the Enter and the burst are returned as text to be
        inserted. Returns None for a genuine submit.
        """
        window = self.config.paste_window_ms / 1000
        if window <= 0:
            return None
        parts = ["\n"]
        has_text = False
        while self.backend.poll(window):
            event = self.backend.read()
            if isinstance(event, PasteEvent):
                text = normalize_newlines(event.text)
                parts.append(text)
                has_text = has_text or bool(text.strip("\n"))
            elif isinstance(event, KeyEvent):
                if event.code is KeyCode.ENTER:
                    parts.append("\n")
                elif event.code is KeyCode.TAB:
                    parts.append("\t")
                    has_text = True
                elif event.code is KeyCode.CHAR and not event.modifiers & KeyModifiers.CONTROL:
                    parts.append(event.char)
                    has_text = True
            elif isinstance(event, ResizeEvent):
                with self._screen_lock:
                    self._screen.invalidate()
        return "".join(parts) if has_text else None

    # Permission prompts

    def prompt_permission(self, prompt: PermissionPrompt) -> Optional[int]:
        """Show ``prompt`` as an inline menu and wait for a choice.

        Blocks the calling thread. The input loop is parked while the menu
        reads keys. Returns the chosen option index, or None if dismissed.
        """
        menu = PermissionMenu(len(prompt.options))
        with self._gate.exclusive():
            with self._screen_lock:
                self._active_prompt = (prompt, menu)
            try:
                self.render()
                while True:
                    event = self.backend.read()
                    if isinstance(event, ResizeEvent):
                        self.render(force_full=True)
                        continue
                    if isinstance(event, MouseEvent):
                        # The menu covers the output pane; only wheel scrolling applies.
                        if event.kind in (MouseKind.SCROLL_UP, MouseKind.SCROLL_DOWN):
                            self._dispatch(event)
                        continue
                    if not isinstance(event, KeyEvent):
                        continue
                    with self._screen_lock:
                        done = menu.handle_key(event)
                    if done:
                        break
                    self.render()
            finally:
                with self._screen_lock:
                    self._active_prompt = None
        self.render()
        return menu.choice

    async def prompt_permission_async(self, prompt: PermissionPrompt) -> Optional[int]:
        """Run the permission loop on a worker thread and await the choice."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.prompt_permission, prompt)


class InputWorker:
    """Runs ``Console.read_input`` on a dedicated thread.

    Results are handed to the asyncio side through one queue in the order
    they were produced: one producer thread, one consumer coroutine. An
    exception raised by the input loop ends the worker and is re-raised from
    ``get``.
    """

    def __init__(self, console: Console):
        self.console = console
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the thread; call from a coroutine on the consuming loop."""
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._thread = threading.Thread(target=self._run, name="console-input", daemon=True)
        self._thread.start()

    def _deliver(self, item: Union[InputResult, Exception]) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # The loop is closed; nobody is left to consume.
            return False
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                result = self.console.read_input(self._stop)
            except Exception as exc:
                logger.debug("Input worker stopping after error: %s", exc)
                self._deliver(exc)
                return
            if result is None or not self._deliver(result):
                return

    async def get(self) -> InputResult:
        item = await self._queue.get()
        if isinstance(item, Exception):
            raise item
        return item

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
