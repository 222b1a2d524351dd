"""Terminal backend: input events and the prompt_toolkit VT100 implementation."""

import logging
import re
import select
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Deque, List, NamedTuple, Optional, Sequence, Tuple, Union

from prompt_toolkit.input import create_input
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys
from prompt_toolkit.output import create_output

logger = logging.getLogger(__name__)


class ConsoleError(Exception):
    """Base error for the console."""


class TerminalError(ConsoleError):
    """A terminal I/O operation failed."""


class TerminalSize(NamedTuple):
    columns: int
    rows: int


class KeyCode(str, Enum):
    """Keys the console distinguishes."""
    CHAR = "char"
    ENTER = "enter"
    TAB = "tab"
    BACKSPACE = "backspace"
    ESCAPE = "escape"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class KeyModifiers(IntFlag):
    NONE = 0
    SHIFT = 1
    CONTROL = 2
    ALT = 4


class MouseKind(str, Enum):
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    # Left button
    PRESS = "press"
    DRAG = "drag"
    RELEASE = "release"
    OTHER = "other"


@dataclass(frozen=True)
class KeyEvent:
    code: KeyCode
    char: str = ""
    modifiers: KeyModifiers = KeyModifiers.NONE

    @property
    def is_interrupt(self) -> bool:
        return (self.code is KeyCode.CHAR and self.char.lower() == "c"
                and bool(self.modifiers & KeyModifiers.CONTROL))

    def is_ctrl(self, char: str) -> bool:
        return (self.code is KeyCode.CHAR and self.char.lower() == char
                and bool(self.modifiers & KeyModifiers.CONTROL))


@dataclass(frozen=True)
class PasteEvent:
    text: str


@dataclass(frozen=True)
class MouseEvent:
    kind: MouseKind
    row: int = 0
    column: int = 0


@dataclass(frozen=True)
class ResizeEvent:
    columns: int
    rows: int


TerminalEvent = Union[KeyEvent, PasteEvent, MouseEvent, ResizeEvent]


class TerminalBackend(ABC):
    """Terminal handle used by the console.

    ``enter`` switches the terminal into full-screen raw mode and ``restore``
    undoes it. ``draw`` replaces the screen contents with ``rows`` and places
    the cursor at ``(row, column)``, both zero based.
    """

    @abstractmethod
    def enter(self) -> None:
        pass

    @abstractmethod
    def restore(self) -> None:
        pass

    @abstractmethod
    def size(self) -> TerminalSize:
        pass

    @abstractmethod
    def poll(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for an event; True if one is ready."""
        pass

    @abstractmethod
    def read(self) -> TerminalEvent:
        """Return the next event, blocking until one arrives."""
        pass

    @abstractmethod
    def draw(self, rows: Sequence[str], cursor: Tuple[int, int], clear: bool) -> None:
        pass


_SPECIAL_KEYS = {
    Keys.ControlM: (KeyCode.ENTER, KeyModifiers.NONE),
    Keys.ControlJ: (KeyCode.ENTER, KeyModifiers.CONTROL),
    Keys.ControlI: (KeyCode.TAB, KeyModifiers.NONE),
    Keys.ControlH: (KeyCode.BACKSPACE, KeyModifiers.NONE),
    Keys.Up: (KeyCode.UP, KeyModifiers.NONE),
    Keys.Down: (KeyCode.DOWN, KeyModifiers.NONE),
    Keys.Left: (KeyCode.LEFT, KeyModifiers.NONE),
    Keys.Right: (KeyCode.RIGHT, KeyModifiers.NONE),
}

_SGR_MOUSE = re.compile(r"\x1b\[<(\d+);(\d+);(\d+)[mM]")
_URXVT_MOUSE = re.compile(r"\x1b\[(\d+);(\d+);(\d+)M")

# Button-event tracking: motion is reported while a button is held.
DRAG_REPORTS_ON = "\x1b[?1002h"
DRAG_REPORTS_OFF = "\x1b[?1002l"


def parse_mouse_event(data: str) -> Optional[MouseEvent]:
    """Parse SGR, urxvt or X10 mouse reports.

    Wheel steps and the left button's press, drag and release are told
    apart; presses and releases of other buttons come back as ``OTHER``.
    Motion without the left button held is dropped.
    """
    released = False
    match = _SGR_MOUSE.match(data)
    if match:
        button, column, row = (int(group) for group in match.groups())
        released = match.group(0).endswith("m")
    else:
        match = _URXVT_MOUSE.match(data)
        if match:
            button, column, row = (int(group) for group in match.groups())
            button -= 32
        elif data.startswith("\x1b[M") and len(data) >= 6:
            button, column, row = (ord(char) - 32 for char in data[3:6])
        else:
            return None
    pressed = button & 3
    if button & 64:
        kind = MouseKind.SCROLL_DOWN if button & 1 else MouseKind.SCROLL_UP
    elif button & 32:
        if pressed != 0:
            return None
        kind = MouseKind.DRAG
    elif released or pressed == 3:
        # X10 reports every release as button 3.
        kind = MouseKind.RELEASE if pressed in (0, 3) else MouseKind.OTHER
    else:
        kind = MouseKind.PRESS if pressed == 0 else MouseKind.OTHER
    return MouseEvent(kind, max(row - 1, 0), max(column - 1, 0))


def _translate(press: KeyPress, alt: bool) -> Optional[TerminalEvent]:
    key = press.key
    if key == Keys.BracketedPaste:
        return PasteEvent(press.data)
    if key == Keys.Vt100MouseEvent:
        return parse_mouse_event(press.data)
    if key == Keys.ScrollUp:
        return MouseEvent(MouseKind.SCROLL_UP)
    if key == Keys.ScrollDown:
        return MouseEvent(MouseKind.SCROLL_DOWN)

    modifiers = KeyModifiers.ALT if alt else KeyModifiers.NONE
    if key in _SPECIAL_KEYS:
        code, extra = _SPECIAL_KEYS[key]
        return KeyEvent(code, "", modifiers | extra)
    if isinstance(key, Keys):
        value = key.value
        if value.startswith("c-") and len(value) == 3:
            return KeyEvent(KeyCode.CHAR, value[2], modifiers | KeyModifiers.CONTROL)
        return None
    if len(key) == 1 and key.isprintable():
        return KeyEvent(KeyCode.CHAR, key, modifiers)
    return None


def translate_keys(presses: Sequence[KeyPress]) -> List[TerminalEvent]:
    """Turn prompt_toolkit key presses into console events.

    An Escape immediately followed by another key in the same batch is read
    as the Alt modifier of that key.
    """
    events: List[TerminalEvent] = []
    alt = False
    for press in presses:
        if press.key == Keys.Escape:
            if alt:
                events.append(KeyEvent(KeyCode.ESCAPE))
            alt = True
            continue
        event = _translate(press, alt)
        alt = False
        if event is not None:
            events.append(event)
    if alt:
        events.append(KeyEvent(KeyCode.ESCAPE))
    return events


class PromptToolkitBackend(TerminalBackend):
    """VT100 terminal driven through prompt_toolkit's input and output objects."""

    def __init__(self, stdin=None, stdout=None, mouse: bool = True):
        self._input = create_input(stdin)
        self._output = create_output(stdout)
        self._mouse = mouse
        self._pending: Deque[TerminalEvent] = deque()
        self._raw_mode = None
        self._last_size: Optional[TerminalSize] = None

    def enter(self) -> None:
        output = self._output
        try:
            self._raw_mode = self._input.raw_mode()
            self._raw_mode.__enter__()
            output.enter_alternate_screen()
            output.enable_bracketed_paste()
            if self._mouse:
                output.enable_mouse_support()
                output.write_raw(DRAG_REPORTS_ON)
            output.disable_autowrap()
            output.erase_screen()
            output.flush()
        except OSError as exc:
            raise TerminalError(f"Could not prepare terminal: {exc}") from exc
        self._last_size = self.size()

    def restore(self) -> None:
        output = self._output
        steps = [output.disable_bracketed_paste, output.enable_autowrap,
                 output.reset_attributes, output.show_cursor,
                 output.quit_alternate_screen, output.flush]
        if self._mouse:
            steps[:0] = [self._disable_drag_reports, output.disable_mouse_support]
        for step in steps:
            try:
                step()
            except Exception as exc:
                logger.debug("Terminal restore step %s failed: %s", step.__name__, exc)
        if self._raw_mode is not None:
            try:
                self._raw_mode.__exit__(None, None, None)
            except Exception as exc:
                logger.debug("Leaving raw mode failed: %s", exc)
            self._raw_mode = None

    def _disable_drag_reports(self) -> None:
        self._output.write_raw(DRAG_REPORTS_OFF)

    def size(self) -> TerminalSize:
        try:
            size = self._output.get_size()
        except OSError as exc:
            raise TerminalError(f"Could not query terminal size: {exc}") from exc
        return TerminalSize(size.columns, size.rows)

    def _check_resize(self) -> None:
        size = self.size()
        if self._last_size is not None and size != self._last_size:
            self._pending.append(ResizeEvent(size.columns, size.rows))
        self._last_size = size

    def poll(self, timeout: float) -> bool:
        if self._pending:
            return True
        self._check_resize()
        if self._pending:
            return True
        try:
            ready, _, _ = select.select([self._input.fileno()], [], [], max(timeout, 0))
            # A lone Escape is only reported once no more bytes follow it.
            presses = self._input.read_keys() if ready else self._input.flush_keys()
        except (OSError, ValueError) as exc:
            raise TerminalError(f"Could not read terminal input: {exc}") from exc
        self._pending.extend(translate_keys(presses))
        return bool(self._pending)

    def read(self) -> TerminalEvent:
        while not self.poll(0.05):
            pass
        return self._pending.popleft()

    def draw(self, rows: Sequence[str], cursor: Tuple[int, int], clear: bool) -> None:
        output = self._output
        try:
            output.hide_cursor()
            if clear:
                output.erase_screen()
            for index, row in enumerate(rows):
                output.cursor_goto(index + 1, 1)
                output.erase_end_of_line()
                output.write_raw(row)
                output.reset_attributes()
            output.cursor_goto(cursor[0] + 1, cursor[1] + 1)
            output.show_cursor()
            output.flush()
        except OSError as exc:
            raise TerminalError(f"Could not draw to terminal: {exc}") from exc
