"""Clipboard providers for copying selected output.

OSC 52 asks the terminal itself to set the system clipboard, which also works
over SSH. The native provider pipes text into a platform tool such as
``pbcopy`` or ``xclip``.
"""

import base64
import logging
import os
import shutil
import subprocess
import sys
from typing import List, Optional, Protocol, TextIO, Tuple

logger = logging.getLogger(__name__)

# Some terminals cap OSC 52 payloads (base64 encoded) at about 74KB.
OSC52_MAX_BYTES = 74994


class ClipboardProvider(Protocol):
    """Anything that can put text on the clipboard."""

    @property
    def name(self) -> str:
        ...

    def copy(self, text: str) -> bool:
        ...


class OSC52Provider:
    """Copies with the OSC 52 escape sequence.

    The sequence is written to the real terminal stream (``sys.__stdout__``
    by default), never to a redirected ``sys.stdout``. Delivery cannot be
    confirmed, so any non-empty copy reports success.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    @property
    def name(self) -> str:
        return "OSC 52"

    def copy(self, text: str) -> bool:
        if not text:
            return False

        data = text.encode("utf-8")
        encoded = base64.b64encode(data).decode("ascii")
        if len(encoded) > OSC52_MAX_BYTES:
            truncated = data[:(OSC52_MAX_BYTES * 3) // 4].decode("utf-8", errors="ignore")
            encoded = base64.b64encode(truncated.encode("utf-8")).decode("ascii")

        stream = self._stream or sys.__stdout__
        # ESC ] 52 ; c ; <base64> BEL
        stream.write(f"\x1b]52;c;{encoded}\x07")
        stream.flush()
        return True


class NativeProvider:
    """Copies through a native clipboard tool.

    Tools, by platform: ``pbcopy`` on macOS, ``clip`` on Windows and
    ``wl-copy``, ``xclip`` or ``xsel`` elsewhere.
    """

    def __init__(self):
        self._tool = self._detect_tool()
        self.last_error: Optional[str] = None

    @property
    def name(self) -> str:
        return f"Native ({self._tool[0] if self._tool else 'unavailable'})"

    @property
    def available(self) -> bool:
        return self._tool is not None

    def _detect_tool(self) -> Optional[Tuple[str, List[str]]]:
        if sys.platform == "darwin":
            return ("pbcopy", ["pbcopy"]) if shutil.which("pbcopy") else None
        if sys.platform == "win32":
            return ("clip", ["clip"]) if shutil.which("clip") else None

        candidates = [
            ("wl-copy", ["wl-copy"]),
            ("xclip", ["xclip", "-selection", "clipboard"]),
            ("xsel", ["xsel", "--clipboard", "--input"]),
        ]
        # Prefer X11 tools in an X session.
        if os.environ.get("XDG_SESSION_TYPE", "").lower() != "wayland" and os.environ.get("DISPLAY"):
            candidates.append(candidates.pop(0))
        for name, command in candidates:
            if shutil.which(name):
                return name, command
        return None

    def copy(self, text: str) -> bool:
        if not text or not self._tool:
            return False

        try:
            proc = subprocess.Popen(
                self._tool[1],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            self.last_error = str(e)
            return False

        try:
            _, stderr = proc.communicate(input=text.encode("utf-8"), timeout=5)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            self.last_error = str(e)
            return False

        if proc.returncode != 0:
            self.last_error = stderr.decode("utf-8", errors="replace").strip()
            return False
        self.last_error = None
        return True


def create_provider(mechanism: str = "osc52") -> ClipboardProvider:
    """Provider for a ``clipboard`` setting; native falls back to OSC 52."""
    if mechanism == "native":
        provider = NativeProvider()
        if provider.available:
            return provider
        logger.info("No native clipboard tool found, using OSC 52")
    return OSC52Provider()
