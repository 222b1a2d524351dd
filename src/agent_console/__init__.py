"""
Agent Console

A full-screen terminal console for an AI coding agent: a scrolling output
pane fed by every print of the program, a queue of pending requests and a
multi-line input editor with history search and paste detection.
"""

__version__ = "1.0.0"

from .interface.console import Console, InputWorker
from .interface.terminal import TerminalInterface

__all__ = ["Console", "InputWorker", "TerminalInterface"]
