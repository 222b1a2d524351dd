"""Terminal interface for the agent console."""

from .console import Console, InputWorker
from .display import DisplayManager
from .permission import (
    ConsolePermissionPresenter, PermissionPresenter, PermissionPrompt, PlainPermissionPresenter,
)
from .state import TodoItem
from .terminal import TerminalInterface

__all__ = [
    "Console",
    "InputWorker",
    "DisplayManager",
    "PermissionPrompt",
    "PermissionPresenter",
    "ConsolePermissionPresenter",
    "PlainPermissionPresenter",
    "TerminalInterface",
    "TodoItem",
]
