"""Agent contract and the demonstration agent driven by the console."""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Dict, Any, List, Optional
from .. import output
from ..interface.permission import PermissionPresenter, PermissionPrompt
from ..interface.state import TodoItem

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """
    An agent processes one user message at a time.

    Output goes through the output router. Operations that need the user's
    consent are put to the injected permission presenter, which knows how to
    ask on the current surface (full-screen console or plain terminal).
    The agent's task list is published to ``todo_listener`` when one is set.
    """

    def __init__(self, presenter: Optional[PermissionPresenter] = None):
        self.presenter = presenter
        self.todos: List[TodoItem] = []
        self.todo_listener: Optional[Callable[[List[TodoItem]], None]] = None

    async def initialize(self) -> None:
        """Prepare the agent before the first message."""
        pass

    async def request_permission(self, prompt: PermissionPrompt) -> Optional[int]:
        """Ask the user; None when dismissed or when nobody can be asked."""
        if self.presenter is None:
            logger.warning("No permission presenter configured; denying '%s'", prompt.summary)
            return None
        return await self.presenter.request(prompt)

    def update_todos(self, todos: List[TodoItem]) -> None:
        """Replace the task list and publish it."""
        self.todos = list(todos)
        if self.todo_listener is not None:
            self.todo_listener(self.todos)

    @abstractmethod
    async def process_message(self, message: str, cancel: threading.Event) -> Dict[str, Any]:
        """Handle one message. Should stop early once ``cancel`` is set."""
        pass


class EchoAgent(BaseAgent):
    """
    Stand-in for an LLM-backed agent.

    Streams the message back word by word, listing the reply as a todo while
    it runs. Messages starting with ``!`` are treated as shell commands the
    agent would like to run: it asks for permission and reports the decision,
    but never executes anything.
    """

    PERMISSION_OPTIONS = ["Allow once", "Always allow this command", "Deny"]

    def __init__(self, presenter: Optional[PermissionPresenter] = None, delay: float = 0.05):
        super().__init__(presenter)
        self.delay = delay
        self.always_allowed = set()

    async def process_message(self, message: str, cancel: threading.Event) -> Dict[str, Any]:
        """Echo the message, or ask permission for a ``!command``."""
        if message.startswith("!"):
            return await self._handle_command(message[1:].strip())

        task = TodoItem(f"Reply to: {message}")
        self.update_todos(self.todos + [task])
        try:
            return await self._stream_reply(message, cancel)
        finally:
            self.update_todos([replace(todo, completed=True) if todo is task else todo
                               for todo in self.todos])

    async def _stream_reply(self, message: str, cancel: threading.Event) -> Dict[str, Any]:
        words = message.split()
        output.write("Agent: ")
        streamed = []
        for word in words:
            if cancel.is_set():
                output.write_line("")
                output.write_line("[cancelled]")
                output.flush()
                return {"content": " ".join(streamed), "cancelled": True}
            output.write(f"{word} ")
            streamed.append(word)
            await asyncio.sleep(self.delay)
        output.write_line("")
        output.flush()
        return {"content": " ".join(streamed), "cancelled": False}

    async def _handle_command(self, command: str) -> Dict[str, Any]:
        """Ask permission for a command and report the outcome."""
        if not command:
            output.write_line("Nothing to run.")
            return {"content": "", "permission": None}

        if command in self.always_allowed:
            choice: Optional[int] = 0
        else:
            prompt = PermissionPrompt(
                summary=f"Run shell command: {command}",
                detail="The demo agent only reports the decision; nothing is executed.",
                options=self.PERMISSION_OPTIONS,
            )
            choice = await self.request_permission(prompt)
            if choice == 1:
                self.always_allowed.add(command)

        if choice is None or choice == 2:
            output.write_line(f"Permission denied for: {command}")
        else:
            output.write_line(f"Permission granted for: {command} (not executed)")
        output.flush()
        return {"content": command, "permission": choice}
