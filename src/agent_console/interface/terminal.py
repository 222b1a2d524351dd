"""Interactive session: drives the agent from the full-screen console."""

import asyncio
import logging
import threading
from collections import deque
from typing import Deque, Dict, Optional
from .. import output
from .console import Console, InputWorker
from .display import display
from .state import InputResult, ResultKind

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit"}


class TerminalInterface:
    """
    Main interactive loop.

    Submissions are queued and shown in the console's queue pane while the
    agent works on the current message; the agent's task list is shown in
    the todo pane. Escape or the interrupt key cancels the running message;
    the interrupt key while idle, or ``exit``, ends the session.
    """

    def __init__(self, console: Console, agent, formatter=None):
        self.console = console
        self.agent = agent
        self.formatter = formatter or console.formatter
        self.queued: Deque[str] = deque()
        self.running = False
        self._cancel: Optional[threading.Event] = None
        self._worker: Optional[InputWorker] = None
        self.commands: Dict[str, str] = {
            "/help": "Show available commands",
            "/clear": "Clear the output pane",
            "/history": "Show submitted inputs",
            "exit": "Exit the agent (also quit, /exit, /quit)",
            "Ctrl+R": "Search input history",
            "Esc": "Cancel the running request",
        }

    async def start(self) -> None:
        """Run the session until exit."""
        self.running = True
        self.console.set_interrupt_handler(self._interrupt)
        self.agent.todo_listener = self.console.set_todos
        self._worker = InputWorker(self.console)
        self._worker.start()

        self._show_welcome()

        try:
            while self.running:
                await self._interaction_loop()
        finally:
            self.console.set_interrupt_handler(None)
            self.agent.todo_listener = None
            await asyncio.get_running_loop().run_in_executor(None, self._worker.stop)
            output.flush()

    def _show_welcome(self) -> None:
        """Show welcome message."""
        display.print_panel(
            "Type a message and press Enter. Alt+Enter inserts a newline.\n"
            "Type /help for commands, exit to leave.",
            title="Agent Console",
            style="bold cyan",
            border_style="cyan"
        )

    def _interrupt(self) -> None:
        # Runs on the input thread, so a running message stops promptly.
        cancel = self._cancel
        if cancel is not None:
            cancel.set()

    async def _interaction_loop(self) -> None:
        """Take the next input and handle it."""
        user_input = await self._next_input()
        if user_input is None or not user_input.strip():
            return

        if self._handle_special_commands(user_input):
            return

        await self._process_user_input(user_input)

    async def _next_input(self) -> Optional[str]:
        """Next queued submission, waiting for the user if none is queued."""
        while self.running:
            if self.queued:
                value = self.queued.popleft()
                self.console.set_queue(self.queued)
                return value
            self._accept(await self._worker.get(), processing=False)
        return None

    def _accept(self, result: InputResult, processing: bool) -> None:
        """Apply one input outcome from the worker."""
        if result.kind is ResultKind.SUBMITTED:
            if result.text.strip():
                self.queued.append(result.text)
                self.console.set_queue(self.queued)
        elif result.kind is ResultKind.CANCELLED:
            if processing:
                self._cancel_current()
        elif processing:
            # The interrupt key cancels the running message before it exits.
            self._cancel_current()
        else:
            output.write_line("\nExiting...")
            self.running = False

    def _cancel_current(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
        output.write_line("\nCancelling request...")

    def _handle_special_commands(self, user_input: str) -> bool:
        """Handle special commands. Returns True if command was handled."""
        command = user_input.strip().lower()

        if command in EXIT_COMMANDS:
            output.write_line("Goodbye!")
            self.running = False
            return True

        elif command == "/help":
            display.print_help(self.commands)
            return True

        elif command == "/clear":
            self.console.clear_output()
            return True

        elif command == "/history":
            entries = self.console.history_entries()
            if not entries:
                output.write_line("No history yet.")
            for index, entry in enumerate(entries, 1):
                output.write_line(f"{index:4d}  {entry}")
            return True

        return False

    async def _process_user_input(self, user_input: str) -> None:
        """Run the agent on one message while still taking input."""
        output.write_line(f"> {self.formatter(user_input)}")
        cancel = threading.Event()
        self._cancel = cancel
        task = asyncio.ensure_future(self.agent.process_message(user_input, cancel))
        try:
            while not task.done():
                getter = asyncio.ensure_future(self._worker.get())
                done, _ = await asyncio.wait({task, getter}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    self._accept(getter.result(), processing=True)
                else:
                    getter.cancel()
        except BaseException:
            task.cancel()
            raise
        finally:
            self._cancel = None

        try:
            task.result()
        except Exception as e:
            logger.debug("Agent failed", exc_info=True)
            display.print_error(f"Processing error: {e}")
        output.flush()
