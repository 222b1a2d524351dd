"""Permission prompts: the request model, the menu state and the presenters."""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .backend import KeyCode, KeyEvent
from .display import display


class PermissionPrompt(BaseModel):
    """A decision request produced by the permission policy."""
    model_config = ConfigDict(frozen=True)

    summary: str = Field(description="One-line description of the operation")
    detail: str = Field(default="", description="Optional multi-line detail")
    options: List[str] = Field(min_length=1, description="Ordered option labels")


class PermissionMenu:
    """Selection state of the inline permission menu.

    ``handle_key`` returns True once the menu is finished; ``choice`` then holds
    the chosen option index, or None when the prompt was dismissed.
    """

    IMMEDIATE_SELECTION_LIMIT = 9

    def __init__(self, option_count: int):
        self.option_count = option_count
        self.selected = 0
        self.buffer = ""
        self.choice: Optional[int] = None

    def _parse_buffer(self) -> Optional[int]:
        if not self.buffer.isdigit():
            return None
        value = int(self.buffer)
        if 1 <= value <= self.option_count:
            return value - 1
        return None

    def handle_key(self, event: KeyEvent) -> bool:
        """Apply a key event from the console backend."""
        if event.is_interrupt or event.code is KeyCode.ESCAPE:
            self.choice = None
            return True

        if event.code is KeyCode.ENTER:
            if not self.buffer:
                self.choice = self.selected
                return True
            index = self._parse_buffer()
            if index is None:
                self.buffer = ""
                return False
            self.choice = index
            return True

        if event.code is KeyCode.UP:
            self.selected = max(self.selected - 1, 0)
        elif event.code is KeyCode.DOWN:
            self.selected = min(self.selected + 1, self.option_count - 1)
        elif event.code is KeyCode.BACKSPACE:
            self.buffer = self.buffer[:-1]
        elif event.code is KeyCode.CHAR and event.char.isdigit() and not event.modifiers:
            self.buffer += event.char
            index = self._parse_buffer()
            if index is not None:
                self.selected = index
                if self.option_count <= self.IMMEDIATE_SELECTION_LIMIT:
                    self.choice = index
                    return True
        return False


class PermissionPresenter(ABC):
    """Presents a permission prompt on one surface and collects the choice."""

    @abstractmethod
    async def request(self, prompt: PermissionPrompt) -> Optional[int]:
        """Return the chosen option index, or None when dismissed."""
        pass


class ConsolePermissionPresenter(PermissionPresenter):
    """Inline menu in the full-screen console."""

    def __init__(self, console):
        self.console = console

    async def request(self, prompt: PermissionPrompt) -> Optional[int]:
        return await self.console.prompt_permission_async(prompt)


class PlainPermissionPresenter(PermissionPresenter):
    """Line-mode prompt for when no full-screen console is running."""

    def __init__(self, display_manager=None):
        self.display = display_manager or display

    async def request(self, prompt: PermissionPrompt) -> Optional[int]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.ask, prompt)

    def ask(self, prompt: PermissionPrompt) -> Optional[int]:
        """Blocking prompt on the plain terminal."""
        self.display.print_panel(
            prompt.detail or prompt.summary,
            title=f"Permission required: {prompt.summary}" if prompt.detail else "Permission required",
            style="yellow",
            border_style="yellow"
        )
        for index, label in enumerate(prompt.options):
            self.display.print(f"  [bold]{index + 1}[/bold]. {label}")

        while True:
            try:
                response = self.display.ask("\nSelection (empty to dismiss): ").strip()
            except (KeyboardInterrupt, EOFError):
                self.display.print("\nPrompt dismissed", style="yellow")
                return None

            if not response:
                return None
            if response.isdigit() and 1 <= int(response) <= len(prompt.options):
                return int(response) - 1
            self.display.print(
                f"Invalid choice. Enter a number between 1 and {len(prompt.options)}",
                style="red"
            )
