"""Display manager for rich output routed through the output router."""

import shutil
from typing import Dict, Any, Optional, Union
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree
from .. import output
from ..utils.config import config_manager


class DisplayManager:
    """Renders rich content to ANSI text and writes it through the router.

    Rendering goes through a capturing rich console so the same calls work in
    the full-screen console (text lands in the output pane) and in plain
    terminal mode (text passes through to stdout).
    """

    def __init__(self, color: Optional[bool] = None, width: Optional[int] = None):
        if color is None:
            color = config_manager.config.color_output
        self.color = color
        self._fixed_width = width
        self.console = Console(
            force_terminal=color,
            color_system="standard" if color else None,
            no_color=not color,
            width=self._width(),
            emoji=False
        )
        self.terminal = Console()

    def _width(self) -> int:
        if self._fixed_width:
            return self._fixed_width
        return shutil.get_terminal_size((100, 24)).columns

    def render(self, *args, **kwargs) -> str:
        """Render rich renderables to a string of ANSI text."""
        self.console.width = self._width()
        with self.console.capture() as capture:
            self.console.print(*args, **kwargs)
        return capture.get()

    def print(self, *args, is_error: bool = False, **kwargs) -> None:
        """Print with rich formatting."""
        output.write(self.render(*args, **kwargs), is_error)

    def print_panel(
        self,
        content: Union[str, Text],
        title: Optional[str] = None,
        style: str = "blue",
        border_style: str = "blue",
        is_error: bool = False
    ) -> None:
        """Print content in a panel."""
        panel = Panel(
            content,
            title=title,
            style=style,
            border_style=border_style,
            padding=(0, 1)
        )
        self.print(panel, is_error=is_error)

    def print_error(self, message: str, details: Optional[str] = None) -> None:
        """Print an error message."""
        error_text = Text("ERROR: ", style="bold red")
        error_text.append(message, style="red")

        content = error_text
        if details:
            content = Text.assemble(error_text, "\n\n", details)

        self.print_panel(content, title="Error", style="red", border_style="red", is_error=True)

    def print_success(self, message: str) -> None:
        """Print a success message."""
        success_text = Text("SUCCESS: ", style="bold green")
        success_text.append(message, style="green")
        self.print(success_text)

    def print_tree(self, root_data: Dict[str, Any], title: Optional[str] = None) -> None:
        """Print data in a tree format."""
        tree = Tree(title or "Data Structure")
        self._add_tree_nodes(tree, root_data)
        self.print(tree)

    def _add_tree_nodes(self, parent, data: Any) -> None:
        """Recursively add nodes to tree."""
        if isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    branch = parent.add(f"[bold]{key}[/bold]")
                    self._add_tree_nodes(branch, value)
                else:
                    parent.add(f"{key}: {value}")
        elif isinstance(data, list):
            for i, item in enumerate(data):
                if isinstance(item, (dict, list)):
                    branch = parent.add(f"[bold][{i}][/bold]")
                    self._add_tree_nodes(branch, item)
                else:
                    parent.add(f"[{i}]: {item}")
        else:
            parent.add(str(data))

    def print_help(self, commands: Dict[str, str]) -> None:
        """Print help information."""
        table = Table(title="Available Commands", title_justify="left")
        table.add_column("Command", style="cyan")
        table.add_column("Description", style="white")

        for command, description in commands.items():
            table.add_row(command, description)

        self.print(table)

    def ask(self, prompt: str) -> str:
        """Read a line from the real terminal."""
        return self.terminal.input(prompt)


# Global display manager instance
display = DisplayManager()
