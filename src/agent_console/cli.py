"""Command-line interface for the agent console."""

import asyncio
import sys
import threading
import click
from pydantic import ValidationError
from .core.agent import EchoAgent
from .interface.backend import PromptToolkitBackend, TerminalError
from .interface.console import Console
from .interface.display import display
from .interface.formatter import InputFormatter
from .interface.permission import ConsolePermissionPresenter, PlainPermissionPresenter
from .interface.terminal import TerminalInterface
from .utils.config import config_manager
from .utils.log import init_logger


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """Agent Console - full-screen terminal console for a coding agent."""
    pass


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--paste-window-ms", type=int, help="Paste detection window after Enter")
@click.option("--render-interval-ms", type=int, help="Minimum delay between output redraws")
@click.option("--no-mouse", is_flag=True, help="Leave mouse reporting off")
def start(verbose, paste_window_ms, render_interval_ms, no_mouse):
    """Start the full-screen console."""
    settings = config_manager.config
    overrides = {}
    if paste_window_ms is not None:
        overrides["paste_window_ms"] = paste_window_ms
    if render_interval_ms is not None:
        overrides["render_interval_ms"] = render_interval_ms
    console_config = settings.console.model_copy(update=overrides)

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        display.print_error("The console needs an interactive terminal.",
                            "Use 'agent-console chat MESSAGE' for non-interactive use.")
        sys.exit(1)

    init_logger("debug" if verbose or settings.verbose else settings.log_level)

    console = Console(
        PromptToolkitBackend(mouse=not no_mouse),
        formatter=InputFormatter(enabled=settings.color_output),
        config=console_config,
    )
    agent = EchoAgent(ConsolePermissionPresenter(console))
    interface = TerminalInterface(console, agent)

    try:
        with console:
            asyncio.run(interface.start())
    except TerminalError as e:
        display.print_error(f"Terminal error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        display.print("Agent stopped", style="yellow")


@cli.command()
@click.argument("message")
def chat(message):
    """Send a single message to the agent (non-interactive mode)."""
    init_logger(config_manager.config.log_level)

    async def single_chat():
        agent = EchoAgent(PlainPermissionPresenter(), delay=0)
        await agent.initialize()
        await agent.process_message(message, threading.Event())

    asyncio.run(single_chat())


@cli.command()
def config():
    """Show current configuration."""
    display.print_tree(config_manager.config.model_dump(), title="Current Configuration")


@cli.command()
@click.option("--key", "-k", required=True, help="Configuration key, e.g. console.paste_window_ms")
@click.option("--value", "-v", required=True, help="Configuration value")
def set_config(key, value):
    """Set a configuration value."""
    try:
        config_manager.set_value(key, value)
        display.print_success(f"Set {key} = {value}")
    except KeyError:
        display.print_error(f"Unknown configuration key: {key}")
    except ValidationError as e:
        display.print_error(f"Invalid value for {key}", str(e))


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
