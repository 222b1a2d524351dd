"""Output sink that feeds the console's output pane."""

from ..output import OutputSink


class ConsoleOutputSink(OutputSink):
    """Appends routed output to a console.

    Every write reaches the buffer immediately; the redraw is debounced by the
    console's render interval. ``flush`` always redraws, so nothing written
    before it stays off screen.
    """

    def __init__(self, console):
        self.console = console

    def write(self, text: str, is_error: bool = False) -> None:
        if text:
            self.console.append_output(text)

    def flush(self) -> None:
        self.console.flush_output()
