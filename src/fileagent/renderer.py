"""Console rendering of agent stream events."""

from typing import AsyncIterator, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from .messages import StreamEvent, TextDelta, ToolCallEvent, ToolResultEvent, TurnFinish


class StreamRenderer:
    """Renders events incrementally: text as it arrives, a marker per tool call."""

    def __init__(self, console: Optional[Console] = None, show_tool_errors: bool = False):
        self.console = console or Console()
        self.show_tool_errors = show_tool_errors
        self._at_line_start = True

    def _write(self, text: str) -> None:
        self.console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
        self._at_line_start = text.endswith("\n")

    def _newline(self) -> None:
        if not self._at_line_start:
            self._write("\n")

    def begin(self) -> None:
        self.console.print()
        self._write("Assistant: ")

    def render(self, event: StreamEvent) -> None:
        if isinstance(event, TextDelta):
            self._write(event.text)
        elif isinstance(event, ToolCallEvent):
            self._newline()
            self.console.print(f"[dim]Calling tool: {escape(event.name)}[/dim]", highlight=False)
            self._at_line_start = True
        elif isinstance(event, ToolResultEvent):
            if self.show_tool_errors and not event.result.ok:
                self.console.print(f"[yellow]  {escape(event.result.name)} failed: {escape(event.result.outcome.error)}[/yellow]",
                                   highlight=False)
        elif isinstance(event, TurnFinish):
            self._newline()
            if event.hit_step_limit:
                self.console.print(f"[yellow]Stopped after {event.steps} steps (step limit).[/yellow]")
            self.console.print()
            self._at_line_start = True

    async def consume(self, events: AsyncIterator[StreamEvent]) -> None:
        """Render a whole turn's event stream."""
        self.begin()
        async for event in events:
            self.render(event)

    def error(self, message: str, title: str = "Error") -> None:
        self._newline()
        self.console.print(Panel(Text(message), title=title, border_style="red"))
        self._at_line_start = True
