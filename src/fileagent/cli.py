"""Command-line interface: single-shot and interactive modes."""

import argparse
import asyncio
import os
import sys
import threading
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from .agent import Agent
from .config import Config
from .logger import get_logger, init_logging, log_exception
from .renderer import StreamRenderer
from .streaming_client import ModelError, StreamingChatClient

EXIT_COMMANDS = ("/exit", "/quit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileagent",
        description="Edit files in a project directory by talking to a tool-calling model.",
    )
    parser.add_argument("prompt", nargs="*", help="Run a single turn with this prompt and exit")
    parser.add_argument("-w", "--workspace", default=".", help="Project directory (default: current directory)")
    parser.add_argument("--model", help="Model id override")
    parser.add_argument("--max-steps", type=int, help="Model round-trips allowed per turn (default 5)")
    parser.add_argument("--env-file", help="Path to a .env file with credentials")
    parser.add_argument("--show-tool-errors", action="store_true", help="Print tool failures as they happen")
    return parser


def _cost_panel(agent: Agent, since: int = 0, title: str = "Cost") -> Panel:
    summary = agent.cost_tracker.get_summary(since=since)
    return Panel(summary.format_human(), title=title, border_style="blue")


async def read_input(console: Console) -> str:
    """Ask for the next user message on a daemon thread. Ctrl-C cancels the wait."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(setter, value):
        if not future.done():
            setter(value)

    def worker():
        try:
            value = Prompt.ask("[bold]You[/bold]", console=console)
        except BaseException as e:
            callback = (future.set_exception, e)
        else:
            callback = (future.set_result, value)
        try:
            loop.call_soon_threadsafe(deliver, *callback)
        except RuntimeError:
            # Loop already closed; the session ended while this read was pending.
            pass

    threading.Thread(target=worker, name="fileagent-prompt", daemon=True).start()
    return await future


async def run_single(agent: Agent, prompt: str, renderer: StreamRenderer) -> int:
    """One outer turn; transport failures end the process with a non-zero code."""
    log = get_logger("cli")
    session = agent.new_session()
    try:
        await renderer.consume(agent.run_turn(session, prompt))
    except ModelError as e:
        log_exception(log, "single-shot turn failed", e)
        renderer.error(str(e), title="Model error")
        return 1
    except (asyncio.CancelledError, KeyboardInterrupt):
        renderer.console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    renderer.console.print(_cost_panel(agent))
    return 0


async def run_interactive(agent: Agent, renderer: StreamRenderer) -> int:
    """Prompt for user messages until EOF, /exit or Ctrl-C, keeping history across turns."""
    log = get_logger("cli")
    console = renderer.console
    console.print(Panel(
        f"Workspace: {agent.config.workspace_path}\nModel: {agent.config.model}\n"
        "Commands: /clear (new conversation), /cost, /exit",
        title="fileagent",
        border_style="green",
    ))
    session = agent.new_session()

    while True:
        try:
            user_input = await read_input(console)
        except (EOFError, KeyboardInterrupt, asyncio.CancelledError):
            console.print()
            return 0

        text = user_input.strip()
        if not text:
            continue
        if text in EXIT_COMMANDS:
            return 0
        if text == "/clear":
            session = agent.new_session()
            console.print("[dim]Started a new conversation.[/dim]")
            continue
        if text == "/cost":
            console.print(_cost_panel(agent, title="Session cost"))
            continue

        history_before = len(session.history)
        calls_before = len(agent.cost_tracker.calls)
        try:
            await renderer.consume(agent.run_turn(session, text))
        except ModelError as e:
            # The failed step never reached history; the user message stays.
            log_exception(log, "interactive turn failed", e)
            log.info("history kept at %d messages (was %d before turn)", len(session.history), history_before)
            renderer.error(str(e), title="Model error")
            continue
        except (asyncio.CancelledError, KeyboardInterrupt):
            console.print("\n[yellow]Interrupted.[/yellow]")
            return 130
        console.print(_cost_panel(agent, since=calls_before, title="Turn cost"))


async def _main(args: argparse.Namespace, config: Config, prompt: str) -> int:
    console = Console()
    renderer = StreamRenderer(console, show_tool_errors=args.show_tool_errors)
    async with StreamingChatClient.from_config(config) as client:
        agent = Agent(config, client=client)
        if prompt:
            return await run_single(agent, prompt, renderer)
        return await run_interactive(agent, renderer)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    workspace = Path(args.workspace).resolve()
    if not workspace.is_dir():
        print(f"Workspace is not a directory: {workspace}", file=sys.stderr)
        return 2
    os.chdir(workspace)
    init_logging(str(workspace))

    config = Config.from_env(Path(args.env_file) if args.env_file else None, workspace=workspace)
    if args.model:
        config.model = args.model
    if args.max_steps is not None:
        config.max_steps = args.max_steps
    try:
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    prompt = " ".join(args.prompt).strip()
    if not prompt and not sys.stdin.isatty():
        prompt = sys.stdin.read().strip()

    try:
        return asyncio.run(_main(args, config, prompt))
    except KeyboardInterrupt:
        get_logger("cli").info("interrupted from the keyboard")
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
