"""Command-line interface for lspc."""

from __future__ import annotations

import argparse
import asyncio
import shutil
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from lspc.buffer import BufferView, TextBuffer
from lspc.config import EngineConfig, effective_settings, load_config
from lspc.config.servers import syntax_for_path
from lspc.documents import TrackedDiagnostic
from lspc.engine import Engine
from lspc.logging import get_logger, setup_logging
from lspc.prompt import CommandPrompter
from lspc.protocol.types import DiagnosticSeverity
from lspc.text import UTF32, LineIndex
from lspc.transport.process import ServerProcess

log = get_logger("cli")

console = Console()

# Seconds between polls while waiting for the server
POLL_INTERVAL = 0.05


class ConsoleEditor:
    """Editor services backed by in-memory buffers and the terminal."""

    def __init__(self, config: EngineConfig, output: Console | None = None) -> None:
        self.console = output or console
        self.prompter = CommandPrompter(config.menu_cmd, config.confirm_cmd)
        self._views: dict[int, BufferView] = {}
        self._active: BufferView | None = None

    def open_file(self, path: str, syntax: str | None = None) -> BufferView:
        """Load path into a new view and make it active."""
        buffer = TextBuffer.load(path)
        view = BufferView(buffer, syntax=syntax or syntax_for_path(path))
        self._views[view.view_id] = view
        self._active = view
        return view

    def active_view(self) -> BufferView | None:
        return self._active

    def views(self) -> Iterable[BufferView]:
        return list(self._views.values())

    def view(self, view_id: int) -> BufferView | None:
        return self._views.get(view_id)

    def document(self, path: str) -> TextBuffer | None:
        for view in self._views.values():
            if view.document.path == path:
                return view.document
        return None

    def open_location(self, path: str, line: int, column: int, mode: str) -> BufferView | None:
        document = self.document(path)
        view = BufferView(document or TextBuffer.load(path), syntax=syntax_for_path(path))
        view.cursor = LineIndex(view.document.content, UTF32).line_start(line) + column
        self._views[view.view_id] = view
        self._active = view
        self.console.print(f"{path}:{line + 1}:{column + 1}", markup=False)
        return view

    def open_transient(self, path: str) -> BufferView:
        return BufferView(TextBuffer.load(path), syntax=syntax_for_path(path))

    def close_transient(self, view: BufferView) -> None:
        view.document.save()

    def select(self, choices: list[str]) -> str | None:
        return self.prompter.select(choices)

    def confirm(self, prompt: str) -> bool:
        return self.prompter.confirm(prompt)

    def show_message(self, text: str, header: str | None = None, syntax: str | None = None) -> None:
        if header:
            self.console.rule(header, style="dim")
        if syntax == "markdown":
            self.console.print(Markdown(text))
        elif syntax and syntax != "text":
            self.console.print(Syntax(text, syntax))
        else:
            self.console.print(text, markup=False, highlight=False)

    def close_message(self) -> None:
        pass

    def info(self, message: str) -> None:
        self.console.print(message, style="yellow", markup=False, highlight=False)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lspc",
        description="Language server client engine",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser(
        "servers",
        help="List configured language servers",
    )

    settings_parser = subparsers.add_parser(
        "settings",
        help="Show the effective settings of a server",
    )
    settings_parser.add_argument("syntax", help="Syntax the server is configured for")
    settings_parser.add_argument(
        "--section",
        help="Dot-separated settings section (default: whole tree)",
    )
    settings_parser.add_argument(
        "--scope",
        help="Path the settings apply to (default: current directory)",
    )

    diagnostics_parser = subparsers.add_parser(
        "diagnostics",
        help="Print the diagnostics a server publishes for a file",
    )
    diagnostics_parser.add_argument("file", type=Path, help="File to check")
    diagnostics_parser.add_argument(
        "--syntax",
        help="Syntax of the file (default: derived from the extension)",
    )
    diagnostics_parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the server (default: 10)",
    )

    return parser


def show_servers(config: EngineConfig) -> int:
    table = Table(title="Language Servers")
    table.add_column("Syntax", style="bold")
    table.add_column("Name")
    table.add_column("Command")
    table.add_column("Available")

    for syntax, server in sorted(config.servers.items()):
        found = shutil.which(server.executable) is not None
        table.add_row(
            syntax,
            server.name,
            server.command,
            "[green]yes[/green]" if found else "[red]no[/red]",
        )
    console.print(table)
    return 0


def show_settings(config: EngineConfig, syntax: str, section: str | None, scope: str | None) -> int:
    server = config.servers.get(syntax)
    if server is None:
        console.print(f"[red]No language server available for {syntax}[/red]")
        return 1
    settings = effective_settings(server.settings, section, scope or str(Path.cwd()))
    console.print_json(data=settings)
    return 0


def _severity_name(diagnostic: TrackedDiagnostic) -> str:
    try:
        return DiagnosticSeverity(diagnostic.severity).name.lower()
    except ValueError:
        return "unknown"


def print_diagnostics(path: str, diagnostics: list[TrackedDiagnostic]) -> None:
    if not diagnostics:
        console.print(f"{path}: no diagnostics", markup=False)
        return

    table = Table(title=Text(path))
    table.add_column("Line:Col", justify="right")
    table.add_column("Severity")
    table.add_column("Source")
    table.add_column("Code")
    table.add_column("Message")
    for diagnostic in diagnostics:
        start = diagnostic.range.start
        table.add_row(
            f"{start.line + 1}:{start.character + 1}",
            _severity_name(diagnostic) if diagnostic.severity else "",
            diagnostic.diagnostic.source or diagnostic.session,
            str(diagnostic.code or ""),
            Text(diagnostic.message),
        )
    console.print(table)


async def _wait_for(predicate: Callable[[], bool], timeout: float) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(POLL_INTERVAL)
    return True


async def run_diagnostics(
    config: EngineConfig, file: Path, syntax: str | None, timeout: float
) -> int:
    """Start the file's server, open the file and print its first diagnostics.

    Returns:
        0 if no error diagnostics were published, 1 if some were, 2 if the
        server could not be run.
    """
    editor = ConsoleEditor(config)
    try:
        view = editor.open_file(str(file), syntax)
    except OSError as e:
        console.print(f"[red]Cannot read {file}: {e}[/red]")
        return 2
    if not view.syntax:
        console.print(f"[red]Cannot determine the syntax of {file}, use --syntax[/red]")
        return 2

    engine = Engine(config, editor)
    session = await engine.start_server(view.syntax)
    if session is None:
        return 2

    path = view.document.path
    assert path is not None

    def published() -> bool:
        doc = engine.registry.get(path)
        return doc is not None and session.name in doc.diagnostics

    try:
        if not await _wait_for(lambda: session.is_ready, timeout):
            console.print(f"[red]{session.name} did not initialize within {timeout}s[/red]")
            return 2
        if not await _wait_for(published, timeout):
            log.warning("%s published no diagnostics for %s", session.name, path)

        doc = engine.registry.get(path)
        diagnostics = doc.merged_diagnostics() if doc is not None else []
        print_diagnostics(path, diagnostics)
        return 1 if any(d.severity == DiagnosticSeverity.ERROR for d in diagnostics) else 0
    finally:
        engine.quit()
        process = session.process
        if isinstance(process, ServerProcess):
            try:
                await asyncio.wait_for(process.wait(), timeout)
            except asyncio.TimeoutError:
                log.warning("%s did not exit, killing it", session.name)
                process.kill()


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    config = load_config()
    if parsed.verbose:
        # Default verbosity is info (2)
        config.logging.verbose = min(2 + parsed.verbose, 4)
    setup_logging(config.logging)

    if parsed.command == "servers":
        return show_servers(config)
    elif parsed.command == "settings":
        return show_settings(config, parsed.syntax, parsed.section, parsed.scope)
    elif parsed.command == "diagnostics":
        return asyncio.run(run_diagnostics(config, parsed.file, parsed.syntax, parsed.timeout))
    else:
        parser.print_help()
        return 1
