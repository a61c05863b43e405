"""Shared test utilities for lspc tests."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from lspc.buffer import BufferView, TextBuffer
from lspc.transport.framing import MessageFramer, decode_body, encode_message
from lspc.transport.process import ProcessEvent, ProcessEventHandler, ProcessEventKind


class FakeProcess:
    """In-memory stand-in for a language server process.

    Everything written to it is kept; ``messages()`` decodes it back into
    JSON-RPC objects.
    """

    def __init__(self, name: str = "fake", on_event: ProcessEventHandler | None = None) -> None:
        self.name = name
        self.on_event = on_event
        self.written = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.written += data

    def close(self) -> None:
        self.closed = True

    def messages(self) -> list[dict[str, Any]]:
        framer = MessageFramer()
        framer.feed(bytes(self.written))
        return [decode_body(body) for body in framer.drain()]

    def methods(self) -> list[str | None]:
        return [m.get("method") for m in self.messages()]

    def last(self, method: str) -> dict[str, Any]:
        """The last message written for method."""
        for message in reversed(self.messages()):
            if message.get("method") == method:
                return message
        raise AssertionError(f"{method} was never sent")

    def clear(self) -> None:
        self.written.clear()

    def emit(self, kind: ProcessEventKind, data: bytes = b"", code: int | None = None) -> None:
        assert self.on_event is not None
        self.on_event(ProcessEvent(kind, data=data, code=code))


class FakeProcessFactory:
    """ProcessFactory recording every spawn."""

    def __init__(self, error: OSError | None = None) -> None:
        self.error = error
        self.spawned: list[tuple[str, list[str], str | None]] = []
        self.processes: dict[str, FakeProcess] = {}

    async def __call__(
        self,
        name: str,
        argv: Sequence[str],
        on_event: ProcessEventHandler,
        cwd: str | None = None,
    ) -> FakeProcess:
        if self.error is not None:
            raise self.error
        self.spawned.append((name, list(argv), cwd))
        process = FakeProcess(name, on_event)
        self.processes[name] = process
        return process


def frame(message: dict[str, Any]) -> bytes:
    """Frame a JSON-RPC message, adding the version field."""
    return encode_message({"jsonrpc": "2.0", **message})


def make_diagnostic(
    start: tuple[int, int],
    end: tuple[int, int],
    message: str = "problem",
    severity: int | None = 1,
    code: str | None = None,
) -> dict[str, Any]:
    diagnostic: dict[str, Any] = {
        "range": {
            "start": {"line": start[0], "character": start[1]},
            "end": {"line": end[0], "character": end[1]},
        },
        "message": message,
    }
    if severity is not None:
        diagnostic["severity"] = severity
    if code is not None:
        diagnostic["code"] = code
    return diagnostic


class FakeEditor:
    """Editor double keeping views in memory and recording output.

    Args:
        choose: Index of the choice select() returns, or None to cancel.
        confirm_answer: What confirm() returns.
    """

    def __init__(self, choose: int | None = 0, confirm_answer: bool = True) -> None:
        self.choose = choose
        self.confirm_answer = confirm_answer
        self._views: dict[int, BufferView] = {}
        self.active: BufferView | None = None

        self.infos: list[str] = []
        self.messages: list[tuple[str, str | None, str | None]] = []
        self.selections: list[list[str]] = []
        self.prompts: list[str] = []
        self.opened: list[tuple[str, int, int, str]] = []
        self.transients: list[str] = []
        self.closed_messages = 0

    def add_view(
        self,
        path: str | None,
        text: str = "",
        syntax: str | None = None,
        active: bool = True,
    ) -> BufferView:
        view = BufferView(TextBuffer(text, path=path), syntax=syntax)
        self._views[view.view_id] = view
        if active:
            self.active = view
        return view

    def remove_view(self, view: BufferView) -> None:
        self._views.pop(view.view_id, None)
        if self.active is view:
            self.active = None

    def active_view(self) -> BufferView | None:
        return self.active

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
        self.opened.append((path, line, column, mode))
        return None

    def open_transient(self, path: str) -> BufferView:
        self.transients.append(path)
        return BufferView(TextBuffer.load(path))

    def close_transient(self, view: BufferView) -> None:
        view.document.save()

    def select(self, choices: list[str]) -> str | None:
        self.selections.append(list(choices))
        if self.choose is None or not choices:
            return None
        return choices[self.choose]

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.confirm_answer

    def show_message(self, text: str, header: str | None = None, syntax: str | None = None) -> None:
        self.messages.append((text, header, syntax))

    def close_message(self) -> None:
        self.closed_messages += 1

    def info(self, message: str) -> None:
        self.infos.append(message)
