"""Language server subprocess with an event callback.

The engine never awaits server output. A ServerProcess pumps the child's
stdout and stderr from background tasks and reports everything through a
single synchronous callback running on the event loop thread:

    DATA(bytes)    chunk read from stdout
    STDERR(bytes)  chunk read from stderr
    EXIT(code)     process exited normally
    SIGNAL(code)   process was killed by a signal
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from lspc.logging import TRACE, get_logger, wire_logger

log = get_logger("process")
wire_log = wire_logger()

# Bytes requested per read from the child's pipes
READ_CHUNK_SIZE = 65536


class ProcessEventKind(Enum):
    """Kinds of events emitted by a language server process."""

    DATA = "data"
    STDERR = "stderr"
    EXIT = "exit"
    SIGNAL = "signal"


@dataclass(frozen=True, slots=True)
class ProcessEvent:
    """Event emitted by a ServerProcess."""

    kind: ProcessEventKind
    data: bytes = b""
    code: int | None = None


ProcessEventHandler = Callable[[ProcessEvent], None]


class ProcessHandle(Protocol):
    """What a session needs from its language server process."""

    name: str

    def write(self, data: bytes) -> None:
        """Queue bytes for the process' stdin without blocking."""
        ...

    def close(self) -> None:
        """Close the process' stdin."""
        ...


class ProcessFactory(Protocol):
    """Callable spawning a language server process."""

    async def __call__(
        self,
        name: str,
        argv: Sequence[str],
        on_event: ProcessEventHandler,
        cwd: str | None = None,
    ) -> ProcessHandle: ...


class ServerProcess:
    """Language server subprocess using asyncio pipes."""

    def __init__(
        self,
        name: str,
        process: asyncio.subprocess.Process,
        on_event: ProcessEventHandler,
    ) -> None:
        self.name = name
        self._process = process
        self._on_event = on_event
        self._tasks: list[asyncio.Task[None]] = []
        self._closed = False

    @classmethod
    async def spawn(
        cls,
        name: str,
        argv: Sequence[str],
        on_event: ProcessEventHandler,
        cwd: str | None = None,
    ) -> ServerProcess:
        """Spawn argv with piped stdio and start pumping its output.

        Raises:
            FileNotFoundError: If the executable does not exist.
            PermissionError: If the executable cannot be run.
        """
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        log.debug("Spawned %s (pid %s): %s", name, process.pid, " ".join(argv))

        server = cls(name, process, on_event)
        server._start()
        return server

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    def _start(self) -> None:
        stdout = self._process.stdout
        stderr = self._process.stderr
        if stdout is None or stderr is None:
            raise ValueError("Process must have stdout and stderr pipes")

        pumps = [
            asyncio.create_task(self._pump(stdout, ProcessEventKind.DATA)),
            asyncio.create_task(self._pump(stderr, ProcessEventKind.STDERR)),
        ]
        self._tasks = [*pumps, asyncio.create_task(self._wait(pumps))]

    async def _pump(self, stream: asyncio.StreamReader, kind: ProcessEventKind) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                return
            wire_log.log(TRACE, "<- %s %s: %r", self.name, kind.value, chunk)
            self._emit(ProcessEvent(kind, data=chunk))

    async def _wait(self, pumps: list[asyncio.Task[None]]) -> None:
        # Drain both pipes before reporting the exit
        await asyncio.gather(*pumps, return_exceptions=True)
        code = await self._process.wait()
        if code < 0:
            self._emit(ProcessEvent(ProcessEventKind.SIGNAL, code=-code))
        else:
            self._emit(ProcessEvent(ProcessEventKind.EXIT, code=code))

    def _emit(self, event: ProcessEvent) -> None:
        try:
            self._on_event(event)
        except Exception:
            # A failing handler must not kill the pump
            log.exception("Error handling %s event from %s", event.kind.value, self.name)

    def write(self, data: bytes) -> None:
        """Queue bytes for the server's stdin."""
        stdin = self._process.stdin
        if stdin is None or self._closed or stdin.is_closing():
            log.warning("Dropping write to closed %s stdin", self.name)
            return
        stdin.write(data)

    def close(self) -> None:
        """Close the server's stdin so it terminates."""
        if self._closed:
            return
        self._closed = True
        stdin = self._process.stdin
        if stdin is not None:
            stdin.close()

    def kill(self) -> None:
        """Forcibly terminate the process."""
        try:
            self._process.kill()
        except ProcessLookupError:
            pass  # Process already gone

    async def wait(self) -> int:
        """Wait until the process has exited and its events were emitted."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        return await self._process.wait()
