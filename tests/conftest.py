"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from lspc.config import EngineConfig, ServerConfig, reset_config
from lspc.documents import DocumentRegistry
from lspc.logging import reset_logging
from lspc.session import ServerSession

from tests.utils import FakeProcess


class RecordingListener:
    """SessionListener recording every callback."""

    def __init__(self) -> None:
        self.ready: list[ServerSession] = []
        self.stopped: list[tuple[ServerSession, str]] = []
        self.responses: list[tuple[object, object, object]] = []
        self.errors: list[Exception] = []
        self.diagnostics: list[object] = []
        self.shown: list[object] = []

    def session_ready(self, session):
        self.ready.append(session)

    def session_stopped(self, session, reason):
        self.stopped.append((session, reason))

    def handle_response(self, session, request, method, result):
        self.responses.append((request, method, result))

    def handle_error(self, session, error):
        self.errors.append(error)

    def publish_diagnostics(self, session, params):
        self.diagnostics.append(params)

    def show_message(self, session, params):
        self.shown.append(params)


@pytest.fixture(autouse=True)
def isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep tests away from real config files and cached state."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("LSPC_LOG", raising=False)
    reset_config()
    yield
    reset_config()
    reset_logging()


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(syntax="python", name="pylsp", command="pylsp")


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def session_factory(listener: RecordingListener, tmp_path: Path):
    """Build sessions sharing one registry, attached to fake processes."""
    running: dict[str, ServerSession] = {}
    registry = DocumentRegistry(running)

    def make(config: ServerConfig, start: bool = True) -> tuple[ServerSession, FakeProcess]:
        session = ServerSession(
            config,
            listener,
            registry,
            user_settings_path=tmp_path / "user-settings.json",
        )
        running[config.name] = session
        process = FakeProcess(config.name, session.handle_process_event)
        if start:
            session.start(process, None)
        return session, process

    make.registry = registry
    make.running = running
    return make


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        servers={
            "python": ServerConfig(syntax="python", name="pylsp", command="pylsp"),
            "cpp": ServerConfig(syntax="cpp", name="clangd", command="clangd"),
        }
    )
