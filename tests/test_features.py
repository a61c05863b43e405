"""Tests for response helpers shared by the editor features."""

from __future__ import annotations

from pathlib import Path

import pytest

from lspc.features import select_location, word_at
from lspc.protocol.types import Location, LocationLink

from tests.utils import FakeEditor


def location(uri: str, line: int, character: int) -> Location:
    position = {"line": line, "character": character}
    return Location.model_validate({"uri": uri, "range": {"start": position, "end": position}})


class TestWordAt:
    def test_middle_of_word(self) -> None:
        assert word_at("foo bar_baz()", 6) == (4, 11)

    def test_word_boundaries(self) -> None:
        assert word_at("foo", 0) == (0, 3)
        assert word_at("foo", 2) == (0, 3)

    def test_not_on_word(self) -> None:
        assert word_at("foo bar", 3) is None
        assert word_at("foo", 3) is None
        assert word_at("", 0) is None


class TestSelectLocation:
    """Tests for choosing among several locations."""

    @pytest.fixture(autouse=True)
    def cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        monkeypatch.chdir(tmp_path)
        return tmp_path

    def test_choices_from_open_and_unopened_files(self, cwd: Path) -> None:
        on_disk = cwd / "lib.py"
        on_disk.write_text("import os\ndef helper(): pass\n", encoding="utf-8")
        editor = FakeEditor(choose=1)
        editor.add_view(str(cwd / "main.py"), "x = helper()\ny = helper()\n")

        main_uri = f"file://{cwd}/main.py"
        chosen = select_location(
            editor,
            [
                location(main_uri, 1, 4),
                location(f"file://{on_disk}", 1, 4),
                location(main_uri, 0, 4),
            ],
            "utf-16",
        )

        assert editor.selections == [
            [
                "main.py:1:5:x = helper()",
                "main.py:2:5:y = helper()",
                "lib.py:2:5:def helper(): pass",
            ]
        ]
        assert chosen == (str(cwd / "main.py"), 1, 4)

    def test_location_links_use_selection_range(self, cwd: Path) -> None:
        editor = FakeEditor(choose=0)
        editor.add_view(str(cwd / "main.py"), "class A:\n    pass\n")
        link = LocationLink.model_validate(
            {
                "targetUri": f"file://{cwd}/main.py",
                "targetRange": {
                    "start": {"line": 0, "character": 0},
                    "end": {"line": 1, "character": 8},
                },
                "targetSelectionRange": {
                    "start": {"line": 0, "character": 6},
                    "end": {"line": 0, "character": 7},
                },
            }
        )
        assert select_location(editor, [link], "utf-16") == (str(cwd / "main.py"), 0, 6)

    def test_cancelled(self, cwd: Path) -> None:
        editor = FakeEditor(choose=None)
        editor.add_view(str(cwd / "main.py"), "x\n")
        assert select_location(editor, [location(f"file://{cwd}/main.py", 0, 0)], "utf-16") is None
