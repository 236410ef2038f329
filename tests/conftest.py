from __future__ import annotations

import asyncio
import collections
import sys
from pathlib import Path
from typing import Any, Deque, List

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import pytest

from envpick import config
from envpick.prompts import InputBox, QuickInput, QuickPick


class _Recording:
    shell: "FakeShell"
    dispose_count = 0

    def _render(self) -> None:
        self.shell.shown.append(self)

    def dispose(self) -> None:
        if not self.disposed:
            self.dispose_count += 1
        super().dispose()


class RecordingQuickPick(_Recording, QuickPick[Any]):
    def __init__(self, shell: "FakeShell") -> None:
        super().__init__()
        self.shell = shell


class RecordingInputBox(_Recording, InputBox):
    def __init__(self, shell: "FakeShell") -> None:
        super().__init__()
        self.shell = shell


class FakeShell:
    """Prompt shell whose widgets only record what the flow asked for."""

    def __init__(self) -> None:
        self.created: List[QuickInput] = []
        self.shown: Deque[QuickInput] = collections.deque()

    def create_quick_pick(self) -> RecordingQuickPick:
        picker = RecordingQuickPick(self)
        self.created.append(picker)
        return picker

    def create_input_box(self) -> RecordingInputBox:
        box = RecordingInputBox(self)
        self.created.append(box)
        return box

    async def next_prompt(self, timeout: float = 2.0) -> Any:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self.shown:
            if loop.time() > deadline:
                raise AssertionError("No prompt was shown")
            await asyncio.sleep(0.001)
        return self.shown.popleft()


@pytest.fixture
def shell() -> FakeShell:
    return FakeShell()


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch) -> Path:
    settings_path = tmp_path / "settings.ini"
    monkeypatch.setattr(config, "_config_file", lambda: settings_path)
    return settings_path
