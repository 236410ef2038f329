from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .interpreters import get_python_version, sort_interpreters
from .models import SOURCE_MANUAL, Interpreter
from .multistep import (
    FlowBack,
    FlowResume,
    InputBoxParameters,
    InputStep,
    MultiStepInput,
    QuickPickParameters,
)
from .prompts import PromptShell, QuickInputButton, QuickPickItem


LOGGER = logging.getLogger(__name__)

TITLE = "Select Python interpreter"
TOTAL_STEPS = 3
ENTER_PATH_LABEL = "Enter interpreter path..."
REFRESH_BUTTON = QuickInputButton("Refresh interpreter list", icon="refresh")

Discover = Callable[[bool], List[Interpreter]]
Probe = Callable[[Path], Optional[str]]


@dataclass
class SelectionState:
    interpreters: List[Interpreter] = field(default_factory=list)
    selected: Optional[Interpreter] = None
    path_hint: str = ""
    confirmed: bool = False


@dataclass
class InterpreterItem(QuickPickItem):
    interpreter: Optional[Interpreter] = None

    @classmethod
    def from_interpreter(cls, interpreter: Interpreter) -> "InterpreterItem":
        return cls(
            label=interpreter.label,
            description=interpreter.source,
            detail=str(interpreter.path),
            interpreter=interpreter,
        )


def environment_name(python_path: Path) -> str:
    parent = python_path.parent
    if parent.name.lower() in {"bin", "scripts"} and parent.parent.name:
        return parent.parent.name
    return parent.name or python_path.name


def _expand(text: str) -> Optional[Path]:
    """Expand a leading ``~``; ``None`` when the home directory cannot be determined."""
    try:
        return Path(text).expanduser()
    except RuntimeError:
        return None


async def _in_executor(function: Callable[..., Any], *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(function, *args))


class InterpreterSelectionFlow:
    """Pick an interpreter from a discovered list, or type a path to one.

    ``discover(refresh)`` is called off the event loop; ``refresh`` is true when
    the user asked to rescan rather than reuse cached results.
    """

    def __init__(self, discover: Discover, probe: Probe = get_python_version) -> None:
        self._discover = discover
        self._probe = probe

    async def run(
        self, shell: PromptShell, state: Optional[SelectionState] = None
    ) -> Optional[Interpreter]:
        if state is None:
            state = SelectionState()
        if not state.interpreters:
            state.interpreters = await _in_executor(self._discover, False)
        await MultiStepInput(shell).run(self.pick_interpreter, state)
        return state.selected if state.confirmed else None

    async def pick_interpreter(
        self, input: MultiStepInput[SelectionState], state: SelectionState
    ) -> Optional[InputStep[SelectionState]]:
        items = [InterpreterItem.from_interpreter(item) for item in sort_interpreters(state.interpreters)]
        enter_path = QuickPickItem(ENTER_PATH_LABEL)
        active = None
        if state.selected is not None:
            active = next((item for item in items if item.interpreter == state.selected), None)
        picked = await input.show_quick_pick(
            QuickPickParameters(
                items=[*items, enter_path],
                placeholder="Select an interpreter or type its path",
                title=TITLE,
                step=1,
                total_steps=TOTAL_STEPS,
                active_item=active,
                buttons=[REFRESH_BUTTON],
                match_on_description=True,
                match_on_detail=True,
                accept_filter_box_text_as_selection=True,
            )
        )
        if picked is None:
            return None
        if picked is REFRESH_BUTTON:
            LOGGER.info("Refreshing interpreter list")
            state.interpreters = await _in_executor(self._discover, True)
            raise FlowResume()
        if picked is enter_path:
            state.path_hint = ""
            return self.enter_path
        if isinstance(picked, str):
            state.path_hint = picked.strip()
            return self.enter_path
        state.selected = picked.interpreter
        return self.confirm

    async def enter_path(
        self, input: MultiStepInput[SelectionState], state: SelectionState
    ) -> Optional[InputStep[SelectionState]]:
        versions: Dict[Path, Optional[str]] = {}

        async def validate(value: str) -> Optional[str]:
            text = value.strip()
            if not text:
                return "Enter the path to a Python interpreter."
            path = _expand(text)
            if path is None:
                return f"Cannot expand path: {text}"
            if not path.is_file():
                return f"File not found: {path}"
            if path not in versions:
                versions[path] = await _in_executor(self._probe, path)
            if versions[path] is None:
                return f"Not a Python interpreter: {path}"
            return None

        value = await input.show_input_box(
            InputBoxParameters(
                title=TITLE,
                value=state.path_hint,
                prompt="Path to a Python interpreter",
                validate=validate,
                step=2,
                total_steps=TOTAL_STEPS,
            )
        )
        if not isinstance(value, str):
            return None
        path = _expand(value.strip())
        if path is None:
            return self.enter_path
        state.selected = Interpreter(
            name=environment_name(path),
            path=path.resolve(),
            version=versions.get(path),
            source=SOURCE_MANUAL,
        )
        return self.confirm

    async def confirm(
        self, input: MultiStepInput[SelectionState], state: SelectionState
    ) -> Optional[InputStep[SelectionState]]:
        selected = state.selected
        if selected is None:
            return self.pick_interpreter
        use = QuickPickItem("Use this interpreter", detail=str(selected.path))
        other = QuickPickItem("Choose a different interpreter")
        picked = await input.show_quick_pick(
            QuickPickParameters(
                items=[use, other],
                placeholder=selected.label,
                title=TITLE,
                step=3,
                total_steps=TOTAL_STEPS,
                active_item=use,
            )
        )
        if picked is other:
            raise FlowBack()
        state.confirmed = picked is use
        return None
