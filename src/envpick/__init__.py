from __future__ import annotations

from .cli import main as main
from .console import ConsoleShell
from .flows import InterpreterSelectionFlow, SelectionState
from .interpreters import (
    discover_interpreters,
    find_conda_executable,
    get_python_version,
    list_conda_environments,
    resolve_python_executable,
    sort_interpreters,
)
from .models import Interpreter
from .multistep import (
    FlowBack,
    FlowCancel,
    FlowResume,
    InputBoxParameters,
    InputFlowAction,
    InputStep,
    MultiStepInput,
    MultiStepInputFactory,
    QuickPickParameters,
)
from .prompts import (
    InputBox,
    PromptShell,
    QuickInput,
    QuickInputButton,
    QuickInputButtons,
    QuickPick,
    QuickPickItem,
)
from .reporting import format_interpreters, interpreters_to_json

__all__ = [
    "ConsoleShell",
    "FlowBack",
    "FlowCancel",
    "FlowResume",
    "InputBox",
    "InputBoxParameters",
    "InputFlowAction",
    "InputStep",
    "Interpreter",
    "InterpreterSelectionFlow",
    "MultiStepInput",
    "MultiStepInputFactory",
    "PromptShell",
    "QuickInput",
    "QuickInputButton",
    "QuickInputButtons",
    "QuickPick",
    "QuickPickItem",
    "QuickPickParameters",
    "SelectionState",
    "discover_interpreters",
    "find_conda_executable",
    "format_interpreters",
    "get_python_version",
    "interpreters_to_json",
    "list_conda_environments",
    "resolve_python_executable",
    "sort_interpreters",
    "main",
]
