from __future__ import annotations

import json
from dataclasses import asdict
from typing import Iterable, List, Optional, Sequence

from .interpreters import sort_interpreters
from .models import Interpreter


def format_interpreters(
    interpreters: Sequence[Interpreter],
    include_paths: bool = False,
    selected: Optional[Interpreter] = None,
) -> str:
    if not interpreters:
        return "No Python interpreters were found."
    lines: List[str] = []
    lines.append("=" * 72)
    lines.append("Discovered Python interpreters")
    lines.append("=" * 72)
    for interpreter in sort_interpreters(interpreters):
        lines.append(format_interpreter(interpreter, include_paths, interpreter == selected))
    return "\n".join(lines)


def format_interpreter(
    interpreter: Interpreter, include_path: bool = True, is_selected: bool = False
) -> str:
    line = f"{'*' if is_selected else ' '} {interpreter.label} [{interpreter.source}]"
    if include_path:
        line = f"{line} -> {interpreter.path}"
    return line


def interpreters_to_json(interpreters: Iterable[Interpreter]) -> str:
    payload = [asdict(interpreter) for interpreter in interpreters]
    return json.dumps(payload, indent=2, default=str)


def interpreter_to_json(interpreter: Interpreter) -> str:
    return json.dumps(asdict(interpreter), indent=2, default=str)
