from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import add_conda_search_path, load_selected_interpreter, save_selected_interpreter
from .console import ConsoleShell
from .flows import InterpreterSelectionFlow
from .interpreters import discover_interpreters
from .models import Interpreter
from .reporting import (
    format_interpreter,
    format_interpreters,
    interpreter_to_json,
    interpreters_to_json,
)


LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_SELECTED = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envpick",
        description="Discover Python interpreters and choose one interactively.",
    )
    parser.add_argument(
        "--python",
        dest="python_executables",
        action="append",
        help="Explicit Python interpreter to offer. Can be provided multiple times.",
    )
    parser.add_argument(
        "--include-conda-envs",
        action="store_true",
        help="Offer every conda environment discovered on the system.",
    )
    parser.add_argument(
        "--conda",
        type=str,
        help="Path to the conda executable if auto-detection fails.",
    )
    parser.add_argument(
        "--conda-search-path",
        dest="conda_search_paths",
        action="append",
        help="Directory to remember and search for conda. Can be provided multiple times.",
    )
    parser.add_argument(
        "--refresh-cache",
        action="store_true",
        help="Ignore cached conda environments and rescan.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--list",
        action="store_true",
        help="Print the discovered interpreters and exit.",
    )
    mode.add_argument(
        "--show-selected",
        action="store_true",
        help="Print the previously selected interpreter and exit.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON instead of formatted text.",
    )
    parser.add_argument(
        "--show-paths",
        action="store_true",
        help="Display absolute interpreter paths in the text output.",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not remember the chosen interpreter.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Set the logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None, shell: Optional[ConsoleShell] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.conda and not Path(args.conda).exists():
        parser.error(f"Conda executable not found: {args.conda}")

    for search_path in args.conda_search_paths or []:
        add_conda_search_path(search_path)

    if args.show_selected:
        return _show_selected(args.json)

    def discover(refresh: bool) -> List[Interpreter]:
        return discover_interpreters(
            include_conda=args.include_conda_envs,
            conda_candidate=args.conda,
            explicit_pythons=args.python_executables,
            refresh_cache=refresh or args.refresh_cache,
        )

    if args.list:
        interpreters = discover(False)
        if args.json:
            print(interpreters_to_json(interpreters))
        else:
            print(
                format_interpreters(
                    interpreters,
                    include_paths=args.show_paths,
                    selected=load_selected_interpreter(),
                )
            )
        return EXIT_OK

    flow = InterpreterSelectionFlow(discover)
    try:
        selected = asyncio.run(flow.run(shell or ConsoleShell()))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
        return EXIT_INTERRUPTED
    if selected is None:
        LOGGER.info("No interpreter selected")
        return EXIT_NOT_SELECTED

    if not args.no_save:
        save_selected_interpreter(selected)
    print(interpreter_to_json(selected) if args.json else selected.path)
    return EXIT_OK


def _show_selected(as_json: bool) -> int:
    selected = load_selected_interpreter()
    if selected is None:
        print("No interpreter has been selected yet.")
        return EXIT_NOT_SELECTED
    print(interpreter_to_json(selected) if as_json else format_interpreter(selected))
    return EXIT_OK


def _configure_logging(level: str) -> None:
    numeric_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=numeric_level, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    sys.exit(main())
