from __future__ import annotations

import json
import logging
import os
import re
import subprocess
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from packaging.version import InvalidVersion, Version

from .config import (
    load_cached_conda_envs,
    load_conda_path,
    load_conda_search_paths,
    save_cached_conda_envs,
    save_conda_path,
)
from .models import (
    SOURCE_CACHED,
    SOURCE_CONDA,
    SOURCE_CURRENT,
    SOURCE_EXPLICIT,
    Interpreter,
)


LOGGER = logging.getLogger(__name__)

_SUBPROCESS_ERRORS = (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired)
_VERSION_PATTERN = re.compile(r"Python\s*(\d+\.\d+(?:\.\d+)?)")


def get_python_version(python_executable: Path, timeout: int = 10) -> Optional[str]:
    try:
        result = subprocess.run(
            [str(python_executable), "--version"],
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
        LOGGER.debug("Python version probe failed for %s: %s", python_executable, exc)
        return None
    # Python 2 prints the version on stderr.
    output = f"{result.stdout.strip()} {result.stderr.strip()}".strip()
    match = _VERSION_PATTERN.search(output)
    return match.group(1) if match else None


def find_conda_executable(candidate: Optional[str] = None) -> Optional[Path]:
    candidates: List[Path] = []
    if candidate:
        candidates.append(Path(candidate))
    saved = load_conda_path()
    if saved:
        candidates.append(Path(saved))
    for extra in load_conda_search_paths():
        extra_path = Path(extra)
        if extra_path.is_dir():
            candidates.extend(_expand_conda_from_directory(extra_path))
        else:
            candidates.append(extra_path)
    env_var = os.environ.get("CONDA_EXE")
    if env_var:
        candidates.append(Path(env_var))
    for path_entry in os.environ.get("PATH", "").split(os.pathsep):
        if path_entry:
            candidates.extend(Path(path_entry) / name for name in _conda_names())
    candidates.extend(_default_conda_locations())

    seen: set[Path] = set()
    for path_candidate in candidates:
        normalized = path_candidate.resolve() if path_candidate.exists() else path_candidate
        if normalized in seen:
            continue
        seen.add(normalized)
        if _validate_conda(normalized):
            LOGGER.debug("Using conda executable %s", normalized)
            save_conda_path(str(normalized))
            return normalized
    return None


def _conda_names() -> List[str]:
    if sys.platform == "win32":
        return ["conda.exe", "conda.bat", "conda"]
    return ["conda"]


def _expand_conda_from_directory(directory: Path) -> List[Path]:
    if sys.platform == "win32":
        subdirectories = ["", "Scripts", "condabin"]
    else:
        subdirectories = ["", "bin", "condabin"]
    return [directory / sub / name for sub in subdirectories for name in _conda_names()]


def _validate_conda(path: Path) -> bool:
    if not path.exists():
        return False
    try:
        result = subprocess.run(
            [str(path), "--version"],
            capture_output=True,
            text=True,
            check=True,
            timeout=5,
        )
    except _SUBPROCESS_ERRORS:
        return False
    except OSError:
        # Batch shims cannot be executed directly on some Windows setups.
        if sys.platform != "win32":
            return False
        try:
            content = path.read_text(encoding="utf-8", errors="ignore")
        except OSError:
            return False
        return "conda" in content.lower()
    return "conda" in result.stdout.lower() or "conda" in result.stderr.lower()


def _default_conda_locations() -> Iterable[Path]:
    if sys.platform == "win32":
        prefixes = [
            Path("C:/ProgramData/Anaconda3"),
            Path("C:/ProgramData/miniconda3"),
            Path.home() / "Anaconda3",
            Path.home() / "miniconda3",
        ]
        for prefix in prefixes:
            yield prefix / "Scripts" / "conda.exe"
            yield prefix / "condabin" / "conda.bat"
    else:
        yield Path.home() / "miniconda3" / "bin" / "conda"
        yield Path.home() / "anaconda3" / "bin" / "conda"
        yield Path("/opt/conda/bin/conda")
        yield Path("/usr/local/anaconda3/bin/conda")
        yield Path("/usr/local/miniconda3/bin/conda")


def list_conda_environments(conda_executable: Path) -> List[Path]:
    try:
        result = subprocess.run(
            [str(conda_executable), "env", "list", "--json"],
            capture_output=True,
            text=True,
            check=True,
            timeout=30,
        )
    except _SUBPROCESS_ERRORS as exc:
        LOGGER.warning("conda env list failed for %s: %s", conda_executable, exc)
        return []
    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        LOGGER.warning("conda env list JSON decode failed for %s: %s", conda_executable, exc)
        return []
    envs = payload.get("envs", []) if isinstance(payload, dict) else []
    return [Path(env).resolve() for env in envs if Path(env).exists()]


def resolve_python_executable(env_path: Path) -> Optional[Path]:
    if sys.platform == "win32":
        candidates = [env_path / "python.exe", env_path / "Scripts" / "python.exe"]
    else:
        candidates = [env_path / "python", env_path / "bin" / "python"]
    for candidate in candidates:
        if candidate.exists():
            return candidate.resolve()
    return None


def discover_interpreters(
    include_conda: bool = False,
    conda_candidate: Optional[str] = None,
    explicit_pythons: Optional[Sequence[str]] = None,
    refresh_cache: bool = False,
) -> List[Interpreter]:
    found: List[Interpreter] = []
    seen: set[Path] = set()

    def add(name: str, path: Path, source: str) -> Optional[Interpreter]:
        try:
            resolved = path.resolve()
        except OSError:
            return None
        if resolved in seen:
            return None
        seen.add(resolved)
        interpreter = Interpreter(
            name=name,
            path=resolved,
            version=get_python_version(resolved),
            source=source,
        )
        found.append(interpreter)
        return interpreter

    add("current", Path(sys.executable), SOURCE_CURRENT)

    for index, item in enumerate(explicit_pythons or [], start=1):
        candidate = Path(item)
        if not candidate.exists():
            LOGGER.warning("Python interpreter not found: %s", candidate)
            continue
        add(f"python-{index}", candidate, SOURCE_EXPLICIT)

    if include_conda:
        _add_conda_interpreters(add, conda_candidate, refresh_cache)

    return found


def _add_conda_interpreters(add, conda_candidate: Optional[str], refresh_cache: bool) -> None:
    records: List[Tuple[str, str]] = []

    conda_path = find_conda_executable(conda_candidate)
    if conda_path is None:
        LOGGER.warning("Conda executable not found.")
    else:
        environments = list_conda_environments(conda_path)
        for index, env_path in enumerate(environments, start=1):
            python_path = resolve_python_executable(env_path)
            if python_path is None:
                LOGGER.debug("Python executable not found for env %s", env_path)
                continue
            LOGGER.info("Scanning conda environment %s/%s: %s", index, len(environments), env_path)
            name = env_path.name or "base"
            add(name, python_path, SOURCE_CONDA)
            records.append((name, str(python_path)))

    # Live environments come first so a cached entry never masks their source.
    if not refresh_cache:
        cached_entries = load_cached_conda_envs()
        if cached_entries:
            LOGGER.info(
                "Reusing %s cached conda environment%s.",
                len(cached_entries),
                "" if len(cached_entries) == 1 else "s",
            )
        for cached_name, cached_path in cached_entries:
            python_path = Path(cached_path)
            if not python_path.exists():
                LOGGER.debug("Dropping stale cached environment %s", python_path)
                continue
            add(cached_name, python_path, SOURCE_CACHED)
            records.append((cached_name, str(python_path)))

    save_cached_conda_envs(records)


def sort_interpreters(interpreters: Iterable[Interpreter]) -> List[Interpreter]:
    """Newest Python first; interpreters with an unknown version keep their order at the end."""
    known: List[Tuple[Version, Interpreter]] = []
    unknown: List[Interpreter] = []
    for interpreter in interpreters:
        version = _parse_version(interpreter.version)
        if version is None:
            unknown.append(interpreter)
        else:
            known.append((version, interpreter))
    known.sort(key=lambda entry: entry[0], reverse=True)
    return [entry[1] for entry in known] + unknown


def _parse_version(value: Optional[str]) -> Optional[Version]:
    if not value:
        return None
    try:
        return Version(value)
    except InvalidVersion:
        return None
