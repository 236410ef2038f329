from __future__ import annotations

import configparser
import json
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from platformdirs import user_config_path

from .models import SOURCE_MANUAL, Interpreter


APP_NAME = "envpick"
CONDA_SECTION = "conda"
CONDA_PATH_KEY = "path"
CONDA_EXTRA_PATHS_KEY = "extra_paths"
CONDA_CACHED_ENVS_KEY = "cached_envs"
SELECTION_SECTION = "selection"


def _config_file() -> Path:
    directory = Path(user_config_path(APP_NAME, ensure_exists=True))
    directory.mkdir(parents=True, exist_ok=True)
    return directory / "settings.ini"


def save_conda_path(conda_path: str) -> None:
    config = _load_or_create(CONDA_SECTION)
    config[CONDA_SECTION][CONDA_PATH_KEY] = conda_path
    _write_config(config)


def load_conda_path() -> Optional[str]:
    section = _read_section(CONDA_SECTION)
    if section is None:
        return None
    return section.get(CONDA_PATH_KEY)


def load_conda_search_paths() -> List[str]:
    section = _read_section(CONDA_SECTION)
    if section is None:
        return []
    raw_value = section.get(CONDA_EXTRA_PATHS_KEY, "")
    return [item for item in (part.strip() for part in raw_value.split(os.pathsep)) if item]


def save_conda_search_paths(paths: Iterable[str]) -> None:
    normalized = [str(path).strip() for path in paths if path and str(path).strip()]
    config = _load_or_create(CONDA_SECTION)
    if normalized:
        config[CONDA_SECTION][CONDA_EXTRA_PATHS_KEY] = os.pathsep.join(normalized)
    else:
        config[CONDA_SECTION].pop(CONDA_EXTRA_PATHS_KEY, None)
    _write_config(config)


def add_conda_search_path(path: str) -> None:
    current = load_conda_search_paths()
    normalized = str(path).strip()
    if not normalized or normalized in current:
        return
    current.append(normalized)
    save_conda_search_paths(current)


def load_cached_conda_envs() -> List[Tuple[str, str]]:
    section = _read_section(CONDA_SECTION)
    if section is None:
        return []
    raw_value = section.get(CONDA_CACHED_ENVS_KEY)
    if not raw_value:
        return []
    try:
        payload = json.loads(raw_value)
    except json.JSONDecodeError:
        return []
    if not isinstance(payload, list):
        return []
    environments: List[Tuple[str, str]] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        path = item.get("path")
        if isinstance(name, str) and isinstance(path, str) and name.strip() and path.strip():
            environments.append((name.strip(), path.strip()))
    return environments


def save_cached_conda_envs(items: Sequence[Tuple[str, str]]) -> None:
    normalized: List[dict] = []
    seen: set[Tuple[str, str]] = set()
    for name, path in items:
        key = (str(name).strip(), str(path).strip())
        if not all(key) or key in seen:
            continue
        seen.add(key)
        normalized.append({"name": key[0], "path": key[1]})
    config = _load_or_create(CONDA_SECTION)
    if normalized:
        config[CONDA_SECTION][CONDA_CACHED_ENVS_KEY] = json.dumps(normalized)
    else:
        config[CONDA_SECTION].pop(CONDA_CACHED_ENVS_KEY, None)
    _write_config(config)


def save_selected_interpreter(interpreter: Interpreter) -> None:
    config = _load_or_create(SELECTION_SECTION)
    section = config[SELECTION_SECTION]
    section["name"] = interpreter.name
    section["path"] = str(interpreter.path)
    section["source"] = interpreter.source
    if interpreter.version:
        section["version"] = interpreter.version
    else:
        section.pop("version", None)
    _write_config(config)


def load_selected_interpreter() -> Optional[Interpreter]:
    section = _read_section(SELECTION_SECTION)
    if section is None:
        return None
    path = section.get("path", "").strip()
    if not path:
        return None
    return Interpreter(
        name=section.get("name", "").strip() or Path(path).name,
        path=Path(path),
        version=section.get("version") or None,
        source=section.get("source", SOURCE_MANUAL),
    )


def _read_section(name: str) -> Optional[configparser.SectionProxy]:
    config = _read_config()
    if config is None or name not in config:
        return None
    return config[name]


def _load_or_create(section: str) -> configparser.ConfigParser:
    config = _read_config()
    if config is None:
        config = configparser.ConfigParser(interpolation=None)
    if section not in config:
        config[section] = {}
    return config


def _read_config() -> Optional[configparser.ConfigParser]:
    file_path = _config_file()
    if not file_path.exists():
        return None
    config = configparser.ConfigParser(interpolation=None)
    config.read(file_path, encoding="utf-8")
    return config


def _write_config(config: configparser.ConfigParser) -> None:
    file_path = _config_file()
    with file_path.open("w", encoding="utf-8") as handle:
        config.write(handle)
