from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


SOURCE_CURRENT = "current"
SOURCE_EXPLICIT = "explicit"
SOURCE_CONDA = "conda"
SOURCE_CACHED = "cached"
SOURCE_MANUAL = "manual"


@dataclass(frozen=True)
class Interpreter:
    name: str
    path: Path
    version: Optional[str] = None
    source: str = SOURCE_EXPLICIT

    @property
    def label(self) -> str:
        if self.version:
            return f"{self.name} (Python {self.version})"
        return self.name
