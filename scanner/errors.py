"""Error types and recoverable diagnostics raised while scanning a project."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class DaggerMapError(Exception):
    """Base class for all errors raised by the scanner."""


class ScanFailure(DaggerMapError):
    """The project root is missing or unreadable; no graph can be produced."""


class FileReadFailure(DaggerMapError):
    """A single source file could not be read."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path
        self.reason = reason


class ParseFailure(DaggerMapError):
    """A single declaration could not be understood."""

    def __init__(self, message: str, line: int = 0):
        super().__init__(message)
        self.line = line


class ConfigError(DaggerMapError):
    """The configuration file is unreadable or has invalid values."""


class DiagnosticKind(str, Enum):
    FILE_READ = "file_read"
    PARSE = "parse"
    UNRESOLVED = "unresolved"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable problem recorded during scanning, parsing or graph building."""

    kind: DiagnosticKind
    message: str
    path: Optional[str] = None
    line: int = 0

    def __str__(self) -> str:
        location = self.path or "<project>"
        if self.line:
            location = f"{location}:{self.line}"
        return f"{location}: {self.message}"
