"""Source file discovery for Gradle projects."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .errors import Diagnostic, DiagnosticKind, FileReadFailure, ScanFailure

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    JAVA = "java"
    KOTLIN = "kotlin"


SOURCE_KINDS = {
    ".java": SourceKind.JAVA,
    ".kt": SourceKind.KOTLIN,
}

DEFAULT_EXTENSIONS = set(SOURCE_KINDS)
DEFAULT_EXCLUDE_DIRS = {
    "build", "out", "target", "bin", "gen", "generated", "intermediates",
    "node_modules", "__pycache__",
    "venv", "env",
    "*.egg-info",
}


@dataclass(frozen=True)
class SourceFile:
    path: Path
    text: str
    kind: SourceKind


def is_excluded_dir(name: str, exclude_dirs: Set[str]) -> bool:
    """Check a directory name against the exclusion set (dot-directories always excluded)."""
    if name.startswith("."):
        return True
    if name in exclude_dirs:
        return True
    return any(name.endswith(pat.lstrip("*")) for pat in exclude_dirs if pat.startswith("*"))


def iter_files(
    root: Path,
    include_ext: Optional[Set[str]] = None,
    exclude_dirs: Optional[Set[str]] = None,
    max_depth: Optional[int] = None,
    warnings: Optional[List[Diagnostic]] = None,
) -> Iterator[Path]:
    """
    Iterate over source files in a directory tree.

    Entries are visited in sorted order, so paths come out in lexicographic
    order of their parts.

    Args:
        root: Root directory to scan.
        include_ext: Set of file extensions to include (e.g., {'.java', '.kt'}).
                    If None, uses DEFAULT_EXTENSIONS.
        exclude_dirs: Set of directory names to skip.
                     If None, uses DEFAULT_EXCLUDE_DIRS.
        max_depth: Maximum depth to descend. None means unlimited.
        warnings: Optional list receiving a diagnostic per unreadable directory.

    Yields:
        Path objects for matching files.
    """
    if include_ext is None:
        include_ext = DEFAULT_EXTENSIONS
    if exclude_dirs is None:
        exclude_dirs = DEFAULT_EXCLUDE_DIRS

    root = root.resolve()

    def _walk(current: Path, depth: int) -> Iterator[Path]:
        if max_depth is not None and depth > max_depth:
            return

        try:
            entries = sorted(current.iterdir())
        except OSError as e:
            logger.warning("Skipping unreadable directory %s: %s", current, e)
            if warnings is not None:
                warnings.append(Diagnostic(DiagnosticKind.FILE_READ, str(e), path=str(current)))
            return

        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                if is_excluded_dir(entry.name, exclude_dirs):
                    continue
                yield from _walk(entry, depth + 1)
            elif entry.is_file():
                if entry.suffix.lower() in include_ext:
                    yield entry

    yield from _walk(root, 0)


def read_source(path: Path) -> SourceFile:
    """
    Read one source file.

    Raises:
        FileReadFailure: If the file cannot be read or decoded.
    """
    kind = SOURCE_KINDS.get(path.suffix.lower(), SourceKind.JAVA)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadFailure(path, str(e)) from e
    return SourceFile(path=path, text=text, kind=kind)


def check_root(root: Path) -> Path:
    """
    Validate the scan root.

    Raises:
        ScanFailure: If the root does not exist, is not a directory or cannot be listed.
    """
    if not root.exists():
        raise ScanFailure(f"Path does not exist: {root}")
    if not root.is_dir():
        raise ScanFailure(f"Path is not a directory: {root}")
    try:
        next(root.iterdir(), None)
    except OSError as e:
        raise ScanFailure(f"Path is not readable: {root} ({e})") from e
    return root.resolve()


class SourceScan:
    """
    A restartable, lazy sequence of the source files under a root.

    Each iteration walks the tree again and resets ``warnings``.
    """

    def __init__(
        self,
        root: Path,
        include_ext: Optional[Set[str]] = None,
        exclude_dirs: Optional[Set[str]] = None,
        max_depth: Optional[int] = None,
    ):
        self.root = check_root(Path(root))
        self.include_ext = include_ext
        self.exclude_dirs = exclude_dirs
        self.max_depth = max_depth
        self.warnings: List[Diagnostic] = []

    def paths(self) -> Iterator[Path]:
        self.warnings = []
        return iter_files(
            root=self.root,
            include_ext=self.include_ext,
            exclude_dirs=self.exclude_dirs,
            max_depth=self.max_depth,
            warnings=self.warnings,
        )

    def __iter__(self) -> Iterator[SourceFile]:
        for path in self.paths():
            try:
                yield read_source(path)
            except FileReadFailure as e:
                logger.warning("%s", e)
                self.warnings.append(Diagnostic(DiagnosticKind.FILE_READ, e.reason, path=str(path)))


def scan(
    root: Path,
    include_ext: Optional[Set[str]] = None,
    exclude_dirs: Optional[Set[str]] = None,
    max_depth: Optional[int] = None,
) -> SourceScan:
    """Scan a project root for source files; raises ScanFailure for a bad root."""
    return SourceScan(root, include_ext=include_ext, exclude_dirs=exclude_dirs, max_depth=max_depth)


def get_relative_path(file_path: Path, root: Path) -> Path:
    """Get the path relative to root, handling edge cases."""
    try:
        return file_path.resolve().relative_to(root.resolve())
    except ValueError:
        return file_path
