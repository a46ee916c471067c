"""Scanner data models — file descriptors, matches and scan outcomes."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field

# Language name -> percentage of recognised bytes.
LanguageStats = dict[str, float]


def extension_of(path: str) -> str:
    """Lower-cased extension with its leading dot, or "" when there is none."""
    return os.path.splitext(path)[1].lower()


def normalize_extensions(extensions) -> frozenset[str] | None:
    """Turn a caller-supplied extension list into a lookup set.

    ``None`` and empty inputs mean "no filter". A missing leading dot is
    tolerated, so ``"py"`` and ``".PY"`` both become ``".py"``.
    """
    if not extensions:
        return None
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(normalized) or None


@dataclass(frozen=True)
class FileDescriptor:
    """A file produced by a walker. Content stays unset until a scan needs it.

    ``path`` is relative to the scanned root and uses "/" separators, so local
    and remote results read the same. Local walkers also record ``root``.
    """

    path: str
    extension: str
    size_bytes: int
    content: bytes | None = None
    root: str = ""

    @property
    def location(self) -> str:
        """Where to read the file from on disk."""
        if not self.root:
            return self.path
        return os.path.join(self.root, *self.path.split("/"))


@dataclass(frozen=True)
class MatchResult:
    """All occurrences of one category within one file."""

    category: str
    file: str
    occurrences: tuple[str, ...]
    lines: tuple[int, ...] = ()

    @property
    def count(self) -> int:
        return len(self.occurrences)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "file": self.file,
            "occurrences": list(self.occurrences),
            "lines": list(self.lines),
        }


@dataclass
class ScanOutcome:
    """Aggregate result of a local or remote scan."""

    source: str
    vulnerabilities: list[MatchResult] = field(default_factory=list)
    remaining_budget: int | None = None
    files_scanned: int = 0
    files_skipped: int = 0
    duration: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "vulnerabilities": [m.to_dict() for m in self.vulnerabilities],
            "remaining": self.remaining_budget,
            "files_scanned": self.files_scanned,
            "files_skipped": self.files_skipped,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }
