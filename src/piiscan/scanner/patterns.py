"""Pattern sets — named regexes compiled once per scan request."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from pathlib import Path

import yaml

from piiscan.errors import ValidationError

logger = logging.getLogger(__name__)

# Built-in PII categories, used when the caller brings no patterns of its own.
DEFAULT_PATTERNS: dict[str, str] = {
    "email": r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}",
    "phone": r"\(?\b\d{3}\)?[-. ]\d{3}[-. ]\d{4}\b",
    "us_ssn": r"\b\d{3}-\d{2}-\d{4}\b",
    "credit_card": r"\b(?:\d{4}[- ]?){3}\d{4}\b",
    "aws_access_key": r"\bAKIA[0-9A-Z]{16}\b",
    "ipv4": r"\b(?:\d{1,3}\.){3}\d{1,3}\b",
}


class PatternSet(Mapping):
    """Ordered, read-only mapping of category name to compiled regex.

    Construction compiles every source up front; one bad pattern rejects
    the whole set with :class:`ValidationError` before any file is touched.
    """

    def __init__(self, sources: Mapping[str, str]) -> None:
        if not isinstance(sources, Mapping):
            raise ValidationError("Patterns must be a mapping of name to regex")

        compiled: dict[str, re.Pattern[str]] = {}
        for name, source in sources.items():
            if not isinstance(name, str) or not name.strip():
                raise ValidationError(f"Invalid pattern name: {name!r}")
            if not isinstance(source, str) or not source:
                raise ValidationError(f"Pattern {name!r} must be a non-empty string")
            try:
                compiled[name] = re.compile(source)
            except re.error as e:
                raise ValidationError(f"Pattern {name!r} does not compile: {e}") from None

        self._compiled = compiled
        self._sources = dict(sources)

    @classmethod
    def coerce(cls, patterns: PatternSet | Mapping[str, str]) -> PatternSet:
        if isinstance(patterns, cls):
            return patterns
        return cls(patterns)

    def __getitem__(self, name: str) -> re.Pattern[str]:
        return self._compiled[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._compiled)

    def __len__(self) -> int:
        return len(self._compiled)

    def __repr__(self) -> str:
        return f"PatternSet({list(self._compiled)!r})"

    @property
    def sources(self) -> dict[str, str]:
        return dict(self._sources)


def load_patterns(path: str | Path) -> PatternSet:
    """Load a pattern set from a YAML file."""
    text = Path(path).read_text(encoding="utf-8")
    logger.debug("Loading patterns from %s", path)
    return load_patterns_from_string(text)


def load_patterns_from_string(text: str) -> PatternSet:
    """Parse YAML into a PatternSet.

    Accepts either a bare ``category: regex`` mapping or the same mapping
    nested under a top-level ``patterns`` key.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Pattern file is not valid YAML: {e}") from None
    if not isinstance(data, dict):
        raise ValidationError("Pattern YAML must be a mapping")
    if "patterns" in data and isinstance(data["patterns"], dict):
        data = data["patterns"]
    return PatternSet(data)


def default_patterns() -> PatternSet:
    return PatternSet(DEFAULT_PATTERNS)
