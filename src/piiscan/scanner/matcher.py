"""Content matcher — runs a pattern set over file contents."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from piiscan.errors import DecodeError
from piiscan.scanner.local import read_local
from piiscan.scanner.models import FileDescriptor, MatchResult
from piiscan.scanner.patterns import PatternSet

logger = logging.getLogger(__name__)

Loader = Callable[[FileDescriptor], bytes | None]
AsyncLoader = Callable[[FileDescriptor], Awaitable[bytes | None]]


@dataclass
class MatchReport:
    """Matches plus per-file bookkeeping for the orchestrator."""

    matches: list[MatchResult] = field(default_factory=list)
    files_scanned: int = 0
    files_skipped: int = 0


def decode(descriptor: FileDescriptor, raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(descriptor.path, e.reason) from e


def match_text(path: str, text: str, patterns: PatternSet) -> list[MatchResult]:
    """Match every category against one file's text.

    Occurrences are kept in order of appearance and are not deduplicated.
    Categories without a hit produce nothing.
    """
    results: list[MatchResult] = []
    for category, regex in patterns.items():
        occurrences: list[str] = []
        lines: list[int] = []
        line = 1
        last = 0
        for m in regex.finditer(text):
            line += text.count("\n", last, m.start())
            last = m.start()
            occurrences.append(m.group(0))
            lines.append(line)
        if occurrences:
            results.append(
                MatchResult(
                    category=category,
                    file=path,
                    occurrences=tuple(occurrences),
                    lines=tuple(lines),
                )
            )
    return results


class ContentMatcher:
    """Scan files for pattern occurrences, skipping files that are not text."""

    def match(
        self,
        files: Sequence[FileDescriptor],
        patterns: PatternSet,
        loader: Loader = read_local,
    ) -> list[MatchResult]:
        return self.match_report(files, patterns, loader).matches

    def match_report(
        self,
        files: Sequence[FileDescriptor],
        patterns: PatternSet,
        loader: Loader = read_local,
        deadline_check: Callable[[], None] | None = None,
    ) -> MatchReport:
        report = MatchReport()
        for descriptor in files:
            if deadline_check:
                deadline_check()
            try:
                raw = loader(descriptor)
            except OSError as e:
                logger.debug("Skipping %s: %s", descriptor.path, e)
                report.files_skipped += 1
                continue
            self._collect(report, descriptor, raw, patterns)
        return report

    async def match_async(
        self,
        files: Sequence[FileDescriptor],
        patterns: PatternSet,
        loader: AsyncLoader,
        concurrency: int = 8,
    ) -> MatchReport:
        """Fetch contents concurrently and match each file as soon as it arrives.

        Only the matches are kept per file; results are reported in input order.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _scan(descriptor: FileDescriptor) -> list[MatchResult] | None:
            async with semaphore:
                raw = await loader(descriptor)
            return self._scan_one(descriptor, raw, patterns)

        report = MatchReport()
        for found in await asyncio.gather(*(_scan(d) for d in files)):
            self._record(report, found)
        return report

    def _collect(
        self,
        report: MatchReport,
        descriptor: FileDescriptor,
        raw: bytes | None,
        patterns: PatternSet,
    ) -> None:
        self._record(report, self._scan_one(descriptor, raw, patterns))

    @staticmethod
    def _scan_one(
        descriptor: FileDescriptor,
        raw: bytes | None,
        patterns: PatternSet,
    ) -> list[MatchResult] | None:
        """Matches for one file, or None when the file was skipped."""
        if raw is None:
            return None
        try:
            text = decode(descriptor, raw)
        except DecodeError as e:
            logger.debug("%s; skipping", e)
            return None
        return match_text(descriptor.path, text, patterns)

    @staticmethod
    def _record(report: MatchReport, found: list[MatchResult] | None) -> None:
        if found is None:
            report.files_skipped += 1
            return
        report.files_scanned += 1
        report.matches.extend(found)
