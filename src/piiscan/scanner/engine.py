"""Scan engine — wires walkers, the matcher and the analyzers together."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from pathlib import Path

import httpx

from piiscan.config import PiiScanConfig
from piiscan.errors import ScanTimeoutError
from piiscan.scanner.languages import (
    DEFAULT_LANGUAGE_TABLE,
    LanguageTable,
    LocalLanguageAnalyzer,
    RemoteLanguageAnalyzer,
)
from piiscan.scanner.local import LocalTreeWalker, read_local
from piiscan.scanner.matcher import ContentMatcher
from piiscan.scanner.models import LanguageStats, ScanOutcome
from piiscan.scanner.patterns import PatternSet
from piiscan.scanner.remote import (
    ApiBudget,
    GitHubClient,
    RemoteContentLoader,
    RemoteTreeWalker,
)

logger = logging.getLogger(__name__)


class ScanEngine:
    """Runs one scan or analysis per call; holds no state between calls."""

    def __init__(
        self,
        config: PiiScanConfig | None = None,
        language_table: LanguageTable = DEFAULT_LANGUAGE_TABLE,
        exclude: Iterable[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or PiiScanConfig.load()
        self._language_table = language_table
        self._exclude = list(exclude or ())
        self._transport = transport
        self._matcher = ContentMatcher()

    def scan_local(
        self,
        root: str | Path,
        extensions: Iterable[str] | None,
        patterns: PatternSet | Mapping[str, str],
        timeout: float | None = None,
    ) -> ScanOutcome:
        """Scan a directory and return aggregated results."""
        patterns = PatternSet.coerce(patterns)
        timeout = timeout if timeout is not None else self._config.scan_timeout
        start = time.monotonic()
        deadline = start + timeout if timeout is not None else None

        def _check_deadline() -> None:
            if deadline is not None and time.monotonic() > deadline:
                raise ScanTimeoutError(f"Scan of {root} exceeded {timeout}s")

        files = LocalTreeWalker(self._exclude).walk(root, extensions)
        _check_deadline()
        report = self._matcher.match_report(
            files, patterns, read_local, deadline_check=_check_deadline
        )

        outcome = ScanOutcome(
            source=str(root),
            vulnerabilities=report.matches,
            remaining_budget=None,
            files_scanned=report.files_scanned,
            files_skipped=report.files_skipped,
            duration=time.monotonic() - start,
        )
        logger.info(
            "Scanned %d files under %s (%d skipped), %d matches",
            outcome.files_scanned,
            root,
            outcome.files_skipped,
            len(outcome.vulnerabilities),
        )
        return outcome

    async def scan_remote(
        self,
        owner: str,
        repo: str,
        extensions: Iterable[str] | None,
        patterns: PatternSet | Mapping[str, str],
        timeout: float | None = None,
        budget: int | None = None,
    ) -> ScanOutcome:
        """Scan a hosted repository; the outcome carries the budget left over."""
        patterns = PatternSet.coerce(patterns)
        timeout = timeout if timeout is not None else self._config.scan_timeout
        limit = budget if budget is not None else self._config.api_budget
        try:
            return await asyncio.wait_for(
                self._scan_remote(owner, repo, extensions, patterns, limit),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise ScanTimeoutError(f"Scan of {owner}/{repo} exceeded {timeout}s") from None

    async def _scan_remote(
        self,
        owner: str,
        repo: str,
        extensions: Iterable[str] | None,
        patterns: PatternSet,
        limit: int,
    ) -> ScanOutcome:
        start = time.monotonic()
        budget = ApiBudget(limit)
        async with self._client() as client:
            walker = RemoteTreeWalker(client, budget)
            files, _ = await walker.walk(owner, repo, extensions)
            loader = RemoteContentLoader(client, budget, owner, repo)
            report = await self._matcher.match_async(
                files,
                patterns,
                loader,
                concurrency=self._config.fetch_concurrency,
            )

        outcome = ScanOutcome(
            source=f"{owner}/{repo}",
            vulnerabilities=report.matches,
            remaining_budget=budget.remaining,
            files_scanned=report.files_scanned,
            files_skipped=report.files_skipped,
            duration=time.monotonic() - start,
        )
        logger.info(
            "Scanned %d files in %s/%s (%d skipped), %d matches, budget left %d",
            outcome.files_scanned,
            owner,
            repo,
            outcome.files_skipped,
            len(outcome.vulnerabilities),
            budget.remaining,
        )
        return outcome

    def analyze_local(self, root: str | Path) -> LanguageStats:
        walker = LocalTreeWalker(self._exclude)
        return LocalLanguageAnalyzer(self._language_table, walker).analyze(root)

    async def analyze_remote(
        self,
        owner: str,
        repo: str,
        timeout: float | None = None,
    ) -> LanguageStats:
        timeout = timeout if timeout is not None else self._config.scan_timeout
        try:
            return await asyncio.wait_for(self._analyze_remote(owner, repo), timeout=timeout)
        except asyncio.TimeoutError:
            raise ScanTimeoutError(f"Analysis of {owner}/{repo} exceeded {timeout}s") from None

    async def _analyze_remote(self, owner: str, repo: str) -> LanguageStats:
        async with self._client() as client:
            analyzer = RemoteLanguageAnalyzer(client, ApiBudget(self._config.api_budget))
            return await analyzer.analyze(owner, repo)

    def _client(self) -> GitHubClient:
        return GitHubClient.from_config(self._config, transport=self._transport)
