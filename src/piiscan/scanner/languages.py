"""Language analyzer — byte share per language for a local tree or a repository."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from urllib.parse import quote

from piiscan.errors import NotFoundError, ProviderError, RateLimitedError
from piiscan.scanner.local import LocalTreeWalker
from piiscan.scanner.models import LanguageStats
from piiscan.scanner.remote import ApiBudget, GitHubClient, is_rate_limited, retry_after

logger = logging.getLogger(__name__)

_DEFAULT_EXTENSIONS = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".py": "Python",
    ".java": "Java",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".less": "Less",
    ".php": "PHP",
    ".rb": "Ruby",
    ".go": "Go",
    ".rs": "Rust",
}


@dataclass(frozen=True)
class LanguageTable:
    """Read-only mapping of file extension to language name."""

    extensions: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {ext.lower(): lang for ext, lang in self.extensions.items()}
        object.__setattr__(self, "extensions", MappingProxyType(normalized))

    @property
    def recognized(self) -> frozenset[str]:
        return frozenset(self.extensions)

    def language_for(self, extension: str) -> str | None:
        return self.extensions.get(extension.lower())


DEFAULT_LANGUAGE_TABLE = LanguageTable(_DEFAULT_EXTENSIONS)


def to_percentages(byte_counts: Mapping[str, int]) -> LanguageStats:
    """Convert bytes per language to percentages, largest share first."""
    total = sum(byte_counts.values())
    if total <= 0:
        return {}
    ordered = sorted(byte_counts.items(), key=lambda item: (-item[1], item[0]))
    return {lang: count * 100 / total for lang, count in ordered if count > 0}


class LocalLanguageAnalyzer:
    """Sum file sizes per recognised language under a directory."""

    def __init__(
        self,
        table: LanguageTable = DEFAULT_LANGUAGE_TABLE,
        walker: LocalTreeWalker | None = None,
    ) -> None:
        self._table = table
        self._walker = walker or LocalTreeWalker()

    def analyze(self, root: str | Path) -> LanguageStats:
        if not self._table.recognized:
            return {}

        byte_counts: dict[str, int] = {}
        for descriptor in self._walker.walk(root, self._table.recognized):
            language = self._table.language_for(descriptor.extension)
            if language is None:
                continue
            byte_counts[language] = byte_counts.get(language, 0) + descriptor.size_bytes

        return to_percentages(byte_counts)


class RemoteLanguageAnalyzer:
    """Read the provider's own per-language byte counts for a repository."""

    def __init__(self, client: GitHubClient, budget: ApiBudget) -> None:
        self._client = client
        self._budget = budget

    async def analyze(self, owner: str, repo: str) -> LanguageStats:
        path = f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/languages"
        response = await self._client.get(path, self._budget)
        if response is None:
            raise RateLimitedError(f"No API budget left to analyze {owner}/{repo}")
        if is_rate_limited(response):
            raise RateLimitedError(
                f"Rate limited by provider while analyzing {owner}/{repo}",
                retry_after=retry_after(response),
            )
        if response.status_code == 404:
            raise NotFoundError(f"Repository not found: {owner}/{repo}")
        if response.status_code != 200:
            raise ProviderError(
                f"Language lookup for {owner}/{repo} failed with status {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected language payload for {owner}/{repo}")
        logger.debug("Provider reports %d languages for %s/%s", len(data), owner, repo)
        return to_percentages({lang: int(count) for lang, count in data.items()})
