"""Tests for the language analyzers."""

from __future__ import annotations

import asyncio
import math
from pathlib import Path

import pytest

from piiscan.errors import NotFoundError, RateLimitedError
from piiscan.scanner.languages import (
    DEFAULT_LANGUAGE_TABLE,
    LanguageTable,
    LocalLanguageAnalyzer,
    RemoteLanguageAnalyzer,
    to_percentages,
)
from piiscan.scanner.remote import ApiBudget, GitHubClient


class TestLanguageTable:
    def test_default_table(self):
        assert DEFAULT_LANGUAGE_TABLE.language_for(".tsx") == "TypeScript"
        assert DEFAULT_LANGUAGE_TABLE.language_for(".PY") == "Python"
        assert DEFAULT_LANGUAGE_TABLE.language_for(".md") is None

    def test_immutable(self):
        table = LanguageTable({".py": "Python"})
        with pytest.raises(TypeError):
            table.extensions[".rb"] = "Ruby"


class TestToPercentages:
    def test_zero_total(self):
        assert to_percentages({}) == {}
        assert to_percentages({"Python": 0}) == {}

    def test_sums_to_hundred(self):
        stats = to_percentages({"Go": 7, "Rust": 11, "C": 13})
        assert math.isclose(sum(stats.values()), 100.0)
        assert list(stats) == ["C", "Rust", "Go"]


class TestLocalLanguageAnalyzer:
    def test_scenario_breakdown(self, tmp_path: Path):
        (tmp_path / "x.js").write_bytes(b"j" * 120)
        (tmp_path / "y.py").write_bytes(b"p" * 80)
        (tmp_path / "z.md").write_bytes(b"m" * 500)
        stats = LocalLanguageAnalyzer().analyze(tmp_path)
        assert stats == {"JavaScript": 60.0, "Python": 40.0}

    def test_nested_files_counted(self, tmp_path: Path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "a.ts").write_bytes(b"t" * 50)
        (tmp_path / "b.tsx").write_bytes(b"t" * 50)
        assert LocalLanguageAnalyzer().analyze(tmp_path) == {"TypeScript": 100.0}

    def test_no_recognised_files(self, tmp_path: Path):
        (tmp_path / "notes.md").write_text("hello")
        assert LocalLanguageAnalyzer().analyze(tmp_path) == {}

    def test_empty_files_do_not_divide_by_zero(self, tmp_path: Path):
        (tmp_path / "empty.py").write_bytes(b"")
        assert LocalLanguageAnalyzer().analyze(tmp_path) == {}

    def test_custom_table(self, tmp_path: Path):
        (tmp_path / "notes.md").write_text("hello")
        (tmp_path / "x.js").write_text("hello")
        table = LanguageTable({".md": "Markdown"})
        assert LocalLanguageAnalyzer(table).analyze(tmp_path) == {"Markdown": 100.0}

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            LocalLanguageAnalyzer().analyze(tmp_path / "missing")


class TestRemoteLanguageAnalyzer:
    def _analyze(self, transport, owner="octo", repo="demo", budget=10):
        async def _run():
            async with GitHubClient("https://api.github.test", transport=transport) as client:
                return await RemoteLanguageAnalyzer(client, ApiBudget(budget)).analyze(owner, repo)

        return asyncio.run(_run())

    def test_provider_breakdown(self, make_github):
        _, transport = make_github({}, languages={"Python": 300, "Shell": 100})
        assert self._analyze(transport) == {"Python": 75.0, "Shell": 25.0}

    def test_provider_reports_nothing(self, make_github):
        _, transport = make_github({}, languages={})
        assert self._analyze(transport) == {}

    def test_unknown_repository(self, make_github):
        _, transport = make_github({})
        with pytest.raises(NotFoundError):
            self._analyze(transport, owner="ghost")

    def test_no_budget(self, make_github):
        fake, transport = make_github({}, languages={"Python": 1})
        with pytest.raises(RateLimitedError):
            self._analyze(transport, budget=0)
        assert fake.calls == []
