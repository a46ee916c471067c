"""Shared test fixtures."""

from __future__ import annotations

import hashlib
from pathlib import Path

import httpx
import pytest

from piiscan.config import PiiScanConfig

RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


def tree_sha(directory: str) -> str:
    return hashlib.sha1(f"tree:{directory}".encode()).hexdigest()


class FakeGitHub:
    """In-memory stand-in for the GitHub git trees, contents and languages endpoints.

    With ``truncated=True`` the recursive tree call reports a truncated
    answer, forcing callers to list one tree object at a time.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        files: dict[str, bytes],
        languages: dict[str, int] | None = None,
        rate_limit_remaining: int | None = None,
        truncated: bool = False,
    ) -> None:
        self.prefix = f"/repos/{owner}/{repo}"
        self.files = files
        self.languages = languages or {}
        self.rate_limit_remaining = rate_limit_remaining
        self.truncated = truncated
        self.calls: list[str] = []
        self.raw_calls: list[str] = []

        self.directories = {""}
        for path in files:
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                self.directories.add("/".join(parts[:i]))
        self.by_sha = {tree_sha(d): d for d in self.directories}
        self.root_sha = tree_sha("")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        headers = {}
        if self.rate_limit_remaining is not None:
            headers["X-RateLimit-Remaining"] = str(self.rate_limit_remaining)
        not_found = httpx.Response(404, json={"message": "Not Found"}, headers=headers)

        if not path.startswith(self.prefix):
            return not_found
        rest = path[len(self.prefix) :]

        if rest == "/languages":
            return httpx.Response(200, json=self.languages, headers=headers)

        if rest.startswith("/git/trees/"):
            ref = rest[len("/git/trees/") :]
            if request.url.params.get("recursive") == "1":
                return httpx.Response(200, json=self._recursive(), headers=headers)
            if ref == "HEAD":
                ref = tree_sha("")
            if ref not in self.by_sha:
                return not_found
            return httpx.Response(200, json=self._tree(self.by_sha[ref]), headers=headers)

        if rest.startswith("/contents/") and request.headers.get("Accept") == RAW_MEDIA_TYPE:
            target = rest[len("/contents/") :]
            self.raw_calls.append(target)
            if target not in self.files:
                return not_found
            return httpx.Response(200, content=self.files[target], headers=headers)

        return not_found

    def _recursive(self) -> dict:
        entries = [
            {"path": d, "type": "tree", "mode": "040000", "sha": tree_sha(d)}
            for d in sorted(self.directories)
            if d
        ]
        entries += [
            {"path": p, "type": "blob", "mode": "100644", "size": len(c)}
            for p, c in sorted(self.files.items())
        ]
        if self.truncated:
            entries = entries[:1]
        return {"sha": tree_sha(""), "tree": entries, "truncated": self.truncated}

    def _tree(self, directory: str) -> dict:
        prefix = f"{directory}/" if directory else ""
        entries: dict[str, dict] = {}
        for path, content in self.files.items():
            if not path.startswith(prefix):
                continue
            head, sep, _ = path[len(prefix) :].partition("/")
            if sep:
                sha = tree_sha(prefix + head)
                entries[head] = {"path": head, "type": "tree", "mode": "040000", "sha": sha}
            else:
                entries[head] = {
                    "path": head,
                    "type": "blob",
                    "mode": "100644",
                    "size": len(content),
                }
        return {"sha": tree_sha(directory), "tree": list(entries.values()), "truncated": False}


@pytest.fixture
def config(tmp_path: Path) -> PiiScanConfig:
    return PiiScanConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
        api_url="https://api.github.test",
        api_budget=100,
    )


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    root = tmp_path / "tree"
    root.mkdir()
    (root / "a.py").write_text("contact: a@x.com")
    (root / "b.txt").write_text("no match")
    return root


@pytest.fixture
def make_github():
    def _make(files: dict[str, bytes], **kwargs) -> tuple[FakeGitHub, httpx.MockTransport]:
        fake = FakeGitHub("octo", "demo", files, **kwargs)
        return fake, httpx.MockTransport(fake)

    return _make
