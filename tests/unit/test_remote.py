"""Tests for the GitHub client, API budget and remote tree walker."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from piiscan.errors import NotFoundError, ProviderError, RateLimitedError
from piiscan.scanner.models import FileDescriptor
from piiscan.scanner.remote import (
    ApiBudget,
    GitHubClient,
    RemoteContentLoader,
    RemoteTreeWalker,
    contents_path,
    retry_after,
    tree_path,
)

API_URL = "https://api.github.test"

REPO_FILES = {
    "README.md": b"# demo",
    "app.py": b"owner = 'a@x.com'",
    "src/util.py": b"pass",
    "src/web/index.js": b"const mail = 'b@y.org'",
}


def _walk(transport, budget: ApiBudget, extensions=None, owner="octo", repo="demo"):
    async def _run():
        async with GitHubClient(API_URL, transport=transport) as client:
            return await RemoteTreeWalker(client, budget).walk(owner, repo, extensions)

    return asyncio.run(_run())


class TestApiBudget:
    def test_consume_until_empty(self):
        budget = ApiBudget(2)

        async def _run():
            return [await budget.try_consume() for _ in range(3)]

        assert asyncio.run(_run()) == [True, True, False]
        assert budget.remaining == 0
        assert budget.exhausted

    def test_concurrent_consumers_never_overshoot(self):
        budget = ApiBudget(5)

        async def _run():
            return await asyncio.gather(*(budget.try_consume() for _ in range(20)))

        granted = asyncio.run(_run())
        assert sum(granted) == 5
        assert budget.remaining == 0

    def test_cap_only_lowers(self):
        budget = ApiBudget(10)
        budget.cap(20)
        assert budget.remaining == 10
        budget.cap(3)
        assert budget.remaining == 3

    def test_negative_limit(self):
        assert ApiBudget(-4).remaining == 0


class TestHelpers:
    def test_contents_path_quotes(self):
        assert contents_path("octo", "demo") == "/repos/octo/demo/contents"
        assert contents_path("octo", "demo", "dir/my file.py") == (
            "/repos/octo/demo/contents/dir/my%20file.py"
        )

    def test_tree_path_quotes(self):
        assert tree_path("octo", "demo", "HEAD") == "/repos/octo/demo/git/trees/HEAD"
        assert tree_path("octo", "demo", "feature/x") == (
            "/repos/octo/demo/git/trees/feature%2Fx"
        )

    def test_retry_after_header(self):
        response = httpx.Response(429, headers={"Retry-After": "30"})
        assert retry_after(response) == 30.0

    def test_retry_after_from_reset(self):
        reset = int(time.time()) + 60
        response = httpx.Response(403, headers={"X-RateLimit-Reset": str(reset)})
        assert 0 < retry_after(response) <= 60

    def test_retry_after_unknown(self):
        assert retry_after(httpx.Response(429)) is None


class TestRemoteTreeWalker:
    def test_one_call_lists_whole_tree(self, make_github):
        fake, transport = make_github(REPO_FILES)
        files, remaining = _walk(transport, ApiBudget(50))
        assert [f.path for f in files] == [
            "README.md",
            "app.py",
            "src/util.py",
            "src/web/index.js",
        ]
        assert fake.calls == ["/repos/octo/demo/git/trees/HEAD"]
        assert remaining == 49
        assert all(f.content is None for f in files)

    def test_files_before_subdirectories(self, make_github):
        _, transport = make_github({"z.py": b"", "src/a.py": b"", "src/b/c.py": b""})
        files, _ = _walk(transport, ApiBudget(5))
        assert [f.path for f in files] == ["z.py", "src/a.py", "src/b/c.py"]

    def test_extension_filter(self, make_github):
        _, transport = make_github(REPO_FILES)
        files, _ = _walk(transport, ApiBudget(50), [".JS"])
        assert [f.path for f in files] == ["src/web/index.js"]
        assert files[0].extension == ".js"
        assert files[0].size_bytes == len(REPO_FILES["src/web/index.js"])

    def test_directory_over_a_thousand_entries(self, make_github):
        big = {f"big/file{i:04d}.txt": b"x" for i in range(1500)}
        fake, transport = make_github(big)
        files, _ = _walk(transport, ApiBudget(5))
        assert len(files) == 1500
        assert files[-1].path == "big/file1499.txt"
        assert len(fake.calls) == 1

    def test_truncated_tree_walks_every_directory(self, make_github):
        fake, transport = make_github(REPO_FILES, truncated=True)
        files, remaining = _walk(transport, ApiBudget(50))
        assert [f.path for f in files] == [
            "README.md",
            "app.py",
            "src/util.py",
            "src/web/index.js",
        ]
        # recursive attempt, then root, src, src/web
        assert len(fake.calls) == 4
        assert remaining == 46

    def test_truncated_tree_keeps_large_directory(self, make_github):
        big = {f"file{i:04d}.txt": b"x" for i in range(1200)}
        fake, transport = make_github(big, truncated=True)
        files, _ = _walk(transport, ApiBudget(5))
        assert len(files) == 1200
        assert len(fake.calls) == 2

    def test_budget_runs_out_mid_walk(self, make_github):
        fake, transport = make_github(REPO_FILES, truncated=True)
        files, remaining = _walk(transport, ApiBudget(3))
        assert remaining == 0
        assert len(fake.calls) == 3
        assert [f.path for f in files] == ["README.md", "app.py", "src/util.py"]

    def test_zero_budget_issues_no_calls(self, make_github):
        fake, transport = make_github(REPO_FILES)
        files, remaining = _walk(transport, ApiBudget(0))
        assert files == []
        assert remaining == 0
        assert fake.calls == []

    def test_skips_submodules_and_symlinks(self):
        tree = {
            "sha": "root",
            "truncated": False,
            "tree": [
                {"type": "commit", "path": "vendor/lib", "mode": "160000"},
                {"type": "blob", "path": "link.py", "mode": "120000", "size": 10},
                {"type": "blob", "path": "real.py", "mode": "100644", "size": 4},
            ],
        }
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=tree))
        files, _ = _walk(transport, ApiBudget(5))
        assert [f.path for f in files] == ["real.py"]

    def test_empty_repository(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(409, json={"message": "Git Repository is empty."})
        )
        files, remaining = _walk(transport, ApiBudget(5))
        assert files == []
        assert remaining == 4

    def test_unknown_repository(self, make_github):
        _, transport = make_github(REPO_FILES)
        with pytest.raises(NotFoundError):
            _walk(transport, ApiBudget(5), owner="ghost")

    def test_rate_limited_before_any_data(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403,
                json={"message": "API rate limit exceeded"},
                headers={"X-RateLimit-Remaining": "0", "Retry-After": "120"},
            )

        with pytest.raises(RateLimitedError) as excinfo:
            _walk(httpx.MockTransport(handler), ApiBudget(5))
        assert excinfo.value.remaining == 0
        assert excinfo.value.retry_after == 120.0

    def test_rate_limited_after_data_returns_partial(self, make_github):
        fake, _ = make_github(REPO_FILES, truncated=True)
        root = f"/repos/octo/demo/git/trees/{fake.root_sha}"

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path in ("/repos/octo/demo/git/trees/HEAD", root):
                return fake(request)
            return httpx.Response(429, headers={"X-RateLimit-Remaining": "0"})

        files, remaining = _walk(httpx.MockTransport(handler), ApiBudget(50))
        assert [f.path for f in files] == ["README.md", "app.py"]
        assert remaining == 0

    def test_provider_quota_caps_budget(self, make_github):
        _, transport = make_github(REPO_FILES, rate_limit_remaining=1, truncated=True)
        files, remaining = _walk(transport, ApiBudget(50))
        # the recursive attempt leaves the provider with one call, the root listing uses it
        assert remaining == 0
        assert [f.path for f in files] == ["README.md", "app.py"]

    def test_server_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        with pytest.raises(ProviderError):
            _walk(transport, ApiBudget(5))

    def test_not_a_tree(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(ProviderError):
            _walk(transport, ApiBudget(5))

    def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ProviderError):
            _walk(httpx.MockTransport(handler), ApiBudget(5))


class TestRemoteContentLoader:
    def _load(self, transport, descriptor: FileDescriptor, budget: ApiBudget):
        async def _run():
            async with GitHubClient(API_URL, transport=transport) as client:
                return await RemoteContentLoader(client, budget, "octo", "demo")(descriptor)

        return asyncio.run(_run())

    def test_fetches_raw_content(self, make_github):
        fake, transport = make_github(REPO_FILES)
        descriptor = FileDescriptor(path="src/util.py", extension=".py", size_bytes=4)
        budget = ApiBudget(3)
        assert self._load(transport, descriptor, budget) == b"pass"
        assert fake.raw_calls == ["src/util.py"]
        assert budget.remaining == 2

    def test_no_budget_no_call(self, make_github):
        fake, transport = make_github(REPO_FILES)
        descriptor = FileDescriptor(path="app.py", extension=".py", size_bytes=4)
        assert self._load(transport, descriptor, ApiBudget(0)) is None
        assert fake.calls == []

    def test_missing_file_skipped(self, make_github):
        _, transport = make_github(REPO_FILES)
        descriptor = FileDescriptor(path="gone.py", extension=".py", size_bytes=4)
        assert self._load(transport, descriptor, ApiBudget(3)) is None

    def test_rate_limited_exhausts_budget(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(429))
        descriptor = FileDescriptor(path="app.py", extension=".py", size_bytes=4)
        budget = ApiBudget(3)
        assert self._load(transport, descriptor, budget) is None
        assert budget.remaining == 0

    def test_transport_failure_skips_file(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow file", request=request)

        descriptor = FileDescriptor(path="app.py", extension=".py", size_bytes=4)
        budget = ApiBudget(3)
        assert self._load(httpx.MockTransport(handler), descriptor, budget) is None
        assert budget.remaining == 2
