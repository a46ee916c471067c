"""Remote tree walker — enumerates a GitHub repository through its REST API.

Every request goes through :class:`GitHubClient`, which charges one unit of
an :class:`ApiBudget` per call. When the budget runs dry the walker stops
and hands back what it collected instead of failing.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from urllib.parse import quote

import httpx

from piiscan import __version__
from piiscan.config import PiiScanConfig
from piiscan.errors import NotFoundError, ProviderError, RateLimitedError
from piiscan.scanner.models import FileDescriptor, extension_of, normalize_extensions

logger = logging.getLogger(__name__)

_JSON_MEDIA_TYPE = "application/vnd.github+json"
_RAW_MEDIA_TYPE = "application/vnd.github.raw+json"
_API_VERSION = "2022-11-28"
_SYMLINK_MODE = "120000"


class ApiBudget:
    """Shared counter of API calls still allowed within one scan."""

    def __init__(self, limit: int) -> None:
        self._remaining = max(0, limit)
        self._lock = asyncio.Lock()

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def exhausted(self) -> bool:
        return self._remaining <= 0

    async def try_consume(self) -> bool:
        """Take one unit if any is left."""
        async with self._lock:
            if self._remaining <= 0:
                return False
            self._remaining -= 1
            return True

    def cap(self, provider_remaining: int) -> None:
        """Never report more calls than the provider itself still allows."""
        if provider_remaining < self._remaining:
            self._remaining = max(0, provider_remaining)

    def exhaust(self) -> None:
        self._remaining = 0


def is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return (
        response.status_code == 403
        and response.headers.get("X-RateLimit-Remaining") == "0"
    )


def retry_after(response: httpx.Response) -> float | None:
    """Seconds to wait before retrying, if the provider says so."""
    header = response.headers.get("Retry-After")
    if header:
        try:
            return max(0.0, float(header))
        except ValueError:
            pass
    reset = response.headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


def contents_path(owner: str, repo: str, path: str = "") -> str:
    base = f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/contents"
    if path:
        return f"{base}/{quote(path)}"
    return base


def tree_path(owner: str, repo: str, tree: str) -> str:
    base = f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
    return f"{base}/git/trees/{quote(tree, safe='')}"


class GitHubClient:
    """Thin async wrapper over the GitHub REST API with budget accounting."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": _JSON_MEDIA_TYPE,
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": f"piiscan/{__version__}",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: PiiScanConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GitHubClient:
        return cls(
            api_url=config.api_url,
            token=config.github_token,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        path: str,
        budget: ApiBudget,
        *,
        raw: bool = False,
    ) -> httpx.Response | None:
        """Issue one GET, or return None without calling when the budget is spent."""
        if not await budget.try_consume():
            return None

        headers = {"Accept": _RAW_MEDIA_TYPE} if raw else None
        try:
            response = await self._client.get(path, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {path} failed: {e}") from e

        provider_remaining = response.headers.get("X-RateLimit-Remaining")
        if provider_remaining is not None and provider_remaining.isdigit():
            budget.cap(int(provider_remaining))

        logger.debug(
            "GET %s -> %d (budget left %d)",
            path,
            response.status_code,
            budget.remaining,
        )
        return response


def _walk_order(path: str) -> tuple[tuple[int, str], ...]:
    """Depth first, lexicographic, a directory's files before its subdirectories."""
    *dirs, name = path.split("/")
    return tuple((1, d) for d in dirs) + ((0, name),)


class RemoteTreeWalker:
    """Enumerate a repository from its git tree.

    One recursive tree call normally returns every path. When the provider
    truncates that answer, the walker falls back to listing one tree object
    per call, depth first, so large repositories are still covered.
    """

    def __init__(self, client: GitHubClient, budget: ApiBudget, ref: str = "HEAD") -> None:
        self._client = client
        self._budget = budget
        self._ref = ref

    @property
    def budget(self) -> ApiBudget:
        return self._budget

    async def walk(
        self,
        owner: str,
        repo: str,
        allowed_extensions: Iterable[str] | None = None,
    ) -> tuple[list[FileDescriptor], int]:
        allowed = normalize_extensions(allowed_extensions)
        files: list[FileDescriptor] = []

        root = await self._fetch_tree(owner, repo, self._ref, recursive=True, listed_any=False)
        if root is None:
            self._log_budget_spent(owner, repo, files)
            return files, self._budget.remaining

        if not root.get("truncated"):
            blobs = [e for e in root["tree"] if e.get("type") == "blob"]
            for entry in sorted(blobs, key=lambda e: _walk_order(e.get("path", ""))):
                self._add_file(files, entry, entry.get("path", ""), allowed)
            return files, self._budget.remaining

        logger.warning(
            "Tree of %s/%s was truncated by the provider; listing it per directory",
            owner,
            repo,
        )
        stack: list[tuple[str, str]] = [("", root.get("sha") or self._ref)]

        while stack:
            prefix, sha = stack.pop()

            tree = await self._fetch_tree(owner, repo, sha, recursive=False, listed_any=True)
            if tree is None:
                self._log_budget_spent(owner, repo, files)
                break
            if tree.get("truncated"):
                logger.warning(
                    "Listing of %s/%s:%s was truncated by the provider; some files are missing",
                    owner,
                    repo,
                    prefix or "/",
                )

            subdirs: list[tuple[str, str]] = []
            for entry in sorted(tree["tree"], key=lambda e: e.get("path", "")):
                entry_path = prefix + entry.get("path", "")
                if entry.get("type") == "tree":
                    subdirs.append((f"{entry_path}/", entry.get("sha", "")))
                elif entry.get("type") == "blob":
                    self._add_file(files, entry, entry_path, allowed)

            stack.extend(reversed(subdirs))

        return files, self._budget.remaining

    async def _fetch_tree(
        self,
        owner: str,
        repo: str,
        tree: str,
        *,
        recursive: bool,
        listed_any: bool,
    ) -> dict | None:
        """Return one tree payload, or None once the walk has to stop early."""
        path = tree_path(owner, repo, tree)
        if recursive:
            path += "?recursive=1"
        response = await self._client.get(path, self._budget)
        if response is None:
            return None

        if is_rate_limited(response):
            if not listed_any:
                raise RateLimitedError(
                    f"Rate limited by provider while listing {owner}/{repo}",
                    retry_after=retry_after(response),
                )
            logger.warning("Provider quota ran out mid-walk of %s/%s", owner, repo)
            self._budget.exhaust()
            return None

        if response.status_code == 404:
            if not listed_any:
                raise NotFoundError(f"Repository not found: {owner}/{repo}")
            logger.debug("Tree %s vanished during walk", tree)
            return {"tree": []}

        if response.status_code == 409:
            # empty repository, nothing committed yet
            return {"tree": []}

        if response.status_code != 200:
            raise ProviderError(
                f"Listing {owner}/{repo} failed with status {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError:
            raise ProviderError(f"Listing {owner}/{repo} is not JSON") from None
        if not isinstance(payload, dict) or not isinstance(payload.get("tree"), list):
            raise ProviderError(f"Expected a git tree for {owner}/{repo}")
        return payload

    @staticmethod
    def _add_file(
        files: list[FileDescriptor],
        entry: dict,
        path: str,
        allowed: frozenset[str] | None,
    ) -> None:
        if entry.get("mode") == _SYMLINK_MODE:
            return
        ext = extension_of(path)
        if allowed is not None and ext not in allowed:
            return
        files.append(
            FileDescriptor(path=path, extension=ext, size_bytes=int(entry.get("size") or 0))
        )

    @staticmethod
    def _log_budget_spent(owner: str, repo: str, files: list[FileDescriptor]) -> None:
        logger.warning(
            "API budget exhausted while listing %s/%s; keeping %d files",
            owner,
            repo,
            len(files),
        )


class RemoteContentLoader:
    """Fetch file contents on demand, one budget unit per file."""

    def __init__(
        self,
        client: GitHubClient,
        budget: ApiBudget,
        owner: str,
        repo: str,
    ) -> None:
        self._client = client
        self._budget = budget
        self._owner = owner
        self._repo = repo

    async def __call__(self, descriptor: FileDescriptor) -> bytes | None:
        if descriptor.content is not None:
            return descriptor.content

        try:
            response = await self._client.get(
                contents_path(self._owner, self._repo, descriptor.path),
                self._budget,
                raw=True,
            )
        except ProviderError as e:
            logger.warning("Skipping %s: %s", descriptor.path, e.message)
            return None
        if response is None:
            logger.debug("No budget left to fetch %s", descriptor.path)
            return None
        if is_rate_limited(response):
            logger.warning("Provider quota ran out while fetching %s", descriptor.path)
            self._budget.exhaust()
            return None
        if response.status_code != 200:
            logger.warning(
                "Fetching %s failed with status %d; skipping",
                descriptor.path,
                response.status_code,
            )
            return None
        return response.content
