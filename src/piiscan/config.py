"""Global configuration — XDG paths, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from piiscan.errors import ValidationError


def _default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "piiscan"
    return Path.home() / ".local" / "share" / "piiscan"


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "piiscan"
    return Path.home() / ".config" / "piiscan"


def _env_number(name: str, cast):
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class PiiScanConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)
    config_dir: Path = field(default_factory=_default_config_dir)
    github_token: str = ""
    api_url: str = "https://api.github.com"
    api_budget: int = 5000
    fetch_concurrency: int = 8
    request_timeout: float = 30.0
    scan_timeout: float | None = None
    web_host: str = "127.0.0.1"
    web_port: int = 3000
    verbose: bool = False

    @property
    def patterns_file(self) -> Path:
        return self.config_dir / "patterns.yaml"

    @classmethod
    def load(cls) -> PiiScanConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        config.github_token = os.environ.get(
            "PIISCAN_GITHUB_TOKEN", os.environ.get("GITHUB_TOKEN", "")
        )

        api_url = os.environ.get("PIISCAN_API_URL")
        if api_url:
            config.api_url = api_url.rstrip("/")

        budget = _env_number("PIISCAN_API_BUDGET", int)
        if budget is not None:
            if budget < 0:
                raise ValidationError("PIISCAN_API_BUDGET must not be negative")
            config.api_budget = budget

        concurrency = _env_number("PIISCAN_FETCH_CONCURRENCY", int)
        if concurrency is not None:
            config.fetch_concurrency = max(1, concurrency)

        request_timeout = _env_number("PIISCAN_REQUEST_TIMEOUT", float)
        if request_timeout is not None:
            config.request_timeout = request_timeout

        scan_timeout = _env_number("PIISCAN_SCAN_TIMEOUT", float)
        if scan_timeout is not None:
            config.scan_timeout = scan_timeout

        port = _env_number("PIISCAN_WEB_PORT", int)
        if port is not None:
            config.web_port = port

        return config
