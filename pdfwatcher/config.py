"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from .extractor import DEFAULT_SELECTOR

DEFAULT_ALLOWED_ORIGINS = ["http://localhost:8000", "http://localhost:3000"]


@dataclass
class ScraperConfig:
    """Remote page and polling configuration."""
    target_url: Optional[str]
    username: Optional[str] = None
    password: Optional[str] = None
    interval_seconds: int = 3600
    timeout_seconds: int = 60
    selector: str = DEFAULT_SELECTOR
    snapshot_file: Optional[Path] = None

    @property
    def auth(self) -> Optional[tuple]:
        """Basic-auth pair, only when both halves are set."""
        if self.username and self.password:
            return (self.username, self.password)
        return None


@dataclass
class ServerConfig:
    """HTTP API configuration."""
    port: int = 3000
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))


@dataclass
class ClientConfig:
    """Fetch-and-cache client configuration."""
    api_base_url: str = "http://localhost:3000"
    db_path: Optional[Path] = None
    timeout_seconds: int = 30


@dataclass
class AppConfig:
    """Complete application configuration."""
    scraper: ScraperConfig
    server: ServerConfig
    client: ClientConfig


def _parse_list_env(key: str, default: List[str]) -> List[str]:
    """Parse comma-separated list from environment variable."""
    value = os.getenv(key, "")
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_int_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}")


def _parse_path_env(key: str) -> Optional[Path]:
    value = os.getenv(key)
    return Path(value).expanduser() if value else None


def load_config() -> AppConfig:
    """
    Load configuration from environment variables (and a .env file if present).

    Raises:
        ValueError: If a numeric setting is not an integer.
    """
    load_dotenv(find_dotenv(usecwd=True))

    scraper = ScraperConfig(
        target_url=os.getenv("TARGET_URL") or None,
        username=os.getenv("LOGIN_USERNAME") or None,
        password=os.getenv("LOGIN_PASSWORD") or None,
        interval_seconds=_parse_int_env("SCRAPING_INTERVAL", 3600),
        timeout_seconds=_parse_int_env("SCRAPING_TIMEOUT", 60),
        selector=os.getenv("CONTAINER_SELECTOR") or DEFAULT_SELECTOR,
        snapshot_file=_parse_path_env("SNAPSHOT_FILE"),
    )

    server = ServerConfig(
        port=_parse_int_env("PORT", 3000),
        allowed_origins=_parse_list_env("ALLOWED_ORIGINS", list(DEFAULT_ALLOWED_ORIGINS)),
    )

    client = ClientConfig(
        api_base_url=os.getenv("API_BASE_URL") or "http://localhost:3000",
        db_path=_parse_path_env("PDFWATCHER_DB"),
        timeout_seconds=_parse_int_env("API_TIMEOUT", 30),
    )

    return AppConfig(scraper=scraper, server=server, client=client)
