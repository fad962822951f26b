# app/config.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# app/config.py -> parent = project root
PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILE = PROJECT_ROOT / ".env"
load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "0.1.0"
    FEEDS_CONFIG_PATH: Path = PROJECT_ROOT / "configs" / "feeds.yml"
    DEFAULT_WINDOW_DAYS: int = 7

    # ---- Summary cache (flat JSON document) ----
    SUMMARY_CACHE_PATH: Path = PROJECT_ROOT / "data" / "summaries.json"

    # ---- Upstream fetching ----
    UPSTREAM_TIMEOUT_S: float = 30.0
    # Navy hosts regularly serve incomplete certificate chains.
    UPSTREAM_VERIFY_TLS: bool = False
    PROXY_ALLOWED_DOMAINS: List[str] = [
        "mynavyhr.navy.mil",
        "secnav.navy.mil",
        "navy.mil",
        "marines.mil",
        "esd.whs.mil",
        "comptroller.war.gov",
    ]

    # ---- CORS ----
    CORS_ALLOWED_ORIGINS: List[str] = [
        "https://semperadmin.github.io",
        "http://localhost:8000",
    ]

    # ---- Gemini ----
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_TIMEOUT_S: float = 60.0

    # ---- Social ----
    YOUTUBE_API_KEY: Optional[str] = None
    YOUTUBE_CHANNEL_ID: Optional[str] = None
    FACEBOOK_ACCESS_TOKEN: Optional[str] = None
    FACEBOOK_PAGE_ID: Optional[str] = None

    # ---- Feedback (GitHub issues) ----
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_REPO: Optional[str] = None
    FEEDBACK_TIMEOUT_S: float = 15.0

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


def require_gemini() -> str:
    """
    Runtime check with a clear message when the Gemini key is missing.
    """
    if not settings.GEMINI_API_KEY:
        raise RuntimeError(
            "AI summaries are unavailable: GEMINI_API_KEY is not configured "
            f"(looked in environment and {ENV_FILE})."
        )
    return settings.GEMINI_API_KEY


def require_youtube() -> tuple[str, str]:
    if not settings.YOUTUBE_API_KEY or not settings.YOUTUBE_CHANNEL_ID:
        raise RuntimeError(
            "YouTube passthrough is unavailable: YOUTUBE_API_KEY and "
            "YOUTUBE_CHANNEL_ID must both be configured."
        )
    return settings.YOUTUBE_API_KEY, settings.YOUTUBE_CHANNEL_ID


def require_facebook() -> tuple[str, str]:
    if not settings.FACEBOOK_ACCESS_TOKEN or not settings.FACEBOOK_PAGE_ID:
        raise RuntimeError(
            "Facebook passthrough is unavailable: FACEBOOK_ACCESS_TOKEN and "
            "FACEBOOK_PAGE_ID must both be configured."
        )
    return settings.FACEBOOK_ACCESS_TOKEN, settings.FACEBOOK_PAGE_ID


def require_github() -> tuple[str, str]:
    """
    Feedback issues need both a token and an `owner/repo` target.
    """
    if not settings.GITHUB_TOKEN or not settings.GITHUB_REPO:
        raise RuntimeError(
            "Feedback is unavailable: GITHUB_TOKEN and GITHUB_REPO must both be configured."
        )
    return settings.GITHUB_TOKEN, settings.GITHUB_REPO
