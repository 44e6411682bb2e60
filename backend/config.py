"""Centralized configuration: all env vars in one place."""

import os
import re

from dotenv import load_dotenv

load_dotenv()

AI_AUTH_API_KEY = "api_key"
AI_AUTH_MANAGED_IDENTITY = "managed_identity"

# Template values people leave in .env files
_PLACEHOLDER_PATTERNS = [
    re.compile(r"^your[_-].*[_-]here$"),
    re.compile(r"^<.*>$"),
    re.compile(r"^x{3,}$"),
    re.compile(r"^(changeme|change[_-]me|placeholder|todo|none|null)$"),
]


def is_configured(value: str | None) -> bool:
    """True when a setting holds a real value rather than nothing or a template."""
    if value is None:
        return False
    value = value.strip().lower()
    if not value:
        return False
    return not any(p.match(value) for p in _PLACEHOLDER_PATTERNS)


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Datastore (records + cache table)
        self.database_url: str | None = os.getenv("DATABASE_URL")

        # AI endpoint: API key, or Azure managed identity against a Foundry endpoint
        self.openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
        self.openai_base_url: str | None = os.getenv("OPENAI_BASE_URL")
        self.foundry_endpoint: str | None = os.getenv("FOUNDRY_ENDPOINT")
        self.managed_identity_client_id: str | None = os.getenv("MANAGED_IDENTITY_CLIENT_ID")
        self.ai_model: str = os.getenv("AI_MODEL", "gpt-4.1-mini")

        # Third-party integrations
        self.mapbox_token: str | None = os.getenv("MAPBOX_TOKEN")
        self.twitter_bearer: str | None = os.getenv("TWITTER_BEARER")
        self.scraper_enabled: bool = _flag("SCRAPER_ENABLED", True)

        self.http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
        self.cache_ttl_seconds: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
        self.cache_sweep_interval_seconds: int = int(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "3600"))

        # Per-client-IP request limit, in `limits` notation
        self.rate_limit_enabled: bool = _flag("RATE_LIMIT_ENABLED", True)
        self.rate_limit: str = os.getenv("RATE_LIMIT", "100 per 15 minutes")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def ai_auth(self) -> str | None:
        """Which credential the AI client uses, or None when neither is usable."""
        if is_configured(self.openai_api_key):
            return AI_AUTH_API_KEY
        if is_configured(self.foundry_endpoint) and is_configured(self.managed_identity_client_id):
            return AI_AUTH_MANAGED_IDENTITY
        return None

    def validate(self) -> list[str]:
        """Return env vars that are unset; the matching integrations run on mock data."""
        missing = [var for var in _OPTIONAL_VARS if not is_configured(getattr(self, _attr_for(var)))]
        if self.ai_auth is not None:
            missing = [var for var in missing if var not in _AI_VARS]
        return missing


_AI_VARS = {"OPENAI_API_KEY", "FOUNDRY_ENDPOINT", "MANAGED_IDENTITY_CLIENT_ID"}

_OPTIONAL_VARS = [
    "DATABASE_URL",
    "OPENAI_API_KEY",
    "FOUNDRY_ENDPOINT",
    "MANAGED_IDENTITY_CLIENT_ID",
    "MAPBOX_TOKEN",
    "TWITTER_BEARER",
]


def _flag(env_var: str, default: bool) -> bool:
    return os.getenv(env_var, "true" if default else "false").lower() in ("1", "true", "yes")


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    return env_var.lower()


settings = Settings()
