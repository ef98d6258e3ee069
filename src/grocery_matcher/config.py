"""
Configuration for the matcher and the catalog clients.

Defaults live on pydantic models; a .env file or the process environment
can override them (GROCERY_MATCHER_* for matching, <SOURCE>_* per catalog).
"""

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "application/json",
    "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
}


def _env_value(name: str, cast: type, default: Any) -> Any:
    """Read and cast an environment variable, keeping the default when unset."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        if cast is bool:
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e


class MatcherConfig(BaseModel):
    """Tunable thresholds and weights of the matching engine."""

    min_confidence: float = Field(default=0.3, ge=0, le=1)
    max_alternatives: int = Field(default=5, ge=0)
    name_weight: float = Field(default=0.5, ge=0)
    category_weight: float = Field(default=0.3, ge=0)
    price_weight: float = Field(default=0.2, ge=0)
    fuzzy_match_threshold: float = Field(default=0.7, ge=0, le=1)
    translation_similarity_threshold: float = Field(default=0.6, ge=0, le=1)
    keyword_similarity_threshold: float = Field(default=0.7, ge=0, le=1)
    max_search_results: int = Field(default=30, ge=1)
    batch_size: int = Field(default=5, ge=1)
    enable_translations: bool = True

    @classmethod
    def from_env(cls, **overrides: Any) -> "MatcherConfig":
        """Build a config from GROCERY_MATCHER_* environment variables."""
        load_dotenv()
        values: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            cast = field.annotation if field.annotation in (int, float, bool) else str
            values[name] = _env_value(f"GROCERY_MATCHER_{name.upper()}", cast, field.default)
        values.update(overrides)
        return cls(**values)


class RetryPolicy(BaseModel):
    """Retry schedule for catalog requests."""

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0, description="Seconds, doubled per attempt")
    max_delay: float = Field(default=10.0, ge=0, description="Cap on a single backoff")
    rate_limit_fallback: float = Field(
        default=5.0, ge=0, description="Wait after HTTP 429 without a usable Retry-After"
    )

    def backoff(self, attempt: int) -> float:
        """Exponential delay before retry number ``attempt`` (0-based), capped."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)


class CacheTTLs(BaseModel):
    """Time-to-live per cached operation kind, in seconds."""

    default: float = 60 * 60
    search: float = 60 * 60
    product: float = 24 * 60 * 60
    category: float = 7 * 24 * 60 * 60

    def for_kind(self, kind: str) -> float:
        return getattr(self, kind, self.default)


class CatalogClientConfig(BaseModel):
    """Connection settings for one upstream catalog."""

    base_url: str
    min_interval: float = Field(default=1.0, ge=0, description="Seconds between requests")
    timeout: float = Field(default=30.0, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    headers: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))
    cache_ttls: CacheTTLs = Field(default_factory=CacheTTLs)

    @classmethod
    def from_env(cls, prefix: str, **defaults: Any) -> "CatalogClientConfig":
        """
        Build a catalog config, letting <PREFIX>_* environment variables
        override the given defaults.

        Args:
            prefix: Environment prefix, e.g. "MERCADONA".
            **defaults: Field values used when the variable is unset.

        Returns:
            The resolved CatalogClientConfig.
        """
        load_dotenv()
        config = cls(**defaults)
        prefix = prefix.upper()
        retry = config.retry.model_copy(
            update={
                "max_retries": _env_value(
                    f"{prefix}_MAX_RETRIES", int, config.retry.max_retries
                ),
            }
        )
        resolved = config.model_copy(
            update={
                "base_url": _env_value(f"{prefix}_BASE_URL", str, config.base_url),
                "min_interval": _env_value(f"{prefix}_MIN_INTERVAL", float, config.min_interval),
                "timeout": _env_value(f"{prefix}_TIMEOUT", float, config.timeout),
                "retry": retry,
            }
        )
        logger.debug(
            f"{prefix} catalog config: {resolved.base_url} "
            f"(interval {resolved.min_interval}s, timeout {resolved.timeout}s)"
        )
        return resolved


def merge_headers(base: Dict[str, str], extra: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Return base headers updated with extra ones."""
    merged = dict(base)
    if extra:
        merged.update(extra)
    return merged
