"""Tests for environment-driven configuration."""

import pytest

from grocery_matcher import config as config_module
from grocery_matcher.config import (
    DEFAULT_HEADERS,
    CatalogClientConfig,
    MatcherConfig,
    RetryPolicy,
    merge_headers,
)
from grocery_matcher.exceptions import ConfigurationError


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    """Keep a developer's .env file out of the tests."""
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)


# ── Tests ─────────────────────────────────────────────────────────────────────

class TestMatcherConfig:
    """Test GROCERY_MATCHER_* overrides."""

    def test_defaults(self):
        config = MatcherConfig.from_env()
        assert config.min_confidence == 0.3
        assert config.batch_size == 5
        assert config.enable_translations is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GROCERY_MATCHER_MIN_CONFIDENCE", "0.5")
        monkeypatch.setenv("GROCERY_MATCHER_BATCH_SIZE", "2")
        monkeypatch.setenv("GROCERY_MATCHER_ENABLE_TRANSLATIONS", "no")

        config = MatcherConfig.from_env()

        assert config.min_confidence == 0.5
        assert config.batch_size == 2
        assert config.enable_translations is False

    def test_explicit_overrides_win(self, monkeypatch):
        monkeypatch.setenv("GROCERY_MATCHER_MAX_ALTERNATIVES", "9")
        assert MatcherConfig.from_env(max_alternatives=1).max_alternatives == 1

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("GROCERY_MATCHER_BATCH_SIZE", "many")
        with pytest.raises(ConfigurationError, match="GROCERY_MATCHER_BATCH_SIZE"):
            MatcherConfig.from_env()


class TestCatalogClientConfig:
    """Test <SOURCE>_* overrides."""

    def test_prefix_overrides(self, monkeypatch):
        monkeypatch.setenv("MERCADONA_BASE_URL", "http://localhost:8080/api")
        monkeypatch.setenv("MERCADONA_MIN_INTERVAL", "0")
        monkeypatch.setenv("MERCADONA_MAX_RETRIES", "1")

        config = CatalogClientConfig.from_env(
            "mercadona", base_url="https://tienda.mercadona.es/api", min_interval=3.0
        )

        assert config.base_url == "http://localhost:8080/api"
        assert config.min_interval == 0.0
        assert config.retry.max_retries == 1

    def test_defaults_kept_when_unset(self):
        config = CatalogClientConfig.from_env(
            "dia", base_url="https://www.dia.es", retry=RetryPolicy(base_delay=2.0)
        )
        assert config.base_url == "https://www.dia.es"
        assert config.retry.base_delay == 2.0
        assert config.headers == DEFAULT_HEADERS

    def test_backoff_is_capped(self):
        policy = RetryPolicy(base_delay=2.0, max_delay=5.0)
        assert [policy.backoff(n) for n in range(4)] == [2.0, 4.0, 5.0, 5.0]

    def test_cache_ttl_per_kind(self):
        ttls = CatalogClientConfig(base_url="x").cache_ttls
        assert ttls.for_kind("product") == 24 * 60 * 60
        assert ttls.for_kind("unknown") == ttls.default


def test_merge_headers():
    merged = merge_headers(DEFAULT_HEADERS, {"Referer": "https://www.dia.es/"})
    assert merged["Referer"] == "https://www.dia.es/"
    assert merged["Accept"] == DEFAULT_HEADERS["Accept"]
    assert "Referer" not in DEFAULT_HEADERS
    assert merge_headers(DEFAULT_HEADERS, None) == DEFAULT_HEADERS
