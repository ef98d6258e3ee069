"""Tests for the command-line interface."""

from typing import get_args

import pytest

from grocery_matcher import cli
from grocery_matcher import config as config_module
from grocery_matcher.catalog import DiaCatalog, MercadonaCatalog
from grocery_matcher.exceptions import ConfigurationError
from grocery_matcher.models import HealthStatus


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def fake_mercadona(monkeypatch, fake_catalog_factory, make_product):
    """Route the 'mercadona' source to an in-memory catalog."""
    catalog = fake_catalog_factory(
        [make_product("Pechuga de pollo", category="meat")], source_id="mercadona"
    )
    monkeypatch.setitem(cli.SOURCE_FACTORIES, "mercadona", lambda: catalog)
    return catalog


# ── Tests ─────────────────────────────────────────────────────────────────────

class TestBuildRegistry:
    @pytest.mark.asyncio
    async def test_known_sources(self):
        registry = cli.build_registry(["mercadona", "dia", "mercadona"])
        try:
            assert registry.source_ids == ["mercadona", "dia"]
            assert isinstance(registry.get("mercadona"), MercadonaCatalog)
            assert isinstance(registry.get("dia"), DiaCatalog)
        finally:
            await registry.aclose()

    def test_unknown_source(self):
        with pytest.raises(ConfigurationError, match="carrefour"):
            cli.build_registry(["carrefour"])


class TestMain:
    """Run the CLI end to end against an in-memory catalog."""

    def test_match(self, fake_mercadona, capsys):
        assert cli.main(["match", "pollo", "--quantity", "2", "--unit", "kg"]) == 0
        assert fake_mercadona.queries[0] == "pollo"
        assert fake_mercadona.closed
        assert "Total" in capsys.readouterr().out

    def test_health(self, fake_mercadona, capsys):
        assert cli.main(["health", "-s", "mercadona"]) == 0
        assert "active" in capsys.readouterr().out
        assert fake_mercadona.closed

    def test_invalid_config(self, fake_mercadona, monkeypatch):
        monkeypatch.setenv("GROCERY_MATCHER_BATCH_SIZE", "many")
        assert cli.main(["match", "pollo"]) == 1

    def test_unknown_source_is_rejected_by_argparse(self):
        with pytest.raises(SystemExit):
            cli.main(["match", "pollo", "-s", "carrefour"])


def test_health_styles_cover_every_status():
    assert set(cli._HEALTH_STYLES) == set(get_args(HealthStatus))
