"""End-to-end matching scenarios against in-memory catalogs."""

import asyncio
from unittest.mock import patch

import pytest

from grocery_matcher.catalog.registry import CatalogRegistry
from grocery_matcher.config import MatcherConfig
from grocery_matcher.exceptions import ConfigurationError
from grocery_matcher.matching.matcher import ProductMatcher
from grocery_matcher.models import GroceryItem


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def grocery_products(make_product):
    return [
        make_product("Pechuga de pollo", price_cents=450, category="meat",
                     package_value=500, package_unit="g"),
        make_product("Tomate Natural", price_cents=120, category="produce",
                     package_value=1, package_unit="kg"),
        make_product("Arroz redondo", price_cents=135, category="dry_goods",
                     package_value=1, package_unit="kg"),
    ]


@pytest.fixture
def exploding_catalog(grocery_products, fake_catalog_factory):
    """Catalog whose search fails with a non-catalog error for one query."""

    class ExplodingCatalog(fake_catalog_factory):
        async def search_products(self, criteria):
            if criteria.query == "boom":
                raise RuntimeError("parser exploded")
            return await super().search_products(criteria)

    return ExplodingCatalog(grocery_products)


@pytest.fixture
def matcher(grocery_products, fake_catalog_factory):
    registry = CatalogRegistry([fake_catalog_factory(grocery_products)])
    return ProductMatcher(registry)


# ── Tests ─────────────────────────────────────────────────────────────────────

class TestFindMatches:
    """Single ingredient scenarios."""

    @pytest.mark.asyncio
    async def test_spanish_name_is_exact(self, matcher):
        [match] = await matcher.find_matches("pollo", 1, "piece", "fake")
        assert match.product.name == "Pechuga de pollo"
        assert match.match_type == "exact"
        assert match.confidence >= 0.8

    @pytest.mark.asyncio
    async def test_english_name_is_translated(self, matcher):
        [match] = await matcher.find_matches("tomato", 1, "kg", "fake")
        assert match.product.name == "Tomate Natural"
        assert match.match_type == "similar"
        assert match.confidence == pytest.approx(0.91)

    @pytest.mark.asyncio
    async def test_quantity_drives_package_count(self, matcher):
        [match] = await matcher.find_matches("rice", 2000, "g", "fake")
        assert match.product.name == "Arroz redondo"
        assert match.quantity_to_buy == 2
        assert match.total_cost_cents == 270

    @pytest.mark.asyncio
    async def test_nothing_found(self, matcher):
        [match] = await matcher.find_matches("unobtainium", 1, "piece", "fake")
        assert match.match_type == "not_found"
        assert match.confidence == 0

    @pytest.mark.asyncio
    async def test_unknown_source(self, matcher):
        with pytest.raises(ConfigurationError):
            await matcher.find_matches("pollo", 1, "piece", "carrefour")

    @pytest.mark.asyncio
    async def test_advanced_result(self, matcher):
        result = await matcher.find_matches_advanced("2 large tomatoes, diced", "fake")
        assert result.normalized_ingredient == "tomatoes"
        assert result.search_terms_tried[0] == "tomatoes"
        assert result.matches
        assert result.confidence == result.matches[0].score
        assert result.strategy == result.matches[0].strategy
        scores = [m.score for m in result.matches]
        assert scores == sorted(scores, reverse=True)
        assert result.match_time_ms >= 0

    def test_explain_match_delegates(self, matcher):
        match = matcher.aggregator.not_found_match("unobtainium", 1, "piece")
        assert matcher.explain_match(match).startswith('Could not find a product matching "unobtainium"')


class TestMatchGroceryList:
    """Batch matching."""

    @pytest.mark.asyncio
    async def test_order_and_selection(self, matcher):
        items = [
            GroceryItem(ingredient_name="pollo", needed_quantity=1, needed_unit="kg"),
            GroceryItem(ingredient_name="rice", needed_quantity=500, needed_unit="gramos"),
            GroceryItem(ingredient_name="unobtainium"),
        ]
        matched = await matcher.match_grocery_list(items, "fake")

        assert [i.ingredient_name for i in matched] == ["pollo", "rice", "unobtainium"]
        assert all(i.selected_match == i.matches[0] for i in matched)
        assert matched[0].selected_match.quantity_to_buy == 2
        assert matched[2].selected_match.match_type == "not_found"
        assert items[0].matches == []
        assert items[0].selected_match is None

    @pytest.mark.asyncio
    async def test_failing_item_becomes_not_found(self, exploding_catalog):
        matcher = ProductMatcher(CatalogRegistry([exploding_catalog]))
        items = [GroceryItem(ingredient_name="pollo"), GroceryItem(ingredient_name="boom")]

        matched = await matcher.match_grocery_list(items, "fake")

        assert matched[0].selected_match.match_type == "exact"
        assert matched[1].selected_match.match_type == "not_found"

    @pytest.mark.asyncio
    async def test_items_are_processed_in_batches(self, grocery_products, fake_catalog_factory):
        matcher = ProductMatcher(
            CatalogRegistry([fake_catalog_factory(grocery_products)]), MatcherConfig(batch_size=2)
        )
        in_flight = 0
        peak = 0

        async def fake_find_matches(name, quantity, unit, source_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return [matcher.aggregator.not_found_match(name, quantity, unit)]

        items = [GroceryItem(ingredient_name=f"item {i}") for i in range(5)]
        with patch.object(matcher, "find_matches", new=fake_find_matches):
            matched = await matcher.match_grocery_list(items, "fake")

        assert len(matched) == 5
        assert peak == 2

    @pytest.mark.asyncio
    async def test_unknown_source_fails_fast(self, matcher):
        with pytest.raises(ConfigurationError):
            await matcher.match_grocery_list([GroceryItem(ingredient_name="pollo")], "carrefour")

    @pytest.mark.asyncio
    async def test_multiple_sources_skip_unregistered(self, grocery_products, fake_catalog_factory):
        registry = CatalogRegistry([
            fake_catalog_factory(grocery_products, source_id="mercadona"),
            fake_catalog_factory(source_id="dia"),
        ])
        matcher = ProductMatcher(registry)
        items = [GroceryItem(ingredient_name="pollo")]

        results = await matcher.match_grocery_list_multiple(items, ["mercadona", "carrefour", "dia"])

        assert list(results) == ["mercadona", "dia"]
        assert results["mercadona"][0].selected_match.match_type == "exact"
        assert results["dia"][0].selected_match.match_type == "not_found"


class TestNoFalsePositives:
    """Products that must never be offered."""

    @pytest.mark.asyncio
    async def test_unrecognised_ingredient_is_not_found(self, fake_catalog_factory, make_product):
        catalog = fake_catalog_factory(categories={
            "otros": [make_product("Bolsa de basura")],
            "varios": [make_product("Pilas alcalinas")],
        })
        matcher = ProductMatcher(CatalogRegistry([catalog]))

        [match] = await matcher.find_matches("xyzzy", 1, "piece", "fake")

        assert match.match_type == "not_found"
        assert catalog.category_requests == []

    @pytest.mark.asyncio
    async def test_out_of_stock_product_is_not_offered(self, fake_catalog_factory, make_product):
        catalog = fake_catalog_factory([make_product("Tomate rama", in_stock=False)])
        matcher = ProductMatcher(CatalogRegistry([catalog]))

        [match] = await matcher.find_matches("tomate", 1, "kg", "fake")

        assert match.match_type == "not_found"
        assert match.quantity_to_buy == 0
