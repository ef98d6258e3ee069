"""Tests for ranking, match building and match explanations."""

import pytest
from pydantic import ValidationError

from grocery_matcher.config import MatcherConfig
from grocery_matcher.matching.aggregator import NOT_FOUND_REASON, MatchAggregator, explain_match
from grocery_matcher.models import ProductMatch, ScoredCandidate


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def aggregator():
    return MatchAggregator()


def scored(product, score, strategy="exact"):
    return ScoredCandidate(
        product=product,
        name_similarity=1.0,
        category_match=1.0,
        price_efficiency=0.8,
        score=score,
        strategy=strategy,
        explanation="Exact name match",
    )


# ── Tests ─────────────────────────────────────────────────────────────────────

class TestRank:
    """Test candidate ranking."""

    def test_sorted_by_score_descending(self, aggregator, make_product):
        a, b, c = make_product("A"), make_product("B"), make_product("C")
        ranked = aggregator.rank([scored(a, 0.5), scored(b, 0.9), scored(c, 0.7)])
        assert [r.product.name for r in ranked] == ["B", "C", "A"]

    def test_low_confidence_dropped(self, aggregator, make_product):
        ranked = aggregator.rank([scored(make_product("A"), 0.29), scored(make_product("B"), 0.3)])
        assert [r.product.name for r in ranked] == ["B"]

    def test_best_score_per_product(self, aggregator, make_product):
        product = make_product("A")
        ranked = aggregator.rank([scored(product, 0.4), scored(product, 0.8)])
        assert len(ranked) == 1
        assert ranked[0].score == 0.8

    def test_ties_keep_discovery_order(self, aggregator, make_product):
        products = [make_product(n) for n in "XYZ"]
        ranked = aggregator.rank([scored(p, 0.6) for p in products])
        assert [r.product.name for r in ranked] == ["X", "Y", "Z"]


class TestMatchType:
    @pytest.mark.parametrize("score,strategy,expected", [
        (0.95, "exact", "exact"),
        (0.95, "translation", "similar"),
        (0.7, "exact", "similar"),
        (0.5, "keyword", "substitute"),
        (0.35, "category", "partial"),
    ])
    def test_thresholds(self, make_product, score, strategy, expected):
        candidate = scored(make_product("A"), score, strategy)
        assert MatchAggregator.determine_match_type(candidate) == expected


class TestBuildMatch:
    """Test ProductMatch construction."""

    def test_primary_and_cost(self, aggregator, make_product):
        rice = make_product("Arroz redondo", price_cents=135, package_value=1, package_unit="kg")
        match = aggregator.build_match("rice", 2000, "g", [scored(rice, 0.9)])
        assert match.product == rice
        assert match.quantity_to_buy == 2
        assert match.total_cost_cents == 270
        assert match.match_type == "exact"
        assert match.id.startswith("match-")

    def test_unit_spelling_is_normalized(self, aggregator, make_product):
        match = aggregator.build_match("milk", 1, "litros", [scored(make_product("Leche"), 0.9)])
        assert match.unit_needed == "l"

    def test_alternatives(self, aggregator, make_product):
        primary = make_product("Leche A", price_cents=100)
        cheaper = make_product("Leche B", price_cents=80)
        organic = make_product("Leche C", price_cents=120, is_organic=True)
        promo = make_product("Leche D", price_cents=130, promotion="3x2")
        store = make_product("Leche E", price_cents=140, is_store_brand=True)
        other = make_product("Leche F", price_cents=150)
        ranked = [
            scored(primary, 0.9), scored(cheaper, 0.8), scored(organic, 0.7),
            scored(promo, 0.6), scored(store, 0.5), scored(other, 0.4),
        ]
        match = aggregator.build_match("milk", 1, "l", ranked)
        reasons = [a.reason for a in match.alternatives]
        assert reasons == [
            "Cheaper option (save €0.20)",
            "Organic option",
            "On promotion: 3x2",
            "Store brand - good value",
            "Alternative brand",
        ]
        assert [a.price_difference_cents for a in match.alternatives] == [-20, 20, 30, 40, 50]

    def test_alternatives_are_capped(self, make_product):
        aggregator = MatchAggregator(MatcherConfig(max_alternatives=2))
        ranked = [scored(make_product(f"P{i}"), 0.9 - i * 0.05) for i in range(6)]
        match = aggregator.build_match("x", 1, "piece", ranked)
        assert len(match.alternatives) == 2

    def test_organic_reason_needs_non_organic_primary(self, aggregator, make_product):
        primary = make_product("Eco A", price_cents=100, is_organic=True)
        alternative = make_product("Eco B", price_cents=100, is_organic=True)
        match = aggregator.build_match("x", 1, "piece", [scored(primary, 0.9), scored(alternative, 0.8)])
        assert match.alternatives[0].reason == "Alternative brand"

    def test_empty_ranking_is_not_found(self, aggregator):
        match = aggregator.build_match("unobtainium", 1, "piece", [])
        assert match.match_type == "not_found"


class TestNotFound:
    def test_placeholder(self, aggregator):
        match = aggregator.not_found_match("unobtainium", 2, "kg")
        assert match.confidence == 0
        assert match.quantity_to_buy == 0
        assert match.total_cost_cents == 0
        assert match.alternatives == []
        assert match.product.id == "not-found"
        assert match.match_reason == NOT_FOUND_REASON


class TestProductMatchInvariants:
    """The model itself rejects inconsistent matches."""

    def test_cost_must_match_packages(self, aggregator, make_product):
        match = aggregator.build_match("x", 1, "piece", [scored(make_product("A", price_cents=100), 0.9)])
        with pytest.raises(ValidationError):
            ProductMatch(**{**match.model_dump(), "total_cost_cents": 1})

    def test_zero_packages_only_for_not_found(self, aggregator, make_product):
        match = aggregator.build_match("x", 1, "piece", [scored(make_product("A"), 0.9)])
        with pytest.raises(ValidationError):
            ProductMatch(**{**match.model_dump(), "quantity_to_buy": 0, "total_cost_cents": 0})


class TestExplainMatch:
    """Test human readable explanations."""

    def test_not_found(self, aggregator):
        text = explain_match(aggregator.not_found_match("unobtainium", 1, "piece"))
        assert text == (
            'Could not find a product matching "unobtainium". '
            "You may need to find this item manually or try a different supermarket."
        )

    def test_exact_single_package(self, aggregator, make_product):
        product = make_product("Pechuga de pollo", package_value=500, package_unit="g")
        match = aggregator.build_match("pollo", 400, "g", [scored(product, 0.96)])
        assert explain_match(match) == (
            'Matched "pollo" to "Pechuga de pollo" with 96% confidence. '
            "This is an excellent match for your ingredient. "
            "One package of 500 g should be sufficient."
        )

    def test_several_packages_promotion_and_cheaper_alternative(self, aggregator, make_product):
        primary = make_product(
            "Arroz redondo", price_cents=150, package_value=1, package_unit="kg", promotion="2x1"
        )
        cheaper = make_product("Arroz largo", price_cents=99)
        match = aggregator.build_match(
            "rice", 2, "kg", [scored(primary, 0.65, "translation"), scored(cheaper, 0.5)]
        )
        assert explain_match(match) == (
            'Matched "rice" to "Arroz redondo" with 65% confidence. '
            "This is a similar product from a different brand or size. "
            "You'll need 2 packages (1 kg each). "
            "Currently on promotion: 2x1. "
            "Cheaper alternative available (save 0.51)."
        )

    def test_substitute_sentence(self, aggregator, make_product):
        match = aggregator.build_match("x", 1, "piece", [scored(make_product("A"), 0.45, "keyword")])
        assert "substitute product" in explain_match(match)

    def test_partial_has_no_type_sentence(self, aggregator, make_product):
        match = aggregator.build_match("x", 1, "piece", [scored(make_product("A"), 0.35, "keyword")])
        text = explain_match(match)
        assert text.startswith('Matched "x" to "A" with 35% confidence. One package')
