import math

import pytest

from launchfast.constants.grades import GRADE_LADDER, GRADE_THRESHOLDS, GRADE_VISUALS
from launchfast.models.product import AIAnalysis, KeywordData, ProductData, SalesPrediction, ScoringInputs
from launchfast.services.scoring_service import (
    adjust_grade,
    calculate_grade,
    compare_grades,
    filter_products_by_grade,
    get_base_grade,
    get_grade_description,
    get_grade_filter_options,
    get_grade_visual,
    is_grade_equal_or_better,
    score_apify_product,
    score_product,
    sort_products_by_score,
)


def _inputs(**overrides):
    values = dict(
        monthly_profit=5000,
        price=40.0,
        margin=0.32,
        reviews=120,
        avg_cpc=1.20,
        risk_classification="No Risk",
        consistency_rating="Consistent",
        ppu=0.15,
        bsr=25000,
        rating=4.3,
        opportunity_score=6,
    )
    values.update(overrides)
    return ScoringInputs(**values)


@pytest.mark.parametrize(
    "profit, grade",
    [(150000, "A10"), (100000, "A10"), (99999, "A9"), (12000, "A1"), (11999, "B10"),
     (300, "C1"), (50, "D1"), (49.99, "F1"), (0, "F1"), (-500, "F1")],
)
def test_base_grade_thresholds(profit, grade):
    assert get_base_grade(profit) == grade


def test_adjust_grade_clamps_to_ladder():
    assert adjust_grade("A9", 5) == "A10"
    assert adjust_grade("D2", -10) == "F1"
    assert adjust_grade("B5", 2) == "B7"
    assert adjust_grade("Z1", 1) == "Z1"


def test_neutral_product_keeps_base_grade():
    # -1 for 120 reviews, +1 for 32% margin
    result = calculate_grade(_inputs())

    assert result.breakdown.base_grade == "B6"
    assert result.breakdown.penalty_points == 1
    assert result.breakdown.boost_points == 1
    assert result.grade == "B6"
    assert result.score == GRADE_THRESHOLDS["B6"]


def test_penalties_stack():
    result = calculate_grade(_inputs(
        reviews=800, avg_cpc=3.0, risk_classification="Medical", margin=0.18, bsr=250000, rating=3.6
    ))

    # 9 reviews + 3 cpc + 6 medical + 3 + 3 margin + 2 bsr + 3 rating
    assert result.breakdown.penalty_points == 29
    assert result.grade == "F1"
    assert result.score == GRADE_THRESHOLDS["F1"] - 29 * 1000


def test_boosts_stack():
    result = calculate_grade(_inputs(
        monthly_profit=3000, avg_cpc=0.3, margin=0.5, ppu=0.25, reviews=5, opportunity_score=9, bsr=4000
    ))

    # 2 cpc + 4 margin/ppu + 2 reviews + 2 opportunity + 1 bsr
    assert result.breakdown.boost_points == 11
    assert result.breakdown.penalty_points == 0
    assert result.grade == adjust_grade("B3", 11)


@pytest.mark.parametrize(
    "overrides, grade, disqualifier",
    [
        ({"price": 19.99}, "D1", "Price below $25"),
        ({"margin": 0.10}, "D1", "Margin below 15%"),
        ({"risk_classification": "Banned"}, "F1", "Prohibited Product"),
        ({"risk_classification": "Prohibited"}, "F1", "Prohibited Product"),
        ({"consistency_rating": "Trendy"}, "F1", "Risky Consistency Pattern"),
        ({"consistency_rating": "Low", "price": 10}, "F1", "Risky Consistency Pattern"),
    ],
)
def test_disqualifiers(overrides, grade, disqualifier):
    result = calculate_grade(_inputs(monthly_profit=80000, **overrides))

    assert result.grade == grade
    assert result.score == 0
    assert disqualifier in result.breakdown.disqualifiers


def test_a10_requires_every_gate_condition():
    golden = dict(monthly_profit=120000, reviews=10, avg_cpc=0.4, margin=0.55, ppu=0.25, bsr=3000, rating=4.7)

    assert calculate_grade(_inputs(**golden)).grade == "A10"
    for broken in ({"reviews": 60}, {"avg_cpc": 0.6}, {"avg_cpc": None}, {"margin": 0.48}, {"ppu": 0.1}):
        result = calculate_grade(_inputs(**{**golden, **broken}))
        assert result.grade == "A9", broken


def test_boosted_grade_without_a10_profit_stops_at_a9():
    result = calculate_grade(_inputs(
        monthly_profit=74000, reviews=5, avg_cpc=0.3, margin=0.6, ppu=0.3, bsr=2000, opportunity_score=9
    ))

    assert result.grade == "A9"
    assert any(detail.startswith("A10 gate applied") for detail in result.breakdown.details)


def test_empty_keywords_give_defined_result_without_nan():
    result = score_product(
        ProductData(asin="B000TEST01", price=45.0, reviews=30, rating=4.4, bsr=8000),
        SalesPrediction(monthly_profit=9000, margin=0.4, ppu=0.22),
        AIAnalysis(),
        [],
    )

    assert result.inputs.avg_cpc is None
    assert result.grade in GRADE_LADDER
    assert math.isfinite(result.score)
    assert not any("nan" in detail.lower() for detail in result.breakdown.details)
    assert not any("CPC" in detail for detail in result.breakdown.details)


def test_non_finite_inputs_are_treated_as_missing():
    result = score_product(
        ProductData(asin="B000TEST02", price=float("nan"), reviews=float("inf"), bsr=float("nan")),
        SalesPrediction(monthly_profit=float("nan"), margin=float("inf")),
        AIAnalysis(opportunityScore=float("nan")),
        [KeywordData(keyword="x", cpc=float("nan"))],
    )

    assert result.inputs.avg_cpc is None
    assert result.inputs.bsr is None
    assert result.inputs.monthly_profit == 0
    assert math.isfinite(result.score)


def test_keyword_cpc_average_ignores_missing_values():
    result = score_product(
        ProductData(asin="B000TEST03", price=40),
        SalesPrediction(monthlyProfit=5000, margin=0.3),
        None,
        [KeywordData(keyword="a", cpc=0.4), KeywordData(keyword="b", cpc=None), KeywordData(keyword="c", cpc=0.8)],
    )

    assert result.inputs.avg_cpc == pytest.approx(0.6)


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"reviews": 900, "avg_cpc": 3.0, "rating": 3.2},
        {"reviews": 5, "avg_cpc": 0.2, "margin": 0.6, "ppu": 0.3, "bsr": 500},
        {"avg_cpc": None},
        {"price": 10},
    ],
)
def test_score_never_decreases_with_profit(overrides):
    profits = [0, 49, 50, 299, 300, 2000, 9999, 10000, 40000, 73999, 74000, 99999, 100000, 250000]
    scores = [calculate_grade(_inputs(monthly_profit=p, **overrides)).score for p in profits]

    assert scores == sorted(scores)


def test_preliminary_score():
    strong = score_apify_product(
        ProductData(asin="B1", title="Heavy Duty Truck Flag Mount", price=55, reviews=12, rating=4.6,
                    category="Automotive > Exterior Accessories"),
        search_keyword="truck flag",
    )
    weak = score_apify_product(
        ProductData(asin="B2", title="USB Charger", price=12, reviews=2000, rating=3.1, category="Electronics"),
    )

    assert strong.score == 100
    assert strong.estimated_grade == "A1-A5"
    assert "Highly relevant product title (+15 pts)" in strong.reasoning
    assert weak.score == 0
    assert weak.estimated_grade == "F1"


def test_preliminary_title_relevance_needs_every_term():
    product = ProductData(asin="B3", title="Garden Flag Stand", price=30, reviews=100, rating=4.2)

    assert score_apify_product(product, "truck flag").score == score_apify_product(product).score


def test_compare_grades():
    assert compare_grades("A10", "A9") < 0
    assert compare_grades("F1", "D1") > 0
    assert compare_grades("B3", "B3") == 0
    assert compare_grades("bogus", "F1") > 0
    assert compare_grades("F1", None) < 0
    assert compare_grades("x", "y") == 0


def test_is_grade_equal_or_better():
    assert is_grade_equal_or_better("A1", "B10") is True
    assert is_grade_equal_or_better("B10", "B10") is True
    assert is_grade_equal_or_better("C1", "B10") is False
    assert is_grade_equal_or_better(None, "F1") is False


def test_filter_and_sort_products():
    products = [
        {"asin": "1", "grade": "C4", "score": 600},
        {"asin": "2", "grade": "A3", "score": 20000},
        {"asin": "3", "grade": None, "score": None},
        {"asin": "4", "grade": "B9", "score": 8500},
    ]

    assert [p["asin"] for p in filter_products_by_grade(products, "B10")] == ["2"]
    assert [p["asin"] for p in filter_products_by_grade(products, "C5")] == ["2", "4"]
    assert [p["asin"] for p in filter_products_by_grade(products, "C4")] == ["1", "2", "4"]
    assert len(filter_products_by_grade(products, None)) == 4
    assert [p["asin"] for p in sort_products_by_score(products)] == ["2", "4", "1", "3"]
    assert products[0]["asin"] == "1"


def test_every_ladder_grade_has_a_visual():
    assert set(GRADE_VISUALS) == set(GRADE_LADDER)
    assert get_grade_visual("A10")["label"] == "GOLDMINE"
    assert get_grade_visual("A10")["icon"] == "trophy"
    assert get_grade_visual("F1")["label"] == "AVOID"
    assert get_grade_visual("B9")["color"] == "#84cc16"
    assert get_grade_visual("nonsense")["label"] == "UNGRADED"


def test_every_grade_a_scorer_can_produce_has_a_visual():
    for profit in sorted(set(GRADE_THRESHOLDS.values())):
        for overrides in ({}, {"price": 5}, {"risk_classification": "Banned"}, {"reviews": 1000}):
            grade = calculate_grade(_inputs(monthly_profit=profit, **overrides)).grade
            assert grade in GRADE_VISUALS


def test_grade_descriptions_and_filter_options():
    options = get_grade_filter_options()

    assert get_grade_description("A4") == "Excellent Opportunity"
    assert get_grade_description("D10") == "Poor Opportunity"
    assert get_grade_description("F1") == "Not Recommended"
    assert get_grade_description(None) == "Not Recommended"
    assert [o["value"] for o in options] == list(GRADE_LADDER)
    assert options[0]["label"] == "A10 - GOLDMINE"
    assert options[-1]["label"] == "F1 - AVOID"
    assert options[5]["label"] == "A5"
