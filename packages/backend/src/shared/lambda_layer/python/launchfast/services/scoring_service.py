"""
Product Scoring Service

Grades a product on the A10..F1 ladder from its monthly profit, then moves
the grade up or down one step per net adjustment point (competition, ad cost,
risk, margin, BSR, rating). Pure functions only; the same grade strings drive
the dashboard badges through get_grade_visual.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
from aws_lambda_powertools import Logger

from ..constants.grades import (
    A10_MAX_CPC,
    A10_MAX_REVIEWS,
    A10_MIN_MARGIN,
    A10_MIN_PPU,
    A10_MIN_PROFIT,
    ADJUSTMENT_SCORE_WEIGHT,
    BEST_GRADE,
    DECENT_MARGIN,
    DISQUALIFIED_GRADE,
    EXCELLENT_MARGIN,
    GOOD_BSR,
    GOOD_MARGIN,
    GOOD_PPU,
    GRADE_FAMILY_DESCRIPTIONS,
    GRADE_LADDER,
    GRADE_THRESHOLDS,
    GRADE_VISUALS,
    HIGH_CPC,
    HIGH_CPC_PENALTY,
    HIGH_OPPORTUNITY_SCORE,
    LOW_CPC,
    LOW_MARGIN,
    LOW_MARGIN_PENALTY,
    LOW_RATING,
    LOW_RATING_PENALTY,
    MIN_MARGIN,
    MIN_PRICE,
    MODERATE_CPC,
    POOR_BSR,
    POOR_BSR_PENALTY,
    PRELIMINARY_GRADE_BANDS,
    PROHIBITED_RISKS,
    REVIEW_PENALTIES,
    RISK_PENALTIES,
    RISKY_CONSISTENCY,
    UNKNOWN_GRADE_VISUAL,
    VERY_LOW_MARGIN,
    VERY_LOW_REVIEWS,
    WORST_GRADE,
)
from ..models.product import (
    AIAnalysis,
    KeywordData,
    PreliminaryScore,
    ProductData,
    SalesPrediction,
    ScoreBreakdown,
    ScoringInputs,
    ScoringResult,
)

logger = Logger()

PROHIBITED_PRODUCT = "Prohibited Product"
RISKY_CONSISTENCY_PATTERN = "Risky Consistency Pattern"

_GRADE_INDEX = {grade: index for index, grade in enumerate(GRADE_LADDER)}


def get_base_grade(monthly_profit: float) -> str:
    """Best grade whose profit threshold is met"""
    for grade in GRADE_LADDER:
        if monthly_profit >= GRADE_THRESHOLDS[grade]:
            return grade
    return WORST_GRADE


def average_cpc(keywords: Iterable[KeywordData]) -> Optional[float]:
    """Mean CPC over keywords that report one, None when none do"""
    cpcs = [kw.cpc for kw in keywords if kw.cpc is not None]
    if not cpcs:
        return None
    return sum(cpcs) / len(cpcs)


def _check_disqualifiers(inputs: ScoringInputs) -> List[str]:
    disqualifiers = []
    if inputs.price < MIN_PRICE:
        disqualifiers.append(f"Price below ${MIN_PRICE:.0f}")
    if inputs.margin < MIN_MARGIN:
        disqualifiers.append(f"Margin below {MIN_MARGIN:.0%}")
    if inputs.risk_classification in PROHIBITED_RISKS:
        disqualifiers.append(PROHIBITED_PRODUCT)
    if inputs.consistency_rating in RISKY_CONSISTENCY:
        disqualifiers.append(RISKY_CONSISTENCY_PATTERN)
    return disqualifiers


def _calculate_penalties(inputs: ScoringInputs) -> Tuple[int, List[str]]:
    total = 0
    details = []

    for min_reviews, points in REVIEW_PENALTIES:
        if inputs.reviews >= min_reviews:
            total += points
            details.append(f"Competition: {min_reviews}+ reviews (-{points} pts)")
            break

    if inputs.avg_cpc is not None and inputs.avg_cpc >= HIGH_CPC:
        total += HIGH_CPC_PENALTY
        details.append(f"High advertising cost: ${HIGH_CPC:.2f}+ CPC (-{HIGH_CPC_PENALTY} pts)")

    risk_points = RISK_PENALTIES.get(inputs.risk_classification)
    if risk_points:
        total += risk_points
        details.append(f"{inputs.risk_classification} product risk (-{risk_points} pts)")

    # Both margin penalties stack below VERY_LOW_MARGIN
    if inputs.margin < LOW_MARGIN:
        total += LOW_MARGIN_PENALTY
        details.append(f"Low margin: <{LOW_MARGIN:.0%} (-{LOW_MARGIN_PENALTY} pts)")
    if inputs.margin < VERY_LOW_MARGIN:
        total += LOW_MARGIN_PENALTY
        details.append(f"Very low margin: <{VERY_LOW_MARGIN:.0%} (-{LOW_MARGIN_PENALTY} pts)")

    if inputs.bsr and inputs.bsr > POOR_BSR:
        total += POOR_BSR_PENALTY
        details.append(f"Poor BSR: >{POOR_BSR:,} (-{POOR_BSR_PENALTY} pts)")

    if inputs.rating and inputs.rating < LOW_RATING:
        total += LOW_RATING_PENALTY
        details.append(f"Low rating: <{LOW_RATING} stars (-{LOW_RATING_PENALTY} pts)")

    return total, details


def _calculate_boosts(inputs: ScoringInputs) -> Tuple[int, List[str]]:
    total = 0
    details = []

    if inputs.avg_cpc is not None:
        if inputs.avg_cpc < LOW_CPC:
            total += 2
            details.append(f"Low advertising cost: <${LOW_CPC:.2f} CPC (+2 pts)")
        elif inputs.avg_cpc < MODERATE_CPC:
            total += 1
            details.append(f"Moderate advertising cost: <${MODERATE_CPC:.2f} CPC (+1 pt)")

    if inputs.margin >= EXCELLENT_MARGIN and inputs.ppu >= GOOD_PPU:
        total += 4
        details.append(f"Excellent margins: {EXCELLENT_MARGIN:.0%}+ margin + {GOOD_PPU:.0%}+ PPU (+4 pts)")
    elif inputs.margin >= GOOD_MARGIN:
        total += 2
        details.append(f"Good margin: {GOOD_MARGIN:.0%}+ (+2 pts)")
    elif inputs.margin >= DECENT_MARGIN:
        total += 1
        details.append(f"Decent margin: {DECENT_MARGIN:.0%}+ (+1 pt)")

    if inputs.reviews < VERY_LOW_REVIEWS:
        total += 2
        details.append(f"Very low competition: <{VERY_LOW_REVIEWS} reviews (+2 pts)")

    if inputs.opportunity_score and inputs.opportunity_score >= HIGH_OPPORTUNITY_SCORE:
        total += 2
        details.append(f"High AI opportunity score: {HIGH_OPPORTUNITY_SCORE}+ (+2 pts)")

    if inputs.bsr and inputs.bsr < GOOD_BSR:
        total += 1
        details.append(f"Good BSR: <{GOOD_BSR:,} (+1 pt)")

    return total, details


def adjust_grade(base_grade: str, adjustment: int) -> str:
    """Move a grade one ladder step per point, clamped to A10..F1"""
    index = _GRADE_INDEX.get(base_grade)
    if index is None:
        return base_grade
    new_index = max(0, min(len(GRADE_LADDER) - 1, index - adjustment))
    return GRADE_LADDER[new_index]


def _passes_a10_gate(inputs: ScoringInputs) -> bool:
    return (
        inputs.monthly_profit >= A10_MIN_PROFIT
        and inputs.reviews < A10_MAX_REVIEWS
        and inputs.avg_cpc is not None
        and inputs.avg_cpc < A10_MAX_CPC
        and inputs.margin >= A10_MIN_MARGIN
        and inputs.ppu >= A10_MIN_PPU
    )


def calculate_grade(inputs: ScoringInputs) -> ScoringResult:
    """
    Grade one set of scoring inputs.

    Args:
        inputs: Flattened product metrics

    Returns:
        ScoringResult: Grade, sortable numeric score and the breakdown behind them
    """
    breakdown = ScoreBreakdown()
    base_grade = get_base_grade(inputs.monthly_profit)
    breakdown.base_grade = base_grade
    breakdown.details.append(f"Base grade from ${inputs.monthly_profit:,.0f}/month profit: {base_grade}")

    disqualifiers = _check_disqualifiers(inputs)
    if disqualifiers:
        if PROHIBITED_PRODUCT in disqualifiers or RISKY_CONSISTENCY_PATTERN in disqualifiers:
            final_grade = WORST_GRADE
        else:
            final_grade = DISQUALIFIED_GRADE
        breakdown.disqualifiers = disqualifiers
        breakdown.final_grade = final_grade
        breakdown.details.append(f"Instant disqualifier: {', '.join(disqualifiers)}")
        return ScoringResult(grade=final_grade, score=0, breakdown=breakdown, inputs=inputs)

    penalty_points, penalty_details = _calculate_penalties(inputs)
    boost_points, boost_details = _calculate_boosts(inputs)
    breakdown.penalty_points = penalty_points
    breakdown.boost_points = boost_points
    breakdown.details.extend(penalty_details)
    breakdown.details.extend(boost_details)

    net_adjustment = boost_points - penalty_points
    adjusted_grade = adjust_grade(base_grade, net_adjustment)
    breakdown.details.append(f"Net adjustment: {net_adjustment} points")

    final_grade = adjusted_grade
    if adjusted_grade == BEST_GRADE and not _passes_a10_gate(inputs):
        final_grade = GRADE_LADDER[1]
        breakdown.details.append(f"A10 gate applied: {adjusted_grade} -> {final_grade}")
    breakdown.final_grade = final_grade

    score = GRADE_THRESHOLDS[final_grade] + net_adjustment * ADJUSTMENT_SCORE_WEIGHT
    return ScoringResult(grade=final_grade, score=score, breakdown=breakdown, inputs=inputs)


def score_product(
    product: ProductData,
    sales: SalesPrediction,
    ai_analysis: Optional[AIAnalysis] = None,
    keywords: Optional[List[KeywordData]] = None,
) -> ScoringResult:
    """Score a verified product from its sales, AI and keyword data"""
    ai_analysis = ai_analysis or AIAnalysis()
    inputs = ScoringInputs(
        monthly_profit=sales.monthly_profit,
        price=product.price,
        margin=sales.margin,
        reviews=product.reviews,
        avg_cpc=average_cpc(keywords or []),
        risk_classification=ai_analysis.risk_classification,
        consistency_rating=ai_analysis.consistency_rating,
        ppu=sales.ppu,
        bsr=product.bsr,
        rating=product.rating,
        opportunity_score=ai_analysis.opportunity_score,
    )
    result = calculate_grade(inputs)
    logger.debug(f"Scored {product.asin}: {result.grade} ({result.score})")
    return result


def score_apify_product(product: ProductData, search_keyword: Optional[str] = None) -> PreliminaryScore:
    """
    Quick 0..100 score from scraped listing data, used to pick which products
    are worth verifying.
    """
    score = 50
    reasoning = []

    if product.price >= 50:
        score += 15
        reasoning.append(f"Good price point: ${product.price:.2f} (+15 pts)")
    elif product.price >= MIN_PRICE:
        score += 8
        reasoning.append(f"Acceptable price: ${product.price:.2f} (+8 pts)")
    else:
        score -= 20
        reasoning.append(f"Price too low: ${product.price:.2f} (-20 pts)")

    reviews = product.reviews
    if reviews < 20:
        score += 25
        reasoning.append(f"Very low competition: {reviews} reviews (+25 pts)")
    elif reviews < 50:
        score += 15
        reasoning.append(f"Low competition: {reviews} reviews (+15 pts)")
    elif reviews < 200:
        score += 5
        reasoning.append(f"Medium competition: {reviews} reviews (+5 pts)")
    elif reviews < 500:
        score -= 5
        reasoning.append(f"High competition: {reviews} reviews (-5 pts)")
    else:
        score -= 15
        reasoning.append(f"Very high competition: {reviews} reviews (-15 pts)")

    if product.rating is not None:
        if product.rating >= 4.5:
            score += 10
            reasoning.append(f"Excellent rating: {product.rating} stars (+10 pts)")
        elif product.rating >= 4.0:
            score += 5
            reasoning.append(f"Good rating: {product.rating} stars (+5 pts)")
        elif product.rating < 3.5:
            score -= 10
            reasoning.append(f"Poor rating: {product.rating} stars (-10 pts)")

    category = (product.category or "").lower()
    if any(niche in category for niche in ("automotive", "truck", "vehicle")):
        score += 10
        reasoning.append("Niche automotive category (+10 pts)")
    if "electronics" in category and "accessories" not in category:
        score -= 10
        reasoning.append("High-risk electronics category (-10 pts)")

    if search_keyword:
        title = product.title.lower()
        terms = search_keyword.lower().split()
        if terms and all(term in title for term in terms):
            score += 15
            reasoning.append("Highly relevant product title (+15 pts)")

    score = max(0, min(100, score))

    estimated_grade = WORST_GRADE
    for min_score, band in PRELIMINARY_GRADE_BANDS:
        if score >= min_score:
            estimated_grade = band
            break

    return PreliminaryScore(score=score, estimated_grade=estimated_grade, reasoning=reasoning)


def compare_grades(grade_a: Optional[str], grade_b: Optional[str]) -> int:
    """Negative when grade_a is better, positive when grade_b is better. Unknown grades sort last."""
    index_a = _GRADE_INDEX.get(grade_a)
    index_b = _GRADE_INDEX.get(grade_b)
    if index_a is None and index_b is None:
        return 0
    if index_a is None:
        return 1
    if index_b is None:
        return -1
    return index_a - index_b


def is_grade_equal_or_better(product_grade: Optional[str], min_grade: str) -> bool:
    if not product_grade:
        return False
    return compare_grades(product_grade, min_grade) <= 0


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def filter_products_by_grade(products: Iterable[Any], min_grade: Optional[str]) -> List[Any]:
    """Products graded min_grade or better. No filter keeps everything."""
    products = list(products)
    if not min_grade:
        return products
    return [p for p in products if is_grade_equal_or_better(_field(p, "grade"), min_grade)]


def sort_products_by_score(products: Iterable[Any]) -> List[Any]:
    """Highest score first; a missing score counts as 0"""
    return sorted(products, key=lambda p: _field(p, "score") or 0, reverse=True)


def get_grade_description(grade: Optional[str]) -> str:
    if not grade:
        return GRADE_FAMILY_DESCRIPTIONS["F"]
    return GRADE_FAMILY_DESCRIPTIONS.get(grade[0].upper(), GRADE_FAMILY_DESCRIPTIONS["F"])


def get_grade_visual(grade: Optional[str]) -> Dict[str, str]:
    """Badge label, icon name and colour for a grade"""
    return dict(GRADE_VISUALS.get(grade, UNKNOWN_GRADE_VISUAL))


def get_grade_filter_options() -> List[Dict[str, str]]:
    """Dropdown options for minimum-grade filters, best grade first"""
    options = []
    for grade in GRADE_LADDER:
        visual = GRADE_VISUALS[grade]
        label = grade if visual["label"] == grade else f"{grade} - {visual['label']}"
        options.append({"label": label, "value": grade, "color": visual["color"]})
    return options
