"""
Market statistics over a keyword's scored products.

Averages the verified products, then grades the market as if it were a single
product built from those averages.
"""

import math
from collections import Counter
from typing import Iterable, List, Optional
from aws_lambda_powertools import Logger

from ..models.product import MarketStatistics, ScoredProduct, ScoringInputs
from .scoring_service import average_cpc, calculate_grade

logger = Logger()

# Consistency rating -> opportunity score bonus
CONSISTENCY_BONUS = {"High": 10, "Medium": 7, "Low": 4}
DEFAULT_CONSISTENCY_BONUS = 2


class MarketAnalysisError(ValueError):
    """Raised when a market has no products that can be averaged"""

    pass


def _average(values: Iterable[Optional[float]]) -> float:
    valid = [v for v in values if v is not None and math.isfinite(v)]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)


def _market_consistency(products: List[ScoredProduct]) -> str:
    """Fewer distinct grades means a more predictable market"""
    if len(products) <= 1:
        return "High"
    unique_grades = {p.grade for p in products if p.grade}
    if len(unique_grades) <= 1:
        return "High"
    if len(unique_grades) == 2:
        return "Medium"
    if len(unique_grades) == 3:
        return "Low"
    return "Variable"


def _market_risk(products: List[ScoredProduct]) -> str:
    risks = [p.ai_analysis.risk_classification for p in products if p.ai_analysis]
    if not risks:
        return "Unknown"
    # most_common keeps first-seen order on ties
    return Counter(risks).most_common(1)[0][0]


def _opportunity_score(avg_margin: float, avg_revenue: float, avg_reviews: float, consistency: str) -> int:
    """1..100: margin 40%, revenue 30%, competition 20%, consistency 10%"""
    margin_score = min(40.0, avg_margin * 100)
    revenue_score = min(30.0, avg_revenue / 10000 * 30)
    competition_score = max(0.0, 20 - avg_reviews / 1000 * 20)
    consistency_score = CONSISTENCY_BONUS.get(consistency, DEFAULT_CONSISTENCY_BONUS)
    total = round(margin_score + revenue_score + competition_score + consistency_score)
    return min(100, max(1, total))


def calculate_market_statistics(products: List[ScoredProduct]) -> MarketStatistics:
    """
    Aggregate a market from its products.

    Only verified products with a positive price are averaged.

    Raises:
        MarketAnalysisError: No product qualifies
    """
    valid = [p for p in products if p.verified and p.product.price > 0]
    if not valid:
        raise MarketAnalysisError("No valid products found for market analysis")

    avg_monthly_revenue = _average(p.sales.monthly_revenue for p in valid)
    avg_profit_margin = _average(p.sales.margin for p in valid)
    avg_reviews = _average(p.product.reviews for p in valid)
    avg_cpc = _average(average_cpc(p.keywords) or 0.0 for p in valid)
    consistency = _market_consistency(valid)
    risk = _market_risk(valid)

    stats = {
        "avg_price": _average(p.product.price for p in valid),
        "avg_monthly_sales": _average(p.sales.monthly_sales for p in valid),
        "avg_monthly_revenue": avg_monthly_revenue,
        "avg_reviews": avg_reviews,
        "avg_rating": _average(p.product.rating or 0.0 for p in valid),
        "avg_bsr": _average(p.product.bsr or 0.0 for p in valid),
        "avg_profit_margin": avg_profit_margin,
        "avg_cpc": avg_cpc,
        "avg_ppu": _average(p.sales.ppu for p in valid),
    }

    market_inputs = ScoringInputs(
        monthly_profit=avg_monthly_revenue * avg_profit_margin,
        price=stats["avg_price"],
        margin=avg_profit_margin,
        reviews=round(avg_reviews),
        avg_cpc=avg_cpc if any(p.keywords for p in valid) else None,
        risk_classification=risk,
        consistency_rating=consistency,
        ppu=stats["avg_ppu"],
        bsr=stats["avg_bsr"] or None,
        rating=stats["avg_rating"] or None,
    )
    market_grade = calculate_grade(market_inputs).grade

    distribution = Counter(p.grade for p in valid if p.grade)
    logger.info(f"Market statistics over {len(valid)}/{len(products)} products: grade {market_grade}")

    return MarketStatistics(
        **stats,
        market_consistency_rating=consistency,
        market_risk_classification=risk,
        total_products_analyzed=len(products),
        products_verified=len(valid),
        market_grade=market_grade,
        opportunity_score=_opportunity_score(avg_profit_margin, avg_monthly_revenue, avg_reviews, consistency),
        grade_distribution=dict(distribution),
    )
