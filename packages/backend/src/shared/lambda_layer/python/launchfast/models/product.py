import math
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional


def _finite_or_none(v):
    """Drop NaN/inf values coming from provider payloads"""
    if v is None:
        return None
    v = float(v)
    return v if math.isfinite(v) else None


def _finite_or_zero(v):
    v = _finite_or_none(v)
    return 0.0 if v is None else v


class ProductData(BaseModel):
    """Amazon product snapshot captured at analysis time"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    asin: str
    title: str = ""
    brand: Optional[str] = None
    price: float = 0.0
    bsr: Optional[float] = None
    reviews: int = 0
    rating: Optional[float] = None
    category: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def finite_price(cls, v):
        return _finite_or_zero(v)

    @field_validator("bsr", "rating", mode="before")
    @classmethod
    def finite_optional(cls, v):
        return _finite_or_none(v)

    @field_validator("reviews", mode="before")
    @classmethod
    def finite_reviews(cls, v):
        return int(_finite_or_zero(v))


class SalesPrediction(BaseModel):
    """Monthly sales estimate from the sales data provider"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    monthly_profit: float = Field(default=0.0, alias="monthlyProfit")
    monthly_revenue: float = Field(default=0.0, alias="monthlyRevenue")
    monthly_sales: float = Field(default=0.0, alias="monthlySales")
    margin: float = Field(default=0.0, description="Profit margin as a fraction")
    ppu: float = Field(default=0.0, description="Profit per unit as a fraction of price")
    fba_cost: float = Field(default=0.0, alias="fbaCost")
    cogs: Optional[float] = None

    @field_validator(
        "monthly_profit", "monthly_revenue", "monthly_sales", "margin", "ppu", "fba_cost",
        mode="before",
    )
    @classmethod
    def finite_numbers(cls, v):
        return _finite_or_zero(v)


class AIAnalysis(BaseModel):
    """LLM risk and consistency assessment"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    risk_classification: str = Field(default="No Risk", alias="riskClassification")
    consistency_rating: str = Field(default="Consistent", alias="consistencyRating")
    opportunity_score: Optional[float] = Field(default=None, alias="opportunityScore")
    market_insights: List[str] = Field(default_factory=list, alias="marketInsights")
    risk_factors: List[str] = Field(default_factory=list, alias="riskFactors")

    @field_validator("opportunity_score", mode="before")
    @classmethod
    def finite_opportunity(cls, v):
        return _finite_or_none(v)


class KeywordData(BaseModel):
    """Keyword metrics for one ranking keyword"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    keyword: str
    search_volume: int = Field(default=0, alias="searchVolume")
    cpc: Optional[float] = None
    ranking_position: Optional[int] = Field(default=None, alias="rankingPosition")

    @field_validator("cpc", mode="before")
    @classmethod
    def finite_cpc(cls, v):
        return _finite_or_none(v)


class ScoringInputs(BaseModel):
    """Flattened metrics the grade is computed from"""
    model_config = ConfigDict(frozen=True)

    monthly_profit: float
    price: float
    margin: float
    reviews: int
    avg_cpc: Optional[float] = Field(
        default=None, description="Average keyword CPC, None when no keyword data"
    )
    risk_classification: str = "No Risk"
    consistency_rating: str = "Consistent"
    ppu: float = 0.0
    bsr: Optional[float] = None
    rating: Optional[float] = None
    opportunity_score: Optional[float] = None

    @field_validator("monthly_profit", "price", "margin", "ppu", mode="before")
    @classmethod
    def finite_required(cls, v):
        return _finite_or_zero(v)

    @field_validator("avg_cpc", "bsr", "rating", "opportunity_score", mode="before")
    @classmethod
    def finite_optional(cls, v):
        return _finite_or_none(v)

    @field_validator("reviews", mode="before")
    @classmethod
    def finite_reviews(cls, v):
        return int(_finite_or_zero(v))


class ScoreBreakdown(BaseModel):
    base_grade: str = ""
    penalty_points: int = 0
    boost_points: int = 0
    disqualifiers: List[str] = Field(default_factory=list)
    final_grade: str = ""
    details: List[str] = Field(default_factory=list)


class ScoringResult(BaseModel):
    grade: str
    score: float
    breakdown: ScoreBreakdown
    inputs: Optional[ScoringInputs] = None


class PreliminaryScore(BaseModel):
    """Score computed from scraped listing data before sales verification"""
    score: int
    estimated_grade: str
    reasoning: List[str] = Field(default_factory=list)


class ScoredProduct(BaseModel):
    """Product with everything needed for market aggregation"""
    product: ProductData
    sales: SalesPrediction
    ai_analysis: Optional[AIAnalysis] = None
    keywords: List[KeywordData] = Field(default_factory=list)
    grade: Optional[str] = None
    verified: bool = Field(default=True, description="Sales data confirmed by the provider")


class MarketStatistics(BaseModel):
    avg_price: float
    avg_monthly_sales: float
    avg_monthly_revenue: float
    avg_reviews: float
    avg_rating: float
    avg_bsr: float
    avg_profit_margin: float
    avg_cpc: float
    avg_ppu: float
    market_consistency_rating: str
    market_risk_classification: str
    total_products_analyzed: int
    products_verified: int
    market_grade: str
    opportunity_score: int
    grade_distribution: Dict[str, int] = Field(default_factory=dict)
