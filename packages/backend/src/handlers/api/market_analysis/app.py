from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, List, Optional

from launchfast.constants.grades import GRADE_LADDER
from launchfast.models.product import ProductData, ScoredProduct
from launchfast.services.market_service import MarketAnalysisError, calculate_market_statistics
from launchfast.services.scoring_service import (
    get_grade_description,
    get_grade_filter_options,
    get_grade_visual,
    score_apify_product,
)

# Initialize the logger
logger = Logger()

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

app = APIGatewayRestResolver(cors=cors_config)


class MarketStatisticsRequest(BaseModel):
    products: List[ScoredProduct] = Field(min_length=1)


class PreliminaryScoreRequest(BaseModel):
    products: List[ProductData] = Field(min_length=1)
    search_keyword: Optional[str] = None


def _parse(model, body):
    try:
        return model(**(body or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")


@app.post("/markets/statistics")
def post_market_statistics() -> Dict[str, Any]:
    """
    Aggregate already-scored products into market statistics
    """
    request = _parse(MarketStatisticsRequest, app.current_event.json_body)
    try:
        stats = calculate_market_statistics(request.products)
    except MarketAnalysisError as exc:
        raise BadRequestError(str(exc))
    return stats.model_dump()


@app.post("/products/preliminary-scores")
def post_preliminary_scores() -> Dict[str, Any]:
    """
    Rank scraped listings before sales verification
    """
    request = _parse(PreliminaryScoreRequest, app.current_event.json_body)
    scored = []
    for product in request.products:
        preliminary = score_apify_product(product, request.search_keyword)
        scored.append({"asin": product.asin, **preliminary.model_dump()})
    scored.sort(key=lambda item: item["score"], reverse=True)
    return {"products": scored}


@app.get("/grades")
def get_grades() -> Dict[str, Any]:
    """
    Grade ladder with filter options and badge visuals for the dashboard
    """
    return {
        "filter_options": get_grade_filter_options(),
        "grades": [
            {"grade": grade, "description": get_grade_description(grade), **get_grade_visual(grade)}
            for grade in GRADE_LADDER
        ],
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
