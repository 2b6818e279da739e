from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Any, Dict, List, Optional

from launchfast.models.product import AIAnalysis, KeywordData, ProductData, SalesPrediction
from launchfast.models.usage import UsageAction
from launchfast.services.scoring_service import get_grade_description, get_grade_visual, score_product
from launchfast.utils.usage_gate import usage_gate

# Initialize the logger
logger = Logger()

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

app = APIGatewayRestResolver(cors=cors_config)


class ScoreProductRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product: ProductData
    sales_data: SalesPrediction = Field(alias="salesData")
    ai_analysis: Optional[AIAnalysis] = Field(default=None, alias="aiAnalysis")
    keywords: List[KeywordData] = Field(default_factory=list)


@app.post("/products/score")
def post_score_product() -> Dict[str, Any]:
    """
    Grade one verified product.
    Expected body: {"product": {...}, "salesData": {...}, "aiAnalysis": {...}, "keywords": [...]}
    """
    try:
        request = ScoreProductRequest(**(app.current_event.json_body or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")

    result = score_product(request.product, request.sales_data, request.ai_analysis, request.keywords)
    logger.info(f"Scored product {request.product.asin}: {result.grade}")

    return {
        "asin": request.product.asin,
        "grade": result.grade,
        "score": result.score,
        "description": get_grade_description(result.grade),
        "visual": get_grade_visual(result.grade),
        "breakdown": result.breakdown.model_dump(),
        "inputs": result.inputs.model_dump() if result.inputs else None,
    }


@usage_gate(UsageAction.SEARCH)
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler. Each successful scoring counts as one search.
    """
    return app.resolve(event, context)
