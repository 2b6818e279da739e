import json
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class FakeLambdaContext:
    function_name: str = "test-function"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
    aws_request_id: str = "00000000-0000-0000-0000-000000000000"


def api_gateway_event(
    method: str,
    path: str,
    body: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = "user-123",
    email: Optional[str] = "seller@example.com",
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """API Gateway REST proxy event, authorized by Cognito when user_id is set."""
    claims = {}
    if user_id:
        claims["sub"] = user_id
    if email:
        claims["email"] = email

    request_headers = {"Content-Type": "application/json", **(headers or {})}
    return {
        "resource": path,
        "path": path,
        "httpMethod": method,
        "headers": request_headers,
        "multiValueHeaders": {k: [v] for k, v in request_headers.items()},
        "queryStringParameters": None,
        "multiValueQueryStringParameters": None,
        "pathParameters": None,
        "stageVariables": None,
        "requestContext": {
            "resourcePath": path,
            "httpMethod": method,
            "path": f"/test{path}",
            "stage": "test",
            "requestId": "test-request-id",
            "authorizer": {"claims": claims} if claims else {},
        },
        "body": json.dumps(body) if body is not None else None,
        "isBase64Encoded": False,
    }


def response_json(response: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(response["body"])
