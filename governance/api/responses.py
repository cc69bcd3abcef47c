"""
Result to HTTP rendering.

Success: {"data": ..., "meta": {"request_id": ...}}
Failure: {"error": {"code", "message", "details"?, "request_id"}}
"""

from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from governance.domain.actor import ActorContext
from governance.domain.result import ErrorCode, Result

HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_STATE: 400,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}


def respond(result: Result[Any], actor: ActorContext, status_code: int = 200) -> JSONResponse:
    """Render a service Result as a JSON response."""
    if not result.ok:
        error = result.error.to_dict()
        error["request_id"] = actor.request_id
        return JSONResponse(
            status_code=HTTP_STATUS.get(result.error.code, 500),
            content=jsonable_encoder({"error": error}),
        )

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"data": result.value, "meta": {"request_id": actor.request_id}}),
    )
