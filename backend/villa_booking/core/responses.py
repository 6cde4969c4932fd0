# villa_booking/core/responses.py
import math
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder


def success_response(
    data: Any = None,
    message: str = "Success",
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Uniform success envelope:
      { success, message, data, meta? }
    """
    body: Dict[str, Any] = {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data),
    }
    if meta:
        body["meta"] = jsonable_encoder(meta)
    return body


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        }
    }


def paginated_response(
    items: Any,
    *,
    page: int,
    limit: int,
    total: int,
    message: str = "Success",
) -> Dict[str, Any]:
    return success_response(items, message, meta=pagination_meta(page, limit, total))


def error_body(
    message: str,
    *,
    status_code: int,
    code: str,
    correlation_id: str,
    details: Any = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {
        "code": code,
        "statusCode": status_code,
        "correlationId": correlation_id,
    }
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return {"success": False, "message": message, "error": error}
