from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import status
from pydantic import BaseModel, ConfigDict


class BaseResponse(BaseModel):
    """Envelope shared by every endpoint, errors included."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    model_config = ConfigDict(
        json_encoders={datetime: lambda v: v.isoformat()},
        from_attributes=True,
    )


class PaginatedResponse(BaseResponse):
    page: int
    per_page: int
    total_items: int
    total_pages: int


def success_response(
    message: str,
    data: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_200_OK
) -> Dict[str, Any]:
    return BaseResponse(
        success=True,
        message=message,
        data=data,
    ).model_dump()

def error_response(
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return BaseResponse(
        success=False,
        message=message,
        data=details or {},
    ).model_dump()

def paginated_response(
    message: str,
    items: List[Dict[str, Any]],
    page: int,
    per_page: int,
    total_items: int,
) -> Dict[str, Any]:
    total_pages = (total_items + per_page - 1) // per_page  # Ceiling division
    return PaginatedResponse(
        success=True,
        message=message if items else "No items found",
        data={"items": items},
        page=page,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
    ).model_dump()
