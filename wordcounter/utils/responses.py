"""Response envelope shared by all word count routes."""

from datetime import datetime, timezone
from typing import Any, Dict, Generic, TypeVar

from pydantic import BaseModel, Field

from wordcounter.config.settings import settings

T = TypeVar("T")


class ResponseMetadata(BaseModel):
    """Metadata included in all API responses."""

    app_name: str = Field(default=settings.APP_NAME)
    app_version: str = Field(default=settings.APP_VERSION)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SuccessResponse(BaseModel, Generic[T]):
    """Generic success response with data and metadata."""

    success: bool = Field(default=True)
    message: str = Field(default="Operation completed successfully")
    data: T
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class ErrorDetail(BaseModel):
    """``detail`` of an HTTPException: stable machine code plus readable message."""

    code: str = Field(..., description="Stable error code, e.g. wc-multi-methods")
    message: str

    model_config = {
        "json_schema_extra": {
            "example": {"code": "wc-no-page-specified", "message": "Specify either titles or pageids"}
        }
    }


def success_response(data: T, message: str = "Operation completed successfully", **kwargs: Any) -> SuccessResponse[T]:
    """Wrap ``data`` in the success envelope; ``kwargs`` override metadata fields."""
    return SuccessResponse(
        success=True,
        message=message,
        data=data,
        metadata=ResponseMetadata(**kwargs) if kwargs else ResponseMetadata(),
    )


def error_detail(code: str, message: str) -> Dict[str, str]:
    return ErrorDetail(code=code, message=message).model_dump()
