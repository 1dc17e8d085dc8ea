import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field


def new_request_id() -> str:
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """Envelope of every successful response; ``message`` is set on writes that report an outcome."""
    success: Optional[bool] = Field(default=True)
    request_id: str = Field(default_factory=new_request_id)
    message: Optional[str] = None
    data: Optional[Any] = None


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: ErrorDetail
    request_id: str = Field(default_factory=new_request_id)

    @classmethod
    def build(cls, code: str, message: str, details: Any = None) -> dict:
        """JSON-ready body; ``details`` is omitted when empty."""
        body = cls(message=message, error=ErrorDetail(code=code, message=message, details=details))
        return body.model_dump(exclude_none=True)
