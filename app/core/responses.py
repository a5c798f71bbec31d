"""Response envelope shared by every endpoint.

Success: ``{"status": true, "code": ..., "message": ..., "data": ...}``
Error:   ``{"status": false, "code": ..., "message": ...}``
"""
from typing import Generic, Optional, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Schema base that reads ORM objects and emits camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class APIResponse(CamelModel, Generic[T]):
    status: bool = True
    code: Optional[str] = None
    message: str
    data: Optional[T] = None


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": False, "code": code, "message": message},
    )
