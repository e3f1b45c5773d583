"""Response envelopes shared by handler endpoints."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def success(**payload: Any) -> dict[str, Any]:
    return {"success": True, **payload}


def error_response(message: str, status_code: int = 500, **extra: Any) -> JSONResponse:
    """``{"success": false, "error": message}`` with the given status."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": message, **extra}),
    )
