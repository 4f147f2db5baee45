from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

from smartmarks.core.modules.auth.guard import is_public_path
from smartmarks.web.cookies import ACCESS_TOKEN_COOKIE


def set_custom_openapi(app: FastAPI) -> None:
    """Document the JSON API only; HTML pages and auth redirects are browser flows."""

    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="SmartMarks API",
            version="0.1.0",
            summary="Personal bookmarks kept in sync across sessions",
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "SessionCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": ACCESS_TOKEN_COOKIE,
                "description": "Identity provider access token, refreshed by the session guard",
            },
        }
        openapi_schema["security"] = [{"SessionCookie": []}]

        for path, path_item in openapi_schema["paths"].items():
            if is_public_path(path):
                for operation in path_item.values():
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Authentication failed", "type": "authentication_error"},
                {"message": "Bookmark not found", "type": "not_found"},
                {"message": "URL must be a valid http(s) address", "type": "validation_error"},
            ]
        }
    }
