"""Global error handlers for FastAPI."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ai_tagging.core.exceptions import AppError, InternalAuthError


def _error_body(exc: AppError) -> dict:
    content: dict = {
        "detail": exc.detail,
        "error_code": exc.error_code,
    }
    if exc.context:
        content.update(exc.context)
    return content


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app.

    AppError subclasses become a JSON body with ``detail``, ``error_code``
    and any extra context fields. Internal auth failures also carry a
    ``WWW-Authenticate: Bearer`` challenge.
    """

    @app.exception_handler(InternalAuthError)
    async def internal_auth_error_handler(
        request: Request, exc: InternalAuthError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))
