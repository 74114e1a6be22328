from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from messenger_webhooks.kernel.errors import WebhookError

logger = structlog.get_logger()


def _request_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "request_id", None)


def _error_body(request: Request, *, detail: Any, code: str) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": detail, "code": code}
    request_id = _request_id(request)
    if request_id:
        body["request_id"] = request_id
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as `{"detail", "code", "request_id"?}`.

    `detail` stays FastAPI-compatible; `code` is the stable value clients match on.
    """

    @app.exception_handler(WebhookError)
    async def _webhook_error_handler(request: Request, exc: WebhookError) -> Response:
        logger.info(
            "Request rejected",
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_public_dict(request_id=_request_id(request)),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> Response:
        return JSONResponse(
            status_code=int(exc.status_code),
            content=_error_body(request, detail=exc.detail, code=f"http.{exc.status_code}"),
            headers=dict(exc.headers or {}),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        return JSONResponse(
            status_code=422,
            content=_error_body(request, detail=jsonable_encoder(exc.errors()), code="http.validation_error"),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        # Database failures land here; the body never carries the exception text.
        logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content=_error_body(request, detail="Internal Server Error", code="internal.unhandled"),
        )
