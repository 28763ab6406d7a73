"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sportsmatch.domain.chat.exceptions import TransientStoreError
from sportsmatch.obs import logging as obs_logging

logger = logging.getLogger(__name__)


def get_request_id(request: Request, default: str = "unknown") -> str:
    rid = getattr(request.state, "request_id", None) or obs_logging.current_request_id()
    return rid or default


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": "validation_error", "errors": jsonable_encoder(exc.errors()), "request_id": rid}
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(TransientStoreError)
    async def store_exc_handler(request: Request, exc: TransientStoreError):  # type: ignore[override]
        rid = get_request_id(request)
        logger.warning("store_unavailable", extra={"path": request.url.path})
        payload = {"detail": exc.reason, "request_id": rid}
        return JSONResponse(status_code=503, content=payload)
