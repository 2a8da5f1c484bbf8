"""Translate domain errors into HTTP responses"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from domain.exceptions import (
    Conflict, Forbidden, InvalidRange, InvalidRequest, InvalidTransition,
    NotFound, ReservationError, StorageUnavailable, Unavailable, UnknownProduct,
    UnpricedDate,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 5

STATUS_CODES = {
    InvalidRange: 422,
    InvalidRequest: 422,
    UnpricedDate: 422,
    UnknownProduct: 422,
    Forbidden: 403,
    NotFound: 404,
    Unavailable: 409,
    InvalidTransition: 409,
    Conflict: 409,
}


def status_code_for(exc: ReservationError) -> int:
    for error_type, code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 400


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(ReservationError)
    async def reservation_error_handler(request: Request, exc: ReservationError):
        status_code = status_code_for(exc)
        logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.__class__.__name__}: {exc.message}")
        return JSONResponse(content=exc.to_dict(), status_code=status_code)

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
        logger.error(f"{request.method} {request.url.path} -> storage unavailable: {exc}")
        return JSONResponse(
            content={"error": "StorageUnavailable", "detail": str(exc)},
            status_code=503,
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)}
        )
