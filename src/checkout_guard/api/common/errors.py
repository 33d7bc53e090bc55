import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CheckoutGuardError(Exception):
    status_code: int = 500
    detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail is not None:
            self.detail = detail


class InvalidInputError(CheckoutGuardError):
    status_code = 400
    detail = "Invalid request data"


class NotFoundError(CheckoutGuardError):
    status_code = 404
    detail = "Not found"


class ForbiddenError(CheckoutGuardError):
    status_code = 403
    detail = "Access denied"


class ProviderDegradedError(CheckoutGuardError):
    """An external provider failed; recovered locally, never sent to clients."""

    status_code = 503
    detail = "Upstream provider unavailable"


class InternalFaultError(CheckoutGuardError):
    status_code = 500
    detail = "Internal server error"


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, CheckoutGuardError)
    if exc.status_code >= 500:
        logger.error("Request failed: %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    return JSONResponse(
        {
            "error": InvalidInputError.detail,
            "details": [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ],
        },
        status_code=InvalidInputError.status_code,
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse({"error": InternalFaultError.detail}, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CheckoutGuardError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


__all__ = (
    "CheckoutGuardError",
    "ForbiddenError",
    "InternalFaultError",
    "InvalidInputError",
    "NotFoundError",
    "ProviderDegradedError",
    "register_exception_handlers",
)
