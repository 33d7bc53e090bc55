import hmac

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from checkout_guard.api import VALIDATION_PREFIX

# Called from the storefront checkout script, which cannot hold a secret.
PUBLIC_PATHS = frozenset(
    {
        f"{VALIDATION_PREFIX}/validate-user",
        f"{VALIDATION_PREFIX}/captcha",
        f"{VALIDATION_PREFIX}/proceed-checkout",
        f"{VALIDATION_PREFIX}/config",
        "/health",
        "/openapi.json",
        "/docs",
        "/redoc",
    }
)


class ApiKeyMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, api_key: str) -> None:  # noqa: ANN001
        super().__init__(app)
        self._api_key = api_key

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        provided = request.headers.get("X-API-Key", "")
        if not hmac.compare_digest(provided, self._api_key):
            return JSONResponse(
                {"error": "Invalid or missing API key"},
                status_code=401,
            )

        return await call_next(request)
