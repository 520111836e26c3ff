# storefront/middleware/maintenance.py
import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.utils.errors import StorefrontError

logger = logging.getLogger(__name__)

MAINTENANCE_PATH = "/maintenance"
MAINTENANCE_MESSAGE = "We are currently performing scheduled maintenance. Please check back soon."

# Page loads are redirected, anything else gets a 503 it can act on
REDIRECT_METHODS = ("GET", "HEAD")

# Reachable while the shop is closed
PUBLIC_PATHS_DURING_MAINTENANCE = (
    "/maintenance",
    "/login",
    "/register",
    "/forgot-password",
    "/auth/callback",
    "/verify-email",
    "/reset-password",
    "/about",
    "/contact",
    "/privacy-policy",
    "/terms",
    "/blog",
)

EXEMPT_PREFIXES = ("/admin", "/api", "/static", "/_next", "/docs", "/openapi.json")


def is_exempt(path: str) -> bool:
    # Admin, API and static assets are never gated
    return path.startswith(EXEMPT_PREFIXES) or "." in path


def is_public(path: str) -> bool:
    return any(path.startswith(p) for p in PUBLIC_PATHS_DURING_MAINTENANCE)


def maintenance_response(request: Request) -> Response:
    if request.method in REDIRECT_METHODS:
        return RedirectResponse(url=MAINTENANCE_PATH, status_code=307)
    return JSONResponse(
        status_code=503,
        content={"detail": MAINTENANCE_MESSAGE, "maintenanceMode": True},
        headers={"Retry-After": "300"},
    )


class MaintenanceMiddleware(BaseHTTPMiddleware):
    """Sends storefront visitors to the maintenance page while the flag is on."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if is_exempt(path) or is_public(path):
            return await call_next(request)

        service = getattr(request.app.state, "settings_service", None)
        if service is not None:
            try:
                if await service.maintenance_mode():
                    return maintenance_response(request)
            except StorefrontError as e:
                # Flag lookup problems never lock customers out
                logger.error(f"Maintenance check failed for {path}: {e.message}")

        return await call_next(request)
