"""
Error taxonomy shared by the storefront services.

Transport and backend failures, coupon rejections, duplicate submits and
order placement failures each get their own class so routes can map them to
HTTP responses.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError


class StorefrontError(Exception):
    """Base class for storefront errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackendError(StorefrontError):
    """The external backend API could not serve the request"""


class BackendUnavailable(BackendError):
    """Network or transport failure, no response received"""


class BackendResponseError(BackendError):
    """Non-2xx status or a body that is not valid JSON"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_server_error(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class MalformedResponse(BackendResponseError):
    """2xx status whose body could not be decoded"""


class CouponError(StorefrontError):
    """Coupon could not be applied"""


class ActionInProgress(StorefrontError):
    """Same action already running for this cart"""


class OrderPlacementError(StorefrontError):
    """Order could not be created by any path"""


# Provider error codes (Postgres SQLSTATE)
UNDEFINED_TABLE = "42P01"
UNIQUE_VIOLATION = "23505"


def _db_error_code(exc: BaseException) -> Optional[str]:
    # psycopg2 exposes pgcode, psycopg 3 sqlstate
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code if isinstance(code, str) and code else None


def is_missing_table(exc: BaseException) -> bool:
    # Schema not migrated yet: treat as "feature not available"
    if not isinstance(exc, SQLAlchemyError):
        return False
    if _db_error_code(exc) == UNDEFINED_TABLE:
        return True
    text = str(getattr(exc, "orig", exc)).lower()
    return "no such table" in text or ("relation" in text and "does not exist" in text)


def is_unique_violation(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    if _db_error_code(exc) == UNIQUE_VIOLATION:
        return True
    text = str(exc.orig).lower()
    return "unique constraint" in text or "duplicate key" in text
