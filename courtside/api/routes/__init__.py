"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, service error mapping) lives here; every
sub-router imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from courtside.services.exceptions import ConflictError, InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Service error mapping
# ---------------------------------------------------------------------------
def service_error_to_http(e: Exception, action: str) -> HTTPException:
    """
    Translate a service-layer exception into the HTTPException to raise.

    Conflicts carry their machine-readable ``code`` alongside the message.
    Anything unexpected is logged and reported as a generic 500.
    """
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail={"code": e.code, "message": str(e)})
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidRequestError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e) or "Not allowed")
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from courtside.api.routes.bookings import router as bookings_router  # noqa: E402
from courtside.api.routes.courts import router as courts_router  # noqa: E402
from courtside.api.routes.payments import router as payments_router  # noqa: E402
from courtside.api.routes.matches import router as matches_router  # noqa: E402
from courtside.api.routes.tournaments import router as tournaments_router  # noqa: E402
from courtside.api.routes.rankings import router as rankings_router  # noqa: E402
from courtside.api.routes.corrections import router as corrections_router  # noqa: E402
from courtside.api.routes.admin import router as admin_router  # noqa: E402
from courtside.api.routes.health import router as health_router  # noqa: E402

router = APIRouter()
router.include_router(bookings_router)
router.include_router(courts_router)
router.include_router(payments_router)
router.include_router(matches_router)
router.include_router(tournaments_router)
router.include_router(rankings_router)
router.include_router(corrections_router)
router.include_router(admin_router)
router.include_router(health_router)
