"""
API Middleware

Wires the cross-cutting HTTP concerns onto the app:
- CORS for the browser frontend
- per-client rate limiting (slowapi), enforced by SlowAPIMiddleware on every route
- request logging with an X-Process-Time header
- mapping of exceptions that escape the routes to JSON errors

Usage:
    app = FastAPI()
    setup_middleware(app, allowed_origins=["http://localhost:3000"])
"""

import time
import logging
from typing import Callable, Optional, List
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from webpilot.core.config import settings
from webpilot.core.exceptions import WebPilotError

logger = logging.getLogger(__name__)


def setup_cors(app: FastAPI, allowed_origins: Optional[List[str]] = None):
    """Allow the given origins (all when None) to call the API with credentials."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"CORS enabled for: {origins}")


def setup_rate_limiting(app: FastAPI, rate_limit: Optional[str] = None) -> Limiter:
    """
    Limit every route to ``rate_limit`` requests per client address.

    Each app gets its own limiter so separate apps never share counters.
    Requests over the limit receive 429.
    """
    limit = rate_limit or settings.rate_limit
    limiter = Limiter(key_func=get_remote_address, default_limits=[limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    logger.info(f"Rate limiting enabled ({limit} per client)")
    return limiter


async def request_logging_middleware(request: Request, call_next: Callable):
    """
    Log each request with its status and duration.

    For event streams the duration covers the response headers only.
    """
    started = time.time()
    client = request.client.host if request.client else "unknown"
    label = f"{request.method} {request.url.path}"
    logger.info(f"-> {label} from {client}")

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"<- {label} raised {type(e).__name__}: {e} after {time.time() - started:.3f}s")
        raise

    elapsed = time.time() - started
    response.headers["X-Process-Time"] = f"{elapsed:.6f}"
    logger.info(f"<- {label} {response.status_code} in {elapsed:.3f}s")
    return response


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "error": error, "message": message})


async def error_handling_middleware(request: Request, call_next: Callable):
    """
    Convert exceptions that escape the routes.

    ValueError -> 400, WebPilotError -> 500 named by type, anything else -> 500.
    """
    try:
        return await call_next(request)
    except ValueError as e:
        logger.warning(f"Rejected {request.url.path}: {e}")
        return _error_response(status.HTTP_400_BAD_REQUEST, "Validation Error", str(e))
    except WebPilotError as e:
        logger.error(f"Engine error on {request.url.path}: {e}", exc_info=True)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, type(e).__name__, str(e))
    except Exception as e:
        logger.error(f"Unhandled error on {request.url.path}: {e}", exc_info=True)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal Server Error",
            "An unexpected error occurred. Please try again later."
        )


def setup_middleware(
    app: FastAPI,
    allowed_origins: Optional[List[str]] = None,
    rate_limit: Optional[str] = None,
    enable_cors: bool = True,
    enable_rate_limiting: bool = True,
    enable_logging: bool = True,
    enable_error_handling: bool = True
):
    """
    Install the middleware stack.

    Order matters: each ``add_middleware`` wraps the previous ones, so error
    handling sits next to the routes and rate limiting is checked first.
    """
    if enable_error_handling:
        app.middleware("http")(error_handling_middleware)
    if enable_logging:
        app.middleware("http")(request_logging_middleware)
    if enable_cors:
        setup_cors(app, allowed_origins)
    if enable_rate_limiting:
        setup_rate_limiting(app, rate_limit)

    logger.info("Middleware configured")


__all__ = [
    "setup_middleware",
    "setup_cors",
    "setup_rate_limiting",
    "request_logging_middleware",
    "error_handling_middleware",
]
