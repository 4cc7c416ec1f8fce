"""
main.py — Frozen Protein Pricing API

FastAPI app: session auth, per-IP rate limiting (slowapi), request IDs,
structured error responses and router mounts.

Business Rules:
- Every response carries X-Request-ID and the security headers; log records
  written while handling the request carry the same id
- Errors are JSON ErrorResponse bodies: {"error", "status_code", "request_id"}
- CircuitOpenError → 503 with Retry-After; PricingError → 400;
  GoShipError → 400 (validation) / 503 (not configured) / 502 (vendor failure)
- Unhandled exceptions → generic 500, details only in the log

Called by: uvicorn (protein_pricing.main:app)
Depends on: routers/*, logging_config.py, startup.py, rate_limit.py
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .circuit_breaker import CircuitOpenError
from .config import settings
from .connectors.goship import GoShipError
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import ai, auth, customers, deals, freight, pricing, products
from .schemas.errors import ErrorResponse
from .services.price_calculator import PricingError
from .startup import run_startup_migrations

API_VERSION = "v1"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()
    logger.info("Frozen protein pricing API started")
    yield
    await close_clients()


app = FastAPI(title="Frozen Protein Pricing", version="1.0.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-API-Version"] = API_VERSION
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# ── Error handlers ──────────────────────────────────────────────────


def _error(request: Request, status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    body = ErrorResponse(
        error=message,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", ""),
        **extra,
    )
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error(request, exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return _error(request, 422, "Validation error", detail=detail)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    return _error(request, 400, str(exc))


@app.exception_handler(CircuitOpenError)
async def circuit_open_handler(request: Request, exc: CircuitOpenError):
    return _error(
        request,
        503,
        "AI service temporarily unavailable",
        headers={"Retry-After": str(exc.retry_after)},
        code="CIRCUIT_OPEN",
    )


@app.exception_handler(GoShipError)
async def goship_error_handler(request: Request, exc: GoShipError):
    if exc.code == "VALIDATION_ERROR":
        return _error(request, 400, str(exc), code=exc.code)
    if exc.code == "NOT_CONFIGURED":
        return _error(request, 503, "Freight quoting is not configured", code=exc.code)
    logger.warning(f"GoShip failure on {request.url.path}: {exc.code}")
    return _error(request, 502, "Freight quote service unavailable. Please try again.", code=exc.code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return _error(request, 500, "Internal server error")


# ── Routes ──────────────────────────────────────────────────────────


@app.get("/health")
async def health():
    return {"status": "ok", "version": app.version}


for module in (auth, products, pricing, freight, deals, ai, customers):
    app.include_router(module.router)
