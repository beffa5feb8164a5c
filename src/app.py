"""Storefront FastAPI application.

Processes commands and checkouts synchronously via HTTP. Every request runs
inside the storefront domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay from domain.toml:
#   - "test"/"development" → in-memory stores
#   - "production"         → PostgreSQL via DATABASE_URL
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from storefront.domain import storefront
from storefront.errors import AuthenticationError, CheckoutFailed, ConflictError

storefront.init()

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Checkout, pricing, discounts, loyalty points and carts",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for each request."""
    with storefront.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
def _first_message(messages) -> str:
    if isinstance(messages, dict):
        for value in messages.values():
            if isinstance(value, list) and value:
                return str(value[0])
            if value:
                return str(value)
    return str(messages)


register_exception_handlers(app)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": _first_message(exc.messages), "code": "invalid", "errors": exc.messages},
    )


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=400,
        content={"detail": exc.detail, "code": exc.code, "errors": exc.messages, "context": exc.context},
    )


@app.exception_handler(ObjectNotFoundError)
async def not_found_handler(request: Request, exc: ObjectNotFoundError):
    messages = getattr(exc, "messages", None) or str(exc)
    return JSONResponse(
        status_code=404,
        content={"detail": _first_message(messages), "code": "not_found"},
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(CheckoutFailed)
async def checkout_failed_handler(request: Request, exc: CheckoutFailed):
    logger.error(
        "checkout_failed",
        checkout_id=exc.checkout_id,
        step=exc.step,
        compensations_run=exc.compensations_run,
        compensations_failed=exc.compensations_failed,
        rollback_complete=exc.rollback_complete,
        exc_info=exc.cause,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Checkout could not be completed. Please try again.", "code": "checkout_failed"},
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api.routes import (  # noqa: E402
    account_router,
    cart_router,
    checkout_router,
    discount_router,
    order_router,
    product_router,
)

app.include_router(checkout_router)
app.include_router(discount_router)
app.include_router(order_router)
app.include_router(cart_router)
app.include_router(account_router)
app.include_router(product_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": storefront.name})
