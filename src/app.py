"""Storefront FastAPI application.

Processes order, payment and coupon commands synchronously over HTTP.
Every request runs inside the storefront domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.config import get_settings
from storefront.domain import storefront
from storefront.utils.logging import add_context, clear_context, configure_logging

configure_logging(env=get_settings().env)
storefront.init()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Order lifecycle and payment reconciliation",
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
    """Push the storefront domain context for each request and tag its log lines."""
    clear_context()
    add_context(method=request.method, path=request.url.path)
    with storefront.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import coupon_router, order_router, product_router  # noqa: E402

app.include_router(order_router)
app.include_router(coupon_router)
app.include_router(product_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "domain": storefront.name,
            "store": settings.store_adapter,
            "gateway": settings.payment_gateway,
            "carrier": settings.carrier_adapter,
        }
    )
