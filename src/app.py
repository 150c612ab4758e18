"""Bakery FastAPI application.

Web server that processes commands synchronously via HTTP. Every request
runs inside the bakery domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# Configuration comes from [tool.protean] in pyproject.toml. PROTEAN_ENV
# selects the overlay: "production" processes events asynchronously via the
# Engine, every other environment handles them inside the unit of work.
from bakery.domain import bakery  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

bakery.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Bakery API",
    description="Online bakery ordering: carts, orders, loyalty and deliveries",
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
    """Push the bakery domain context for each request."""
    with bakery.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers and error mapping
# ---------------------------------------------------------------------------
from bakery.api import (  # noqa: E402
    add_exception_handlers,
    cart_router,
    delivery_router,
    loyalty_router,
    order_router,
    product_router,
)

app.include_router(product_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(loyalty_router)
app.include_router(delivery_router)
add_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": bakery.name}})
