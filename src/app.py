"""FreshRoute FastAPI application.

Web server for the fulfillment engine; commands are processed synchronously
per request inside the fulfillment domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (handlers fire in UoW)
#   - "production" → event_processing = "async" (handlers fire via Engine)
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fulfillment.domain import fulfillment  # noqa: E402

fulfillment.init()

_DOMAIN_PREFIXES = ("/customers", "/products", "/orders", "/packing", "/routes", "/accounting")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="FreshRoute API",
    description="Order fulfillment and route sequencing engine",
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
    """Push the fulfillment domain context for engine routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with fulfillment.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from fulfillment.api import (  # noqa: E402
    accounting_router,
    customer_router,
    order_router,
    packing_router,
    product_router,
    register_error_handlers,
    route_router,
)

app.include_router(customer_router)
app.include_router(product_router)
app.include_router(order_router)
app.include_router(packing_router)
app.include_router(route_router)
app.include_router(accounting_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": fulfillment.name}})
