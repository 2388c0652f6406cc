import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text

from storeops.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from storeops.core.config import settings
from storeops.db.session import engine
from storeops.routers import auth, categories, inventory, notifications, orders, products, users
from storeops.services.password_reset_service import run_password_reset_cleanup

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the password reset token sweeper and stop it on shutdown."""
    cleanup_task: asyncio.Task | None = None
    interval = settings.password_reset_cleanup_interval_seconds
    if interval > 0:
        cleanup_task = asyncio.create_task(run_password_reset_cleanup(interval))
        logger.info("password reset cleanup scheduled every %ds", interval)
    try:
        yield
    finally:
        if cleanup_task:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description=(
        "Backend API for StoreOps: storefront checkout, order fulfillment and inventory.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /auth/register` (the first account becomes admin) or `POST /auth/login`.\n"
        "2. Click **Authorize** and use your email + password "
        "(OAuth token URL: `/auth/token`).\n"
        "3. Test protected endpoints (`/products`, `/orders`, `/inventory/logs`, `/notifications`)."
    ),
    lifespan=lifespan,
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "Registration, login and password reset."},
        {"name": "users", "description": "Account approval and role management."},
        {"name": "categories", "description": "Storefront categories and subcategories."},
        {"name": "products", "description": "Product catalog, stock adjustments and scanner lookup."},
        {"name": "orders", "description": "Checkout, order lifecycle, packing and fulfillment."},
        {"name": "inventory", "description": "Inventory audit trail."},
        {"name": "notifications", "description": "In-app notifications for the signed-in user."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:5173"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Local storefront dev servers pick dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(categories.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(inventory.router)
app.include_router(notifications.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("readiness check failed")
        return {"ok": False}
    return {"ok": True}
