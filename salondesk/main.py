from sqlalchemy import text

from salondesk.core.errors import InventoryError
from salondesk.core.observability import (
    http_exception_handler,
    inventory_error_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from salondesk.core.config import settings
from salondesk.db.session import engine
from salondesk.routers import clients, inventory, materials, orders, sales, services, visits

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Back-office API for SalonDesk.\n\n"
        "Every stock change is recorded as a ledger movement grouped under a stock "
        "transaction. Sales, usage, order deliveries and visit closes are applied "
        "atomically: either every line lands or none does."
    ),
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "materials", "description": "Material catalog, groups, low stock and ledger reconciliation."},
        {"name": "inventory", "description": "Manual stock corrections, movement history and transactions."},
        {"name": "sales", "description": "Retail sales, product usage and their history."},
        {"name": "orders", "description": "Supplier orders and receiving deliveries into stock."},
        {"name": "clients", "description": "Clients, client groups and purchase history."},
        {"name": "services", "description": "Service catalog used on visits."},
        {"name": "visits", "description": "Visits, recorded services and materials, and visit close."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(InventoryError, inventory_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Front desk tablets run the web app from dynamic localhost ports during development.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(materials.groups_router)
app.include_router(materials.router)
app.include_router(inventory.router)
app.include_router(sales.router)
app.include_router(orders.router)
app.include_router(clients.groups_router)
app.include_router(clients.router)
app.include_router(services.router)
app.include_router(visits.router)


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
        return {"ok": False}
    return {"ok": True}
