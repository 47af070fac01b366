# backend/barberbook/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from . import __version__, models  # noqa: F401  (register tables on Base.metadata)
from .core.config import settings
from .database import Base, engine
from .routes.v1 import (
    barbershops as barbershops_v1,
    bookings as bookings_v1,
    catalog as catalog_v1,
    health as health_v1,
    prometheus as prometheus_v1,
    waitlist as waitlist_v1,
    webhooks_stripe as webhooks_stripe_v1,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown."""
    logger.info(
        "Starting BarberBook API %s (environment=%s, timezone=%s)",
        __version__,
        settings.environment,
        settings.booking_timezone,
    )
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("Shutting down BarberBook API")
    engine.dispose()


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title="BarberBook API",
    description="Slot allocation, bookings and waitlist fulfillment for barbershops",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(barbershops_v1.router, prefix="/barbershops")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(waitlist_v1.router, prefix="/waitlist")
api_v1.include_router(catalog_v1.router)
api_v1.include_router(webhooks_stripe_v1.router, prefix="/webhooks")

app.include_router(api_v1)
app.include_router(health_v1.router)
app.include_router(prometheus_v1.router)
