"""
Petal Courier — FastAPI Backend
Order intake, pricing and courier claims for flower-shop deliveries
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.config import settings
from api.db.database import engine, init_models
from api.routers import admin, couriers, orders, pricing, shops, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Petal Courier API starting (region: %s)", settings.REGION_AREA)
    await init_models()
    yield
    await engine.dispose()
    logger.info("Petal Courier API shut down")


app = FastAPI(
    title="Petal Courier API",
    description="Multi-stop flower delivery order intake and courier dispatch",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(shops.router, prefix="/api/shops", tags=["Shops"])
app.include_router(couriers.router, prefix="/api/couriers", tags=["Couriers"])
app.include_router(pricing.router, prefix="/api/pricing", tags=["Pricing"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "Petal Courier API"}
