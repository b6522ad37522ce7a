from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.health import router as health_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_checkout import router as checkout_router
from storefront.api.routes_inventory import router as inventory_router
from storefront.config import settings
from storefront.db import SessionLocal, init_db
from storefront.services.cart_service import CartService
from storefront.utils.logging import get_logger

log = get_logger(__name__)


def purge_stale_carts_job():
    db = SessionLocal()
    try:
        CartService(db).purge_stale_carts()
    except Exception:
        log.exception("Stale cart purge failed")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    init_db()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        purge_stale_carts_job,
        "interval",
        seconds=settings.CART_CLEANUP_INTERVAL_SECONDS,
        id="purge_stale_carts",
    )
    scheduler.start()

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Storefront - Cart & Checkout", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(cart_router, tags=["cart"])

app.include_router(inventory_router, tags=["inventory"])

app.include_router(checkout_router, tags=["checkout"])


def run():
    uvicorn.run("storefront.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
