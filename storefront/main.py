# storefront/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront import __version__
from storefront.config import settings
from storefront.database import SessionLocal, init_db
from storefront.middleware.maintenance import MaintenanceMiddleware
from storefront.services.cache import TTLCache
from storefront.services.cart import CartRegistry
from storefront.services.settings import SettingsService
from storefront.utils.api_client import backend_client

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Routers
from storefront.routes.admin_catalog import router as admin_catalog_router
from storefront.routes.admin_promotions import router as admin_promotions_router
from storefront.routes.admin_store import router as admin_store_router
from storefront.routes.cart import router as cart_router
from storefront.routes.checkout import router as checkout_router
from storefront.routes.logs import router as logs_router
from storefront.routes.settings import router as settings_router
from storefront.routes.shop import router as shop_router
from storefront.routes.wishlist import router as wishlist_router


def create_app() -> FastAPI:
    app = FastAPI(title="Storefront API", version=__version__)

    # Per-process state shared by all requests
    app.state.carts = CartRegistry(idle_ttl=settings.CART_IDLE_TTL)
    app.state.settings_service = SettingsService(
        backend_client, TTLCache(settings.SETTINGS_CACHE_TTL), SessionLocal
    )

    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
        origins.append(settings.FRONTEND_URL)

    app.add_middleware(MaintenanceMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(shop_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(wishlist_router)
    app.include_router(settings_router)
    app.include_router(admin_catalog_router)
    app.include_router(admin_promotions_router)
    app.include_router(admin_store_router)
    app.include_router(logs_router)

    @app.get("/")
    def read_root():
        return {"message": "Storefront API is running", "version": __version__}

    return app


init_db()
app = create_app()
