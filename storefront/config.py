# storefront/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    # Tokens are issued by the managed auth provider, we only verify them
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    DATABASE_URL: str = "sqlite:///./storefront.db"

    # External backend API
    API_URL: str = "http://localhost:5000"
    API_TIMEOUT: float = 10.0
    FRONTEND_URL: str = "http://localhost:3000"

    # Pricing
    CURRENCY: str = "GHS"
    TAX_RATE: float = 0.0

    SETTINGS_CACHE_TTL: float = 300.0

    # Carts untouched for this long are dropped from memory
    CART_IDLE_TTL: float = 7 * 24 * 3600.0

    # Checkout
    ORDER_NUMBER_PREFIX: str = "VT"
    ORDER_MAX_ATTEMPTS: int = 3
    ORDER_RETRY_BACKOFF: float = 0.5
    PAYSTACK_PUBLIC_KEY: str = ""

    # Images
    IMAGE_CDN_URL: str = "https://files.hogtechgh.com"
    PLACEHOLDER_IMAGE: str = "/placeholders/placeholder-product.webp"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
