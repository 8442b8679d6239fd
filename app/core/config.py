# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - RAZORPAY_KEY_ID (public key id, handed to the checkout modal)
    """

    PROJECT_NAME: str = "Nellai Vegetable Shop API"
    API_V1_STR: str = "/api/v1"

    BACKEND_CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    # DB config
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Human-facing order numbers, e.g. NVS482913
    ORDER_NUMBER_PREFIX: str = "NVS"
    ORDER_NUMBER_DIGITS: int = 6

    # Pricing (amounts in major units, INR)
    CURRENCY: str = "INR"
    FREE_DELIVERY_THRESHOLD: float = 500.0
    DELIVERY_FEE: float = 50.0

    # Payment modal branding
    SHOP_NAME: str = "Nellai Vegetable Shop"
    SHOP_DESCRIPTION: str = "Fresh vegetables and fruits"
    RAZORPAY_KEY_ID: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
