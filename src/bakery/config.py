"""Runtime settings for the bakery context.

Values are read from ``BAKERY_*`` environment variables (or a ``.env`` file)
and cached for the lifetime of the process.
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BakerySettings(BaseSettings):
    """Business constants and operational knobs."""

    # Application
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    LOG_LEVEL: str | None = None

    # Money
    TAX_RATE: float = 0.23
    POINT_VALUE: float = 0.01
    POINTS_PER_CURRENCY_UNIT: float = 1.0

    # Cart
    CART_TTL_HOURS: int = 24
    MAX_ITEM_QUANTITY: int = 50
    MAX_CART_ITEMS: int = 100
    DELIVERY_FEE: float = 2.50
    DISCOUNT_CODES: dict[str, float] = {"WELCOME10": 10.0}

    # Orders
    ORDER_NUMBER_PREFIX: str = "SP"
    CHECKOUT_RETRIES: int = 3

    # Loyalty
    LOYALTY_REDEMPTION_RETRIES: int = 3

    # Delivery
    BAKERY_LATITUDE: float = 38.7223
    BAKERY_LONGITUDE: float = -9.1393
    AVERAGE_SPEED_KMH: float = 25.0
    PICKUP_BUFFER_MINUTES: int = 15
    DEFAULT_PREPARATION_MINUTES: int = 45
    LOCATION_HISTORY_LIMIT: int = 100

    model_config = SettingsConfigDict(
        env_prefix="BAKERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("TAX_RATE", "POINT_VALUE")
    @classmethod
    def must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be non-negative")
        return v

    @field_validator("LOCATION_HISTORY_LIMIT", "MAX_ITEM_QUANTITY", "MAX_CART_ITEMS")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


@lru_cache
def get_settings() -> BakerySettings:
    """Return the cached settings instance."""
    return BakerySettings()
