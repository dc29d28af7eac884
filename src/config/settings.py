from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PricingSettings(BaseSettings):
    """
    Cart pricing configuration.

    Values come from CART_PRICING_* environment variables or a .env file.
    """

    rounding_mode: Literal[
        "ROUND_HALF_UP",
        "ROUND_HALF_EVEN",
        "ROUND_HALF_DOWN",
        "ROUND_UP",
        "ROUND_DOWN",
        "ROUND_CEILING",
        "ROUND_FLOOR",
    ] = Field("ROUND_HALF_UP", description="decimal rounding mode for finalized amounts")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO")
    log_format: Literal["json", "console"] = Field("console")
    database_url: str = Field("sqlite:///:memory:", description="SQLAlchemy URL for cart storage")
    persist_on_compute: bool = Field(
        True, description="Write the derived set to storage right after a recompute"
    )

    model_config = SettingsConfigDict(
        env_prefix="CART_PRICING_",
        env_file=".env",
        extra="ignore",
    )
