"""Parcel flow configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParcelFlowConfig(BaseSettings):
    """Runtime config for the parcel flow and its FastAPI adapter."""

    model_config = SettingsConfigDict(env_prefix="PARCELFLOW_")

    tracking_id_prefix: str = "PRCL"
    tracking_id_max_attempts: int = Field(default=5, ge=1)
    enforce_rider_availability: bool = True

    currency: str = "usd"
    site_domain: str = "http://localhost:5173"
    stripe_secret_key: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    payment_gateway_timeout: float = Field(default=10.0, gt=0)

    retry_enabled: bool = True
    retry_max_attempts: int = Field(default=5, ge=1)
    retry_backoff_seconds: int = Field(default=60, ge=0)
