import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file automatically
load_dotenv()

SQUARE_PRODUCTION_URL = "https://connect.squareup.com"
SQUARE_SANDBOX_URL = "https://connect.squareupsandbox.com"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Square credentials
    SQUARE_ACCESS_TOKEN: str
    SQUARE_ENVIRONMENT: str = Field(
        default="sandbox",
        validation_alias=AliasChoices("SQUARE_ENVIRONMENT", "squareEnvironment"),
    )
    SQUARE_API_VERSION: str = "2024-10-17"
    SQUARE_BASE_URL: str | None = None
    SQUARE_REQUEST_TIMEOUT: float = 10.0
    SQUARE_MAX_RETRIES: int = 3

    # Webhook verification (Optional)
    SQUARE_WEBHOOK_SIGNATURE_KEY: str | None = None
    SQUARE_WEBHOOK_NOTIFICATION_URL: str | None = None

    DEFAULT_CURRENCY: str = "USD"

    # App settings
    APP_NAME: str = "Square Payment Gateway"
    ENVIRONMENT: Literal["development", "test", "production"] = "development"

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, frozen=True, extra="ignore"
    )

    def __init__(self, **kwargs):
        # Check for the access token before calling parent constructor
        if not kwargs.get("SQUARE_ACCESS_TOKEN") and not os.getenv(
            "SQUARE_ACCESS_TOKEN"
        ):
            raise RuntimeError(
                "SQUARE_ACCESS_TOKEN not set; create .env or export the variable"
            )
        super().__init__(**kwargs)

    @property
    def is_production(self) -> bool:
        return self.SQUARE_ENVIRONMENT == "production"

    @property
    def square_environment(self) -> str:
        """Normalized environment name; anything but production is sandbox."""
        return "production" if self.is_production else "sandbox"

    @property
    def square_base_url(self) -> str:
        if self.SQUARE_BASE_URL:
            return self.SQUARE_BASE_URL.rstrip("/")
        return SQUARE_PRODUCTION_URL if self.is_production else SQUARE_SANDBOX_URL
