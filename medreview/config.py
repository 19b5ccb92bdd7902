# medreview/config.py
import logging
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    database_url: str = Field(..., validation_alias="DATABASE_URL")

    openai_api_key: str | None = Field(None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(None, validation_alias="OPENAI_BASE_URL")
    llm_model: str = Field("gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_temperature: float = Field(0.2, validation_alias="LLM_TEMPERATURE")

    # Hosted identity provider (Clerk)
    clerk_secret_key: str | None = Field(None, validation_alias="CLERK_SECRET_KEY")
    clerk_jwks_url: str | None = Field(None, validation_alias="CLERK_JWKS_URL")
    clerk_issuer: str | None = Field(None, validation_alias="CLERK_ISSUER")
    clerk_api_url: str = Field(
        "https://api.clerk.com/v1", validation_alias="CLERK_API_URL"
    )

    # Attachments are not uploaded anywhere; this only prefixes the stored path.
    upload_url_prefix: str = Field("/uploads", validation_alias="UPLOAD_URL_PREFIX")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], validation_alias="CORS_ORIGINS")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """
    Install a single stream handler on the root logger.
    Safe to call more than once (basicConfig is a no-op after the first call).
    """
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
