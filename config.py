from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Zenskar API
    zenskar_api_base_url: Optional[str] = None
    zenskar_api_version: str = "20230501"
    user_agent: str = "Zenskar-MCP-Server/1.0.0"

    # Process-level credential fallback
    zenskar_organization: Optional[str] = None
    zenskar_auth_token: Optional[str] = None
    allow_environment_credentials: bool = True

    # Tool catalog
    tools_config_path: str = "catalog/tools.yaml"
    max_response_length: int = 50000

    # Usage telemetry
    usage_telemetry_enabled: bool = True
    database_url: Optional[str] = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    logger.info(f"Settings loaded - API base URL: {settings.zenskar_api_base_url or 'catalog default'}")
    logger.info(
        f"Settings loaded - Environment credentials: "
        f"organization={'set' if settings.zenskar_organization else 'unset'}, "
        f"token={'set' if settings.zenskar_auth_token else 'unset'}, "
        f"fallback {'enabled' if settings.allow_environment_credentials else 'disabled'}"
    )
    return settings
