"""
HTTP settings for the Varadhi admin API.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Admin API configuration loaded from environment."""

    host: str = Field(default="0.0.0.0", description="Admin API bind host")
    port: int = Field(default=8080, description="Admin API bind port")

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )

    user_header: str = Field(default="X-User-ID", description="Header carrying the subject")

    model_config = {"env_prefix": "VARADHI_"}

    @property
    def bind_address(self) -> str:
        return f"{self.host}:{self.port}"
