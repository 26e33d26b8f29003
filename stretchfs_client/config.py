"""Configuration management using pydantic-settings."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DOMAIN = "vidcache.net"
DEFAULT_PORT = 8161
DEFAULT_TIMEOUT = 60.0


class ClientConfig(BaseModel):
    """Connection configuration held by a client for its whole lifetime."""

    model_config = ConfigDict(frozen=True)

    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    token: Optional[str] = Field(default=None, repr=False)
    domain: str = DEFAULT_DOMAIN
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}:{self.port}/"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


class ClientSettings(BaseSettings):
    """Client settings loaded from STRETCHFS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STRETCHFS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    domain: str = DEFAULT_DOMAIN
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
