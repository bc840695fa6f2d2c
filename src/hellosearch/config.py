from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from hellosearch.exceptions import ConfigError


class AppConfig(BaseModel):
    """Application-specific configuration values."""

    name: str = "hellosearch"
    log_level: str = "INFO"
    # Transport settings for FastMCP: "stdio" (default), "http", or "sse"
    transport: Literal["stdio", "http", "sse"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000


class StoreConfig(BaseModel):
    """Search store connection values."""

    hosts: str = "http://127.0.0.1:9200"  # Comma-separated, tried in order on connect
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None  # Sent as "Authorization: ApiKey <key>"
    timeout: float = 30.0
    connect_timeout: float = 5.0
    verify_ssl: bool = True

    def host_list(self) -> List[str]:
        """Return configured hosts in order, without blanks or trailing slashes."""
        return [h.strip().rstrip("/") for h in self.hosts.split(",") if h.strip()]


class DemoConfig(BaseModel):
    """Names and settings used by the demo workflow."""

    collection: str = "twitter"
    schema_name: str = "tweet"
    shards: int = 1
    replicas: int = 0


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="HELLOSEARCH_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    store: StoreConfig = StoreConfig()
    demo: DemoConfig = DemoConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigError(f"Invalid hellosearch settings: {exc}") from exc
