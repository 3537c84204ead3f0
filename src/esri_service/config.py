"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "esri-import"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Feature service
    service_url: str = ""               # ArcGIS layer query URL; may be set per request
    source_id_field: str = "OBJECTID"   # attribute used to dedup features
    out_sr: int = 4326                  # output spatial reference requested from the service
    bbox_precision: int = 6             # decimals in the query envelope
    fetch_timeout: float = 10.0         # seconds
    user_agent: str = "esri-import/0.1.0"

    # Re-query this long after the last map move
    move_debounce_seconds: float = 0.5


settings = Settings()
