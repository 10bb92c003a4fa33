"""Central configuration for the scavenger-hunt client service."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = ROOT_DIR / ".env"


class Settings(BaseSettings):
    """Environment-driven settings for client subsystems."""

    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="HUNTCLIENT_",
        case_sensitive=False,
        extra="ignore",
    )

    backend_api_url: str = Field("http://localhost:8000", description="Base URL for backend REST calls")
    backend_ws_url: str = Field("ws://localhost:8000", description="Base URL for backend WebSocket endpoint")
    http_timeout_seconds: float = Field(15.0, description="Timeout applied to every backend HTTP request")

    username: Optional[str] = Field(None, description="Stored player username; anonymous signup when unset")
    password: Optional[str] = Field(None, description="Stored player password")
    access_token: Optional[str] = Field(None, description="Pre-issued bearer token, skips the initial login")

    ws_reconnect_delay_seconds: float = Field(5.0, description="Delay before the single reconnect attempt")
    ws_ping_interval: float = Field(30.0, description="WebSocket keepalive ping interval")
    ws_ping_timeout: float = Field(10.0, description="WebSocket keepalive ping timeout")

    pairing_ttl_seconds: float = Field(300.0, description="Lifetime of an issued pairing code")
    pairing_cooldown_seconds: float = Field(5.0, description="Minimum spacing between pairing code requests")
    pairing_max_drift_m: float = Field(50.0, description="Drift radius before a pairing code is invalid")
    pairing_sample_seconds: float = Field(5.0, description="Position sampling interval while a code is active")

    hunt_proximity_m: float = Field(50.0, description="Distance below which the step scan is enabled")
    hunt_position_interval_seconds: float = Field(1.0, description="Position sampling interval during a hunt")
    heading_interval_seconds: float = Field(0.1, description="Heading sampling interval during a hunt")
    hunt_completion_redirect_seconds: float = Field(2.0, description="Delay before leaving a completed hunt")

    ui_host: str = Field("0.0.0.0", description="Host interface for local FastAPI server")
    ui_port: int = Field(5000, description="Port for FastAPI server")

    log_level: str = Field("INFO", description="Logging level for the client")


@lru_cache()
def get_settings(override_env_file: Optional[Path] = None) -> Settings:
    """Cached Settings instance; accepts optional env override for tests."""

    if override_env_file:
        return Settings(_env_file=str(override_env_file))
    return Settings()
