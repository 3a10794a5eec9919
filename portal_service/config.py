from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional


class Settings(BaseSettings):
    # App config
    app_name: str = "Trade Portal"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "default"
    log_config_path: Optional[str] = None

    # Supabase (identity gateway + profile store)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""
    gateway_connect_attempts: int = 30
    gateway_connect_interval: float = 0.1

    # Browser-facing integrations
    google_client_id: str = ""
    google_maps_api_key: str = ""
    site_url: str = "http://localhost:3000"

    # Redis (server-side sessions)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # Sessions
    session_cookie_name: str = "portal_session"
    oauth_flow_cookie_name: str = "portal_oauth_flow"
    session_ttl_days: int = 7
    remember_me_ttl_days: int = 30
    oauth_flow_ttl_seconds: int = 600
    secure_cookies: bool = False

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @field_validator('session_ttl_days', 'remember_me_ttl_days')
    @classmethod
    def validate_ttl(cls, v):
        if v < 1:
            raise ValueError('Session TTL must be at least 1 day')
        return v

    @field_validator('gateway_connect_attempts')
    @classmethod
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError('At least one gateway connection attempt is required')
        return v

    @property
    def callback_url(self) -> str:
        """Absolute URL of the OAuth / email-link callback route"""
        return f"{self.site_url.rstrip('/')}/auth/callback"

    def public_config(self) -> dict:
        """Configuration that is safe to hand to the browser"""
        return {
            "google_client_id": self.google_client_id or None,
            "google_maps_api_key": self.google_maps_api_key or None,
            "site_url": self.site_url,
        }


settings = Settings()


def get_settings() -> Settings:
    return settings
