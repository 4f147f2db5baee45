from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # MongoDB replica set URL, change streams need one
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    auth_url: str  # Base URL of the identity provider, e.g. https://xyz.supabase.co
    auth_api_key: str  # Public (anon) API key sent as the `apikey` header
    auth_timeout: float = 10.0  # Seconds before an identity provider call is abandoned
    site_url: str  # Public URL of this app, used to build auth redirect targets
    oauth_provider: str = "google"
    cookie_secure: bool = False  # Set to True in production with HTTPS
    cors_origins: list[str] = []

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SMARTMARKS_",
        "extra": "ignore",
    }
