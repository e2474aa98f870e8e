# app/core/config.py

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- MongoDB ---
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "barbershop"

    # --- Auth0 (identity provider) ---
    AUTH0_DOMAIN: str = "https://barbershop.eu.auth0.com"
    AUTH0_AUDIENCE: str = "https://api.barbershop.local/graphql"
    AUTH0_CLIENT_ID: str | None = None
    AUTH0_CLIENT_SECRET: str | None = None
    AUTH0_BARBER_ROLE_ID: str | None = None
    AUTH0_DB_CONNECTION: str = "Username-Password-Authentication"
    HTTP_TIMEOUT: float = 10.0

    # --- S3 (profile images) ---
    AWS_REGION: str = "eu-central-1"
    S3_BUCKET_NAME: str = "barbershop-data"
    SIGNED_URL_EXPIRES_IN: int = 3600

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    MAX_LOG_LENGTH: int = 200
    SLOW_REQUEST_THRESHOLD: float = 2.0

    @property
    def auth0_base_url(self) -> str:
        return self.AUTH0_DOMAIN.rstrip("/")

    @property
    def auth0_issuer(self) -> str:
        return f"{self.auth0_base_url}/"

    @property
    def auth0_jwks_url(self) -> str:
        return f"{self.auth0_base_url}/.well-known/jwks.json"

    @property
    def auth0_management_audience(self) -> str:
        return f"{self.auth0_base_url}/api/v2/"

    # Only end-user tokens carry this audience; machine tokens don't
    @property
    def auth0_userinfo_audience(self) -> str:
        return f"{self.auth0_base_url}/userinfo"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# Singleton
settings = get_settings()
