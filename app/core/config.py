"""Application configuration."""

from os import getenv

from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime settings for the application."""

    app_name: str = "Delivery Marketplace Core API"
    app_env: str = getenv("APP_ENV", "dev")
    debug: bool = getenv("DEBUG", "0") == "1"
    log_level: str = getenv("LOG_LEVEL", "INFO")
    database_url: str = getenv("DATABASE_URL", "sqlite:///./marketplace.db")
    jwt_secret_key: str = getenv("JWT_SECRET_KEY", "dev-only-change-me-to-a-long-random-secret")
    jwt_algorithm: str = getenv("JWT_ALGORITHM", "HS256")
    jwt_expire_minutes: int = int(getenv("JWT_EXPIRE_MINUTES", "60"))
    admin_email: str = getenv("ADMIN_EMAIL", "admin@example.com")
    admin_password: str = getenv("ADMIN_PASSWORD", "")
    currency_code: str = getenv("CURRENCY_CODE", "NGN")
    distance_provider_url: str = getenv(
        "DISTANCE_PROVIDER_URL", "https://maps.googleapis.com/maps/api/distancematrix/json"
    )
    distance_provider_api_key: str = getenv("DISTANCE_PROVIDER_API_KEY", "")
    distance_provider_timeout_seconds: float = float(getenv("DISTANCE_PROVIDER_TIMEOUT_SECONDS", "5"))
    store_origin: str = getenv("STORE_ORIGIN", "")
    concurrency_retry_attempts: int = int(getenv("CONCURRENCY_RETRY_ATTEMPTS", "5"))


settings: Settings = Settings()
