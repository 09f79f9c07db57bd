"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///addiscare_local.db"

    # Local development mode (set ADDISCARE_LOCAL_MODE=1 for console logs)
    local_mode: bool = False

    # JWT (tokens are issued by the account service; we only verify them)
    jwt_secret: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "addiscare-api"
    jwt_audience: str = "addiscare"
    jwt_access_token_expire_minutes: int = 60

    # CORS
    cors_allowed_origins: list[str] = ["http://localhost:3000"]

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "info"

    # Notifications
    notification_page_default: int = 20
    notification_page_max: int = 100

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "ADDISCARE_",
    }


settings = Settings()
