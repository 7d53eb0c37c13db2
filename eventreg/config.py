from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Event Registration Backend"
    APP_VERSION: str = "1.0.0"

    # --- DB ---
    # DATABASE_URL wins when set; otherwise a PostgreSQL URL is built from DB_*
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "events"

    # --- JWT ---
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRATION_MINUTES: int = 15
    JWT_REFRESH_EXPIRATION_DAYS: int = 7

    # --- passwords / one-time tokens ---
    PASSWORD_HASH_ROUNDS: int = 10
    RESET_TOKEN_EXPIRE_MINUTES: int = 60
    EMAIL_TOKEN_EXPIRATION: int = 86400  # seconds

    # --- mail ---
    MAIL_HOST: str = ""
    MAIL_PORT: int = 587
    MAIL_USER: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "no-reply@localhost"
    MAIL_SECURE: bool = False
    SUPPORT_EMAIL: str = "support@localhost"

    # --- first admin, created at startup when no admin exists ---
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    CLIENT_URL: str = "http://localhost:5173"
    VERIFICATION_BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # --- uploads ---
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE_MB: int = 5

    # --- cache / rate limit ---
    CACHE_TTL_SECONDS: int = 300
    CACHE_SWEEP_INTERVAL_SECONDS: int = 300
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # --- background jobs / logging ---
    CLEANUP_ENABLED: bool = True
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
