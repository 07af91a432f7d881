# salonhub/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "Salon Hub"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    # lifetime of the marker handed out after a successful /2fa/verify
    TWO_FA_MARKER_EXPIRE_MINUTES: int = 5

    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "salonhub"
    DB_PASSWORD: str = ""
    DB_NAME: str = "salonhub"
    DATABASE_URL: str | None = None

    # --- TOTP ---
    TOTP_ISSUER: str = "Salon Hub"
    TOTP_DIGITS: int = 6
    TOTP_PERIOD: int = 30
    # tried in order, each one wider than the last (±steps of TOTP_PERIOD)
    TOTP_TOLERANCE_TIERS: tuple[int, ...] = (2, 5, 10)

    RECOVERY_CODE_COUNT: int = 10
    RECOVERY_CODE_BYTES: int = 4

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


settings = Settings()  # type: ignore[call-arg]
