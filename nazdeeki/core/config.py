from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "nazdeeki-backend"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    CORS_ORIGINS: str = "http://localhost:5173"

    JWT_SECRET: str = "change_me_jwt"
    ACCESS_TOKEN_TTL_MINUTES: int = 15
    REFRESH_TOKEN_TTL_DAYS: int = 7

    OTP_TTL_MINUTES: int = 5
    OTP_MAX_FAILED_ATTEMPTS: int = 3
    OTP_SEND_LIMIT_PER_HOUR: int = 5

    SMS_PROVIDER: str = "2factor"  # 2factor | console
    TWOFACTOR_API_KEY: str = ""
    TWOFACTOR_BASE_URL: str = "https://2factor.in/API/V1"
    SMS_TIMEOUT_SECONDS: float = 10.0

    DB_HEALTH_CHECK_INTERVAL_SECONDS: int = 30
    CASCADE_DELETE_ISOLATION_LEVEL: str = "SERIALIZABLE"
    TEST_ROUTES_ENABLED: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
