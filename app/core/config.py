from pydantic import model_validator
from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "GAMCA Appointments"
    API_V1_STR: str = "/api/v1"
    APP_ENV: str = "production" # development, production, test
    # Echoes the OTP in the send-otp response. Refused in production.
    OTP_TEST_MODE: bool = False
    LOG_LEVEL: str = "INFO"

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "gamca"
    DATABASE_URL: Optional[str] = None
    AUTO_CREATE_TABLES: bool = True

    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_BACKEND: str = "memory" # memory, redis
    OTP_EXPIRE_MINUTES: int = 10
    OTP_RATE_LIMIT_MAX_REQUESTS: int = 3
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 60

    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    PAYMENT_CURRENCY: str = "INR"

    TWOFACTOR_API_KEY: str = ""
    TWOFACTOR_TEMPLATE: str = "AUTOGEN2"

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "noreply@gamca.in"
    ADMIN_EMAIL: str = "admin@gamca.in"

    FRONTEND_URL: str = "http://localhost:3000"
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    HTTP_TIMEOUT_SECONDS: float = 10.0

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

    @model_validator(mode="after")
    def check_otp_test_mode(self):
        if self.OTP_TEST_MODE and self.is_production:
            raise ValueError("OTP_TEST_MODE cannot be enabled when APP_ENV is production")
        return self

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.FRONTEND_URL.split(",") if origin.strip()]

settings = Settings()
