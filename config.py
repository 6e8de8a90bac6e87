from pydantic_settings import BaseSettings, SettingsConfigDict


class ENV(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DEBUG: bool = False

    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_NAME: str = "studyhub"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASS: str = ""
    # overrides the postgres parts above when set (tests, one-off scripts)
    DATABASE_URL: str | None = None

    redis_url: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    CELERY_TIMEZONE: str = "Asia/Colombo"

    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # PayHere merchant credentials: live, sandbox for the deployed site, sandbox for localhost
    PAYHERE_MERCHANT_ID: str = ""
    PAYHERE_MERCHANT_SECRET: str = ""
    PAYHERE_SANDBOX_MERCHANT_ID: str = ""
    PAYHERE_SANDBOX_SECRET_WEB: str = ""
    PAYHERE_SANDBOX_SECRET_LOCALHOST: str = ""

    # PayHere merchant API (OAuth client credentials) used for refunds
    PAYHERE_APP_ID: str = ""
    PAYHERE_APP_SECRET: str = ""
    PAYHERE_SANDBOX_APP_ID: str = ""
    PAYHERE_SANDBOX_APP_SECRET: str = ""

    REFUND_OTP_CODE: str = ""

    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""


class Settings():
    def __init__(self):
        self.env = ENV()

    def generate_postgres_url(self) -> str:
        if self.env.DATABASE_URL:
            return self.env.DATABASE_URL
        return f"postgresql+asyncpg://{self.env.POSTGRES_USER}:{self.env.POSTGRES_PASS}@{self.env.POSTGRES_HOST}:{self.env.POSTGRES_PORT}/{self.env.POSTGRES_NAME}"
