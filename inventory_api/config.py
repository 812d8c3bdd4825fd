from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Inventory Manager"
    DATABASE_URL: str = "sqlite:///./inventory.db"
    # Seconds a SQLite writer waits for the database lock
    SQLITE_BUSY_TIMEOUT: float = 30.0

    LOG_LEVEL: str = "INFO"

    # Auth
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    # Order numbering: <prefix>-<timestamp>-<sequence>
    ORDER_NUMBER_PREFIX: str = "ORD"
    ORDER_NUMBER_MAX_ATTEMPTS: int = 5

    # Retries of a whole order transaction after a lock conflict
    TRANSACTION_MAX_ATTEMPTS: int = 5
    TRANSACTION_RETRY_DELAY: float = 0.05

    DEFAULT_MIN_STOCK_LEVEL: int = 10

    # Outgoing email (empty host = email disabled)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    EMAIL_FROM: str = ""

    # Webhook: list of callback URLs for order events (comma-separated)
    WEBHOOK_URLS: str = ""

    model_config = {"env_file": ".env"}


settings = Settings()
