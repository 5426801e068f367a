import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 🧠 App Info
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Clinic Desk")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "true").lower() == "true"

    # 🗄️ Database (PostgreSQL or fallback SQLite)
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "strongpass")
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "clinic")

    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
    )

    # 📦 File storage
    REPORTS_DIR: str = os.getenv("REPORTS_DIR", "/tmp/reports")

    # 🔒 Identity provider handoff
    IDENTITY_SECRET: str = os.getenv("IDENTITY_SECRET", "changeme")
    IDENTITY_HEADER: str = os.getenv("IDENTITY_HEADER", "X-Clinic-Identity")
    IDENTITY_MAX_AGE_SECONDS: int = int(os.getenv("IDENTITY_MAX_AGE_SECONDS", 3600))

    # 🔢 Human readable identifiers
    SALE_ID_PREFIX: str = os.getenv("SALE_ID_PREFIX", "SAL")
    SEQUENCE_WIDTH: int = int(os.getenv("SEQUENCE_WIDTH", 6))

    # 📄 Listing
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", 10))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", 100))

    # 💬 Public feedback form
    FEEDBACK_RATE_LIMIT: int = int(os.getenv("FEEDBACK_RATE_LIMIT", 5))
    FEEDBACK_RATE_WINDOW_SECONDS: int = int(os.getenv("FEEDBACK_RATE_WINDOW_SECONDS", 3600))
    FEEDBACK_DUPLICATE_HOURS: int = int(os.getenv("FEEDBACK_DUPLICATE_HOURS", 24))

    # 🕓 Logs
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
