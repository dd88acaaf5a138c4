"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEMO_USER_PREFIX = "demo-wizard"


class Config:
    """Application configuration."""

    # Identity
    USER_ID = os.getenv("READLOG_USER_ID", f"{DEMO_USER_PREFIX}-001")

    # Storage: auto, local or postgres
    STORE = os.getenv("READLOG_STORE", "auto")
    DATA_DIR = os.getenv("READLOG_DATA_DIR", "data")

    # Database
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "readlog")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    @property
    def DATABASE_URL(self):
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def is_demo_user(self) -> bool:
        """Demo users never touch the database."""
        return self.USER_ID.startswith(DEMO_USER_PREFIX)

    # AI suggestions
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    SUGGEST_CONCURRENCY = int(os.getenv("SUGGEST_CONCURRENCY", "5"))

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
    DEFAULT_CACHE_TTL = int(os.getenv("DEFAULT_CACHE_TTL", "86400"))
