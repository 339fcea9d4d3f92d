# config.py
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration settings for the payment-link service"""

    # Server settings
    PORT: int = int(os.getenv("PORT", 8000))
    FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", f"http://localhost:{PORT}")
    APP_NAME: str = os.getenv("APP_NAME", "Paylinks")

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "paylinks")

    # Payment processor
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")

    # Outbound email
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", 587))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = _env_bool("SMTP_USE_TLS", True)
    SMTP_TIMEOUT: float = float(os.getenv("SMTP_TIMEOUT", 10))
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "no-reply@localhost")

    # Auction settings
    WINNER_LINK_TTL_HOURS: int = int(os.getenv("WINNER_LINK_TTL_HOURS", 48))
    DEFAULT_MIN_INCREMENT_CENTS: int = int(os.getenv("DEFAULT_MIN_INCREMENT_CENTS", 100))
    RECENT_BIDS_LIMIT: int = int(os.getenv("RECENT_BIDS_LIMIT", 10))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "")


def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    handlers = [logging.StreamHandler()]
    if Config.LOG_FILE:
        handlers.append(logging.FileHandler(Config.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
    )
