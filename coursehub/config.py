"""
CourseHub configuration
All settings come from the environment (a local .env file is loaded first)
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str
    stripe_secret_key: str
    frontend_domain: str
    checkout_currency: str
    mail_username: str
    mail_password: str
    mail_from: str
    mail_server: str
    mail_port: int
    media_root: str
    media_url: str
    certificate_url_prefix: str
    resubmission_clears_grade: bool
    log_level: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./coursehub.db"),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
        frontend_domain=os.getenv("FRONTEND_DOMAIN", "http://localhost:3000"),
        checkout_currency=os.getenv("CHECKOUT_CURRENCY", "usd"),
        mail_username=os.getenv("MAIL_USERNAME", ""),
        mail_password=os.getenv("MAIL_PASSWORD", ""),
        mail_from=os.getenv("MAIL_FROM", "noreply@coursehub.app"),
        mail_server=os.getenv("MAIL_SERVER", "smtp.gmail.com"),
        mail_port=int(os.getenv("MAIL_PORT", "587")),
        media_root=os.getenv("MEDIA_ROOT", "./media"),
        media_url=os.getenv("MEDIA_URL", "/media"),
        certificate_url_prefix=os.getenv("CERTIFICATE_URL_PREFIX", "/certificates"),
        # Keep an instructor's grade visible after a student resubmits unless told otherwise
        resubmission_clears_grade=_flag("RESUBMISSION_CLEARS_GRADE"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: Settings = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
