"""
Application configuration

Settings are read from the environment (a local .env file is loaded first,
noop if not present). Tests replace the active settings with set_settings().
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

ONE_MEGABYTE = 1_000_000


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    app_env: str = "development"
    port: int = 8000
    database_url: Optional[str] = None
    database_name: str = "blog"
    secret_key: str = "dev-secret-key-change-me"
    access_token_expire_minutes: int = 60 * 24 * 30
    max_file_upload: int = ONE_MEGABYTE
    file_upload_path: str = "./uploads"
    api_prefix: str = "/api"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def upload_size_limit(self) -> int:
        """Configured ceiling, never above 1MB."""
        return min(self.max_file_upload, ONE_MEGABYTE)

    @classmethod
    def from_env(cls) -> "Settings":
        cors_raw = os.getenv("CORS_ORIGINS", "*").strip()
        cors_origins = [p.strip() for p in cors_raw.split(",") if p.strip()] or ["*"]

        prefix = os.getenv("API_PREFIX", "/api").strip().rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = "/" + prefix

        return cls(
            app_env=os.getenv("APP_ENV", "development").strip().lower(),
            port=_int_env("PORT", 8000),
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME") or "blog",
            secret_key=os.getenv("SECRET_KEY", "dev-secret-key-change-me"),
            access_token_expire_minutes=_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 30),
            max_file_upload=_int_env("MAX_FILE_UPLOAD", ONE_MEGABYTE),
            file_upload_path=os.getenv("FILE_UPLOAD_PATH", "./uploads"),
            api_prefix=prefix,
            cors_origins=cors_origins,
            log_level=os.getenv("LOG_LEVEL") or None,
        )


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the active settings (None re-reads the environment on next use)."""
    global _SETTINGS
    _SETTINGS = settings


LOGGER_NAME = "blog_api"


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the service logger once per process.

    DEBUG in development, INFO elsewhere; LOG_LEVEL overrides both.
    """
    settings = settings or get_settings()
    level = logging.DEBUG if settings.is_development else logging.INFO
    if settings.log_level:
        level = getattr(logging, settings.log_level.strip().upper(), level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(handler)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)
