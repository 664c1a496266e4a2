"""Configuration management for the payroll engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    engine_version: str
    jurisdiction: str
    log_level: str
    calculation_workers: int
    default_pay_frequency: str

    def __post_init__(self) -> None:
        if self.calculation_workers < 1:
            raise ValueError("calculation_workers must be at least 1")
        if self.default_pay_frequency not in ("weekly", "biweekly", "monthly"):
            raise ValueError("default_pay_frequency must be weekly, biweekly or monthly")

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            jurisdiction=os.getenv("PAYROLL_JURISDICTION", "TL"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            calculation_workers=int(os.getenv("CALCULATION_WORKERS", "4")),
            default_pay_frequency=os.getenv("DEFAULT_PAY_FREQUENCY", "monthly").lower(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured log level to the package logger."""
    settings = settings or get_settings()
    logger = logging.getLogger("tl_payroll")
    logger.setLevel(settings.log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
