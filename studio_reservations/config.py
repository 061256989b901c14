"""
Application settings and wiring.
"""
from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .events import EventHub
from .store import InMemoryReservationStore, ReservationStore
from .validator import BookingValidator
from .yaml_store import ReservationYamlRepository


class Settings(BaseSettings):
    """Settings loaded from ``STUDIO_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(env_prefix="STUDIO_", env_file=".env", extra="ignore")

    data_dir: str = "data"
    store_backend: Literal["yaml", "memory"] = "yaml"
    lock_timeout: float = Field(default=5.0, gt=0)
    max_log_events: int = Field(default=5000, ge=1)

    host: str = "127.0.0.1"
    port: int = 5000

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_store(settings: Settings) -> ReservationStore:
    if settings.store_backend == "memory":
        return InMemoryReservationStore(lock_timeout=settings.lock_timeout)
    return ReservationYamlRepository(
        settings.data_dir,
        lock_timeout=settings.lock_timeout,
        max_log_events=settings.max_log_events,
    )


def build_validator(settings: Settings, events: EventHub | None = None) -> BookingValidator:
    return BookingValidator(build_store(settings), events=events)
