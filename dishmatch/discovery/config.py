from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    return float(raw) if raw else None


@dataclass(frozen=True)
class DiscoveryConfig:
    geo_radius_km: float = field(default_factory=lambda: _env_float("DISH_GEO_RADIUS_KM", 25.0))
    age_radius_years: int = field(default_factory=lambda: _env_int("DISH_AGE_RADIUS_YEARS", 10))
    page_size: int = field(default_factory=lambda: _env_int("DISH_PAGE_SIZE", 6))
    neighbors_per_signal: int = field(
        default_factory=lambda: _env_int("DISH_NEIGHBORS_PER_SIGNAL", 10)
    )
    retrain_interval_s: float = field(
        default_factory=lambda: _env_float("DISH_RETRAIN_INTERVAL_S", 3600.0)
    )
    active_account_days: int = field(
        default_factory=lambda: _env_int("DISH_ACTIVE_ACCOUNT_DAYS", 7)
    )
    # None waits on collaborators indefinitely
    collaborator_timeout_s: float | None = field(
        default_factory=lambda: _env_optional_float("DISH_COLLABORATOR_TIMEOUT_S")
    )

    @property
    def active_account_window(self) -> timedelta:
        return timedelta(days=self.active_account_days)


DEFAULT_DISCOVERY_CONFIG = DiscoveryConfig()
