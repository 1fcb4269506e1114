from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from dishmatch.analytics.store import clear_events
from dishmatch.discovery.config import DiscoveryConfig
from dishmatch.discovery.service import DiscoveryService
from dishmatch.inventory.geo import StaticPlaceResolver
from dishmatch.inventory.memory import InMemoryStore
from dishmatch.inventory.models import Posting

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)

PLACES = {
    "Berlin": (52.52, 13.405),
    "Potsdam": (52.3906, 13.0645),
    "Munich": (48.1351, 11.582),
}


@pytest.fixture(autouse=True)
def _fresh_events():
    clear_events()
    yield
    clear_events()


@pytest.fixture
def config() -> DiscoveryConfig:
    return DiscoveryConfig(
        geo_radius_km=25.0,
        age_radius_years=10,
        page_size=6,
        neighbors_per_signal=10,
        retrain_interval_s=3600.0,
        active_account_days=7,
        collaborator_timeout_s=None,
    )


@pytest.fixture
def make_posting():
    counter = itertools.count()

    def _make(title: str = "Dish", **overrides) -> Posting:
        n = next(counter)
        data = {
            "id": f"p{n:03d}",
            "title": title,
            "description": f"{title} cooked at home",
            "owner_id": "owner",
            "slots": 4,
            "filled": 0,
            "start_time": NOW + timedelta(days=1, hours=n),
            "created_at": NOW - timedelta(days=1) + timedelta(minutes=n),
        }
        data.update(overrides)
        return Posting(**data)

    return _make


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def places() -> StaticPlaceResolver:
    return StaticPlaceResolver(PLACES)


@pytest.fixture
def service(store, places, config) -> DiscoveryService:
    svc = DiscoveryService(store, store, store, places, store, config=config, clock=lambda: NOW)
    yield svc
    svc.stop()


@pytest.fixture
def now() -> datetime:
    return NOW
