from __future__ import annotations

from ..inventory.geo import StaticPlaceResolver
from ..inventory.memory import InMemoryStore
from .service import DiscoveryService

_store: InMemoryStore | None = None
_places: StaticPlaceResolver | None = None
_service: DiscoveryService | None = None


def get_store() -> InMemoryStore:
    """Return the process-wide inventory store, creating it on first call."""
    global _store
    if _store is None:
        _store = InMemoryStore()
    return _store


def get_place_resolver() -> StaticPlaceResolver:
    global _places
    if _places is None:
        _places = StaticPlaceResolver()
    return _places


def get_service() -> DiscoveryService:
    """Return the process-wide discovery service wired to the in-memory store."""
    global _service
    if _service is None:
        store = get_store()
        _service = DiscoveryService(
            postings=store,
            preferences=store,
            accounts=store,
            places=get_place_resolver(),
            settings=store,
        )
    return _service


def reset() -> None:
    """Drop all inventory and start over with a fresh service."""
    global _service
    if _service is not None:
        _service.stop()
    _service = None
    get_store().clear()
    get_place_resolver().clear()
