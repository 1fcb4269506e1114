"""Collaborator ports consumed by the discovery engine."""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from .models import Coordinates, Posting, PostingQuery, PreferenceSignal, RequesterProfile
from .settings import Setting


class PostingRepository(ABC):
    """Indexed posting store supporting range, inequality and sphere queries."""

    @abstractmethod
    def find_available_postings(
        self,
        query: PostingQuery,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Posting]:
        """Return postings matching *query*, sorted by ``query.sort``."""
        ...


class PreferenceRepository(ABC):
    @abstractmethod
    def find_preference_signals(
        self,
        requester_id: str | None = None,
        account_ids: Iterable[str] | None = None,
    ) -> list[PreferenceSignal]:
        """Return signals for one requester, or for a set of accounts.

        Signals come back in the order they were recorded.
        """
        ...


class AccountDirectory(ABC):
    @abstractmethod
    def get_requester_profile(self, requester_id: str) -> RequesterProfile | None:
        ...

    @abstractmethod
    def active_account_ids(self, since: datetime) -> set[str]:
        """Ids of accounts whose last login is at or after *since*."""
        ...


class PlaceResolver(ABC):
    @abstractmethod
    def resolve_coordinates(self, place_name: str) -> Coordinates | None:
        """Return ``(lat, lon)`` for *place_name*; unknown names give ``None``."""
        ...


class SettingsRepository(ABC):
    @abstractmethod
    def get(self, key: str) -> Setting | None:
        ...

    @abstractmethod
    def put(self, setting: Setting) -> None:
        ...
