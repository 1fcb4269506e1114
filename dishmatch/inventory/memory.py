"""
In-memory reference implementation of the collaborator ports.

Postings are mirrored into a pandas DataFrame that is rebuilt lazily after
each mutation; filter predicates are evaluated as boolean masks over it.
"""
from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime, timezone

import numpy as np
import pandas as pd

from .geo import angular_distance
from .models import Posting, PostingQuery, PreferenceSignal, RequesterProfile
from .ports import AccountDirectory, PostingRepository, PreferenceRepository, SettingsRepository
from .settings import Setting

_COLUMNS = [
    "id",
    "title",
    "owner_id",
    "slots",
    "filled",
    "start_time",
    "created_at",
    "owner_age",
    "lat",
    "lon",
    "synthetic",
    "_posting",
]


def _to_row(posting: Posting) -> dict:
    lat, lon = posting.coordinates if posting.coordinates else (np.nan, np.nan)
    return {
        "id": posting.id,
        "title": posting.title,
        "owner_id": posting.owner_id,
        "slots": posting.slots,
        "filled": posting.filled,
        "start_time": posting.start_time,
        "created_at": posting.created_at,
        "owner_age": np.nan if posting.owner_age is None else float(posting.owner_age),
        "lat": lat,
        "lon": lon,
        "synthetic": posting.synthetic,
        "_posting": posting,
    }


class InMemoryStore(PostingRepository, PreferenceRepository, AccountDirectory, SettingsRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._postings: dict[str, Posting] = {}
        self._signals: list[PreferenceSignal] = []
        self._profiles: dict[str, RequesterProfile] = {}
        self._settings: dict[str, Setting] = {}
        self._df: pd.DataFrame | None = None

    # ── Postings ──────────────────────────────────────────────────────────

    def add_posting(self, posting: Posting) -> None:
        with self._lock:
            self._postings[posting.id] = posting
            self._df = None

    def add_postings(self, postings: Iterable[Posting]) -> None:
        for posting in postings:
            self.add_posting(posting)

    def get_posting(self, posting_id: str) -> Posting | None:
        return self._postings.get(posting_id)

    def increment_filled(self, posting_id: str) -> bool:
        """Record an accepted request; ``False`` when the posting is full."""
        with self._lock:
            posting = self._postings.get(posting_id)
            if posting is None or posting.filled >= posting.slots:
                return False
            self._postings[posting_id] = posting.model_copy(
                update={
                    "filled": posting.filled + 1,
                    "last_accepted_at": datetime.now(timezone.utc),
                }
            )
            self._df = None
            return True

    def decrement_filled(self, posting_id: str) -> bool:
        with self._lock:
            posting = self._postings.get(posting_id)
            if posting is None or posting.filled == 0:
                return False
            self._postings[posting_id] = posting.model_copy(update={"filled": posting.filled - 1})
            self._df = None
            return True

    def _frame(self) -> pd.DataFrame:
        with self._lock:
            if self._df is None:
                rows = [_to_row(p) for p in self._postings.values()]
                df = pd.DataFrame(rows, columns=_COLUMNS)
                if not df.empty:
                    df["start_time"] = pd.to_datetime(df["start_time"], utc=True)
                    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
                    df["owner_age"] = df["owner_age"].astype(float)
                    df["lat"] = df["lat"].astype(float)
                    df["lon"] = df["lon"].astype(float)
                self._df = df
            return self._df

    def find_available_postings(
        self,
        query: PostingQuery,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Posting]:
        df = self._frame()
        if df.empty:
            return []

        mask = (df["start_time"] >= pd.Timestamp(query.start_from)) & (df["filled"] < df["slots"])

        if query.start_until is not None:
            mask = mask & (df["start_time"] <= pd.Timestamp(query.start_until))

        if query.exclude_owner:
            mask = mask & (df["owner_id"] != query.exclude_owner)

        if query.exclude_ids:
            mask = mask & ~df["id"].isin(list(query.exclude_ids))

        if query.synthetic is not None:
            mask = mask & (df["synthetic"] == query.synthetic)

        if query.age_between is not None:
            low, high = query.age_between
            mask = mask & df["owner_age"].between(low, high)

        if query.near is not None:
            has_coords = df["lat"].notna() & df["lon"].notna()
            angles = angular_distance(
                query.near.lat,
                query.near.lon,
                df["lat"].fillna(0.0).to_numpy(),
                df["lon"].fillna(0.0).to_numpy(),
            )
            mask = mask & has_coords & (angles <= query.near.max_distance)

        matches = df.loc[mask]
        if query.sort:
            matches = matches.sort_values(
                by=[field for field, _ in query.sort],
                ascending=[direction >= 0 for _, direction in query.sort],
                kind="mergesort",
            )

        end = None if limit is None else offset + limit
        return list(matches["_posting"].iloc[offset:end])

    # ── Preference signals ────────────────────────────────────────────────

    def record_preference_signal(self, signal: PreferenceSignal) -> bool:
        """Store *signal*; return ``True`` when it is the requester's first."""
        with self._lock:
            first = not any(s.requester_id == signal.requester_id for s in self._signals)
            self._signals.append(signal)
            profile = self._profiles.get(signal.requester_id)
            if first and profile is not None and not profile.preferences_set:
                self._profiles[signal.requester_id] = profile.model_copy(
                    update={"preferences_set": True}
                )
            return first

    def find_preference_signals(
        self,
        requester_id: str | None = None,
        account_ids: Iterable[str] | None = None,
    ) -> list[PreferenceSignal]:
        signals = list(self._signals)
        if requester_id is not None:
            return [s for s in signals if s.requester_id == requester_id]
        if account_ids is not None:
            wanted = set(account_ids)
            return [s for s in signals if s.requester_id in wanted]
        return signals

    # ── Accounts ──────────────────────────────────────────────────────────

    def upsert_profile(self, profile: RequesterProfile) -> None:
        with self._lock:
            self._profiles[profile.requester_id] = profile

    def record_login(self, requester_id: str, when: datetime | None = None) -> None:
        with self._lock:
            profile = self._profiles.get(requester_id) or RequesterProfile(requester_id=requester_id)
            self._profiles[requester_id] = profile.model_copy(
                update={"last_login": when or datetime.now(timezone.utc)}
            )

    def get_requester_profile(self, requester_id: str) -> RequesterProfile | None:
        return self._profiles.get(requester_id)

    def active_account_ids(self, since: datetime) -> set[str]:
        return {
            p.requester_id
            for p in self._profiles.values()
            if p.last_login is not None and p.last_login >= since
        }

    # ── Settings ──────────────────────────────────────────────────────────

    def get(self, key: str) -> Setting | None:
        return self._settings.get(key)

    def put(self, setting: Setting) -> None:
        with self._lock:
            self._settings[setting.key] = setting

    def clear(self) -> None:
        with self._lock:
            self._postings.clear()
            self._signals.clear()
            self._profiles.clear()
            self._settings.clear()
            self._df = None
