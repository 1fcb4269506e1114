from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, model_validator

Coordinates = tuple[float, float]


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# Naive timestamps are read as UTC so they compare with the engine clock
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class Posting(BaseModel):
    """A single offer of a home-cooked meal ("dish")."""

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    owner_id: str
    owner_name: str | None = None
    slots: int = Field(..., ge=1)
    filled: int = Field(default=0, ge=0)
    start_time: UtcDatetime
    created_at: UtcDatetime
    last_accepted_at: UtcDatetime | None = None
    owner_age: int | None = Field(default=None, ge=0)
    coordinates: Coordinates | None = None
    synthetic: bool = False

    @model_validator(mode="after")
    def _filled_within_slots(self) -> Posting:
        if self.filled > self.slots:
            raise ValueError("filled must not exceed slots")
        return self

    def is_available(self, now: datetime) -> bool:
        return self.filled < self.slots and self.start_time >= now


class PreferenceSignal(BaseModel):
    requester_id: str
    subject_title: str = Field(..., min_length=1)
    liked: bool
    description: str = ""
    timestamp: UtcDatetime


class RequesterProfile(BaseModel):
    requester_id: str
    home_coordinates: Coordinates | None = None
    date_of_birth: date | None = None
    show_synthetic: bool = True
    last_login: UtcDatetime | None = None
    preferences_set: bool = False


class GeoWithin(BaseModel):
    """Sphere query in the store's native unit (radians on the unit sphere)."""

    lat: float
    lon: float
    max_distance: float = Field(..., ge=0.0)


class PostingQuery(BaseModel):
    """
    Store-level filter predicate for available postings.

    Every populated field narrows the result; the conditions are combined
    as a conjunction.
    """

    start_from: UtcDatetime
    start_until: UtcDatetime | None = None
    exclude_owner: str | None = None
    exclude_ids: frozenset[str] = frozenset()
    near: GeoWithin | None = None
    age_between: tuple[int, int] | None = None
    # None shows both, False authentic only, True synthetic only
    synthetic: bool | None = None
    sort: tuple[tuple[str, int], ...] = (("synthetic", 1), ("start_time", 1), ("id", 1))
