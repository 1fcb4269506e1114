from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..inventory.models import Coordinates, Posting, UtcDatetime


class EligibilityConstraints(BaseModel):
    requester_id: str | None = Field(default=None, min_length=1)
    start: int = Field(default=0, ge=0, description="Pagination offset")
    limit: int = Field(default=6, ge=1, le=50)
    target_city: str | None = Field(default=None, min_length=1, max_length=100)
    date_start: UtcDatetime | None = None
    date_end: UtcDatetime | None = None
    geo_radius_km: float | None = Field(default=None, ge=0.0, le=200.0)
    age_radius_years: int | None = Field(default=None, ge=0, le=200)
    include_synthetic: bool | None = Field(
        default=None,
        description="None follows the requester's preference (shown by default)",
    )
    exclude_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FilterAnchors:
    """Per-request values resolved once and shared by filter and ranker."""

    coordinates: Coordinates | None = None
    age: int | None = None
    allow_synthetic: bool = True


class RankingPath(str, Enum):
    empty = "empty"
    small_pool = "small_pool"
    cold_start = "cold_start"
    similarity = "similarity"


class RankedResult(BaseModel):
    postings: list[Posting] = Field(default_factory=list)
    path: RankingPath | None = None

    @property
    def ids(self) -> list[str]:
        return [p.id for p in self.postings]


# ── HTTP payloads ────────────────────────────────────────────────────────


class AvailableDishesRequest(BaseModel):
    requester_id: str | None = Field(default=None, min_length=1)
    start: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=1, le=50)
    location_city: str | None = Field(default=None, min_length=1, max_length=100)
    date_start: UtcDatetime | None = None
    date_end: UtcDatetime | None = None
    location_range_km: float | None = Field(default=None, ge=0.0, le=200.0)
    age_range_years: int | None = Field(default=None, ge=0, le=200)
    include_synthetic: bool | None = None

    def to_constraints(self, page_size: int) -> EligibilityConstraints:
        return EligibilityConstraints(
            requester_id=self.requester_id,
            start=self.start,
            limit=self.limit or page_size,
            target_city=self.location_city,
            date_start=self.date_start,
            date_end=self.date_end,
            geo_radius_km=self.location_range_km,
            age_radius_years=self.age_range_years,
            include_synthetic=self.include_synthetic,
        )


class RecommendedDishesRequest(BaseModel):
    requester_id: str = Field(..., min_length=1)
    previous_ids: list[str] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1, le=50)
    location_city: str | None = Field(default=None, min_length=1, max_length=100)
    date_start: UtcDatetime | None = None
    date_end: UtcDatetime | None = None
    location_range_km: float | None = Field(default=None, ge=0.0, le=200.0)
    age_range_years: int | None = Field(default=None, ge=0, le=200)
    include_synthetic: bool | None = None

    def to_constraints(self, page_size: int) -> EligibilityConstraints:
        return EligibilityConstraints(
            requester_id=self.requester_id,
            limit=self.limit or page_size,
            target_city=self.location_city,
            date_start=self.date_start,
            date_end=self.date_end,
            geo_radius_km=self.location_range_km,
            age_radius_years=self.age_range_years,
            include_synthetic=self.include_synthetic,
        )


class DishOut(BaseModel):
    id: str
    title: str
    owner_name: str | None
    slots: int
    filled: int
    start_time: datetime
    owner_age: int | None
    synthetic: bool

    @classmethod
    def from_posting(cls, posting: Posting) -> DishOut:
        return cls(
            id=posting.id,
            title=posting.title,
            owner_name=posting.owner_name,
            slots=posting.slots,
            filled=posting.filled,
            start_time=posting.start_time,
            owner_age=posting.owner_age,
            synthetic=posting.synthetic,
        )


class DishListResponse(BaseModel):
    dishes: list[DishOut]
    path: RankingPath | None = None


class AutoRetrainRequest(BaseModel):
    enabled: bool
