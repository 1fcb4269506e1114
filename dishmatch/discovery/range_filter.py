"""
Eligibility predicate for postings.

Turns per-request constraints plus the requester's profile into a store
query: availability window, free capacity, ownership and id exclusions,
distance around a geographic anchor, an age band around the requester's
age at the event, and synthetic visibility.  Results are ordered by
``(synthetic, start_time, id)`` so offset pagination stays stable.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, timezone

from ..inventory.geo import km_to_radians
from ..inventory.models import GeoWithin, Posting, PostingQuery, RequesterProfile
from ..inventory.ports import AccountDirectory, PlaceResolver, PostingRepository
from .config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from .errors import call_collaborator
from .models import EligibilityConstraints, FilterAnchors

logger = logging.getLogger(__name__)

DEFAULT_SORT = (("synthetic", 1), ("start_time", 1), ("id", 1))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def posting_order_key(posting: Posting) -> tuple[bool, datetime, str]:
    return (posting.synthetic, posting.start_time, posting.id)


def age_at(date_of_birth: date, moment: datetime) -> int:
    """Whole years between *date_of_birth* and *moment*."""
    when = moment.date()
    before_birthday = (when.month, when.day) < (date_of_birth.month, date_of_birth.day)
    return when.year - date_of_birth.year - int(before_birthday)


def window_is_valid(constraints: EligibilityConstraints, now: datetime) -> bool:
    """Check the requested date window; a malformed one means "no results"."""
    start, end = constraints.date_start, constraints.date_end
    if start is not None and start <= now:
        return False
    if end is not None:
        if end <= now:
            return False
        if start is not None and end <= start:
            return False
    return True


class RangeFilter:
    def __init__(
        self,
        postings: PostingRepository,
        accounts: AccountDirectory,
        places: PlaceResolver,
        config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._postings = postings
        self._accounts = accounts
        self._places = places
        self.config = config
        self.clock = clock

    def load_profile(self, requester_id: str | None) -> RequesterProfile | None:
        if not requester_id:
            return None
        return call_collaborator(
            "accounts",
            self._accounts.get_requester_profile,
            requester_id,
            timeout=self.config.collaborator_timeout_s,
        )

    def resolve_anchors(
        self,
        constraints: EligibilityConstraints,
        profile: RequesterProfile | None = None,
    ) -> FilterAnchors:
        coordinates = None
        if constraints.target_city:
            coordinates = call_collaborator(
                "places",
                self._places.resolve_coordinates,
                constraints.target_city,
                timeout=self.config.collaborator_timeout_s,
            )
            if coordinates is None:
                logger.info("Unknown place %r, falling back to home location", constraints.target_city)
        if coordinates is None and profile is not None:
            coordinates = profile.home_coordinates

        age = None
        if profile is not None and profile.date_of_birth is not None:
            age = age_at(profile.date_of_birth, constraints.date_start or self.clock())

        if constraints.include_synthetic is not None:
            allow_synthetic = constraints.include_synthetic
        else:
            allow_synthetic = profile.show_synthetic if profile is not None else True

        return FilterAnchors(coordinates=coordinates, age=age, allow_synthetic=allow_synthetic)

    def build_query(
        self,
        constraints: EligibilityConstraints,
        anchors: FilterAnchors,
        now: datetime,
        synthetic: bool | None = None,
        extra_exclude: Iterable[str] = (),
    ) -> PostingQuery:
        near = None
        if anchors.coordinates is not None:
            radius_km = (
                constraints.geo_radius_km
                if constraints.geo_radius_km is not None
                else self.config.geo_radius_km
            )
            lat, lon = anchors.coordinates
            near = GeoWithin(lat=lat, lon=lon, max_distance=km_to_radians(radius_km))

        age_between = None
        if anchors.age is not None:
            radius = (
                constraints.age_radius_years
                if constraints.age_radius_years is not None
                else self.config.age_radius_years
            )
            age_between = (anchors.age - radius, anchors.age + radius)

        if synthetic is None and not anchors.allow_synthetic:
            synthetic = False

        return PostingQuery(
            start_from=constraints.date_start or now,
            start_until=constraints.date_end,
            exclude_owner=constraints.requester_id,
            exclude_ids=frozenset(constraints.exclude_ids) | frozenset(extra_exclude),
            near=near,
            age_between=age_between,
            synthetic=synthetic,
            sort=DEFAULT_SORT,
        )

    def eligible_postings(
        self,
        constraints: EligibilityConstraints,
        anchors: FilterAnchors,
        *,
        synthetic: bool | None = None,
        extra_exclude: Iterable[str] = (),
        paginate: bool = True,
        limit: int | None = None,
    ) -> list[Posting]:
        """
        Return postings satisfying every constraint.

        ``synthetic`` narrows to authentic-only (``False``) or synthetic-only
        (``True``) postings on top of the visibility toggle.  With
        ``paginate`` the ``start``/``limit`` of *constraints* apply; otherwise
        the whole matching set is returned, capped at *limit* when given.
        """
        now = self.clock()
        if not window_is_valid(constraints, now):
            logger.debug("Rejected date window %s..%s", constraints.date_start, constraints.date_end)
            return []
        if synthetic and not anchors.allow_synthetic:
            return []

        query = self.build_query(constraints, anchors, now, synthetic, extra_exclude)
        if paginate:
            offset, count = constraints.start, constraints.limit
        else:
            offset, count = 0, limit
        return call_collaborator(
            "postings",
            self._postings.find_available_postings,
            query,
            offset,
            count,
            timeout=self.config.collaborator_timeout_s,
        )
