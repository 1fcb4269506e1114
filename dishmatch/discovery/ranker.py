"""
Fallback cascade that orders a requester's eligible postings.

1. Pool: eligible authentic postings minus already-seen ids.
2. Small pool: return it newest-created first, topped up once with
   synthetic postings when those are visible.
3. No preference signals: the newest-created ``limit`` postings.
4. Otherwise walk the similarity neighbours of every liked dish, deferring
   candidates that were already surfaced by similarity, then fill from the
   deferred bucket and finally from the pool by descending start time.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from ..inventory.models import Posting, PreferenceSignal
from ..inventory.ports import PreferenceRepository
from ..similarity.index import SimilarNeighbor, SimilarityIndex
from .config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from .errors import call_collaborator
from .models import EligibilityConstraints, FilterAnchors, RankedResult, RankingPath
from .range_filter import RangeFilter

logger = logging.getLogger(__name__)

NeighborLookup = Callable[[str, int, int], list[SimilarNeighbor]]


def _newest_created_first(postings: Iterable[Posting]) -> list[Posting]:
    return sorted(postings, key=lambda p: (p.created_at, p.id), reverse=True)


def _latest_start_first(postings: Iterable[Posting]) -> list[Posting]:
    return sorted(postings, key=lambda p: (p.start_time, p.id), reverse=True)


class Ranker:
    def __init__(
        self,
        range_filter: RangeFilter,
        preferences: PreferenceRepository,
        active_index: Callable[[], SimilarityIndex],
        config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
    ) -> None:
        self._range_filter = range_filter
        self._preferences = preferences
        self._active_index = active_index
        self.config = config

    def recommend(
        self,
        requester_id: str,
        exclude_ids: Iterable[str],
        constraints: EligibilityConstraints,
        anchors: FilterAnchors,
        limit: int,
    ) -> RankedResult:
        exclude = frozenset(exclude_ids)
        pool = self._range_filter.eligible_postings(
            constraints,
            anchors,
            synthetic=False,
            extra_exclude=exclude,
            paginate=False,
        )
        if not pool:
            return RankedResult(postings=[], path=RankingPath.empty)
        logger.debug("Ranking %d eligible postings for %s", len(pool), requester_id)

        if len(pool) <= limit:
            output = _newest_created_first(pool)
            missing = limit - len(output)
            if missing > 0 and anchors.allow_synthetic:
                fill = self._range_filter.eligible_postings(
                    constraints,
                    anchors,
                    synthetic=True,
                    extra_exclude=exclude | {p.id for p in pool},
                    paginate=False,
                    limit=missing,
                )
                output.extend(_newest_created_first(fill))
            return RankedResult(postings=output[:limit], path=RankingPath.small_pool)

        signals = call_collaborator(
            "preferences",
            self._preferences.find_preference_signals,
            requester_id,
            timeout=self.config.collaborator_timeout_s,
        )
        if not signals:
            return RankedResult(
                postings=_newest_created_first(pool)[:limit],
                path=RankingPath.cold_start,
            )

        # One model per request, even if swaps land mid-cascade
        nearest = self._active_index().snapshot()
        return RankedResult(
            postings=self._cascade(signals, pool, limit, nearest),
            path=RankingPath.similarity,
        )

    def _cascade(
        self,
        signals: list[PreferenceSignal],
        pool: list[Posting],
        limit: int,
        nearest: NeighborLookup,
    ) -> list[Posting]:
        likes = [
            self._similar_postings(nearest, s.subject_title, pool, self.config.neighbors_per_signal)
            for s in signals
            if s.liked
        ]
        # NOTE: built from the *liked* signals too, so every liked candidate
        # lands in the deferred bucket.  Disliked signals are never consulted.
        # Kept as is until the intended semantics are confirmed.
        dislikes = {
            posting.id
            for s in signals
            if s.liked
            for posting in self._similar_postings(
                nearest, s.subject_title, pool, self.config.neighbors_per_signal
            )
        }

        output: list[Posting] = []
        taken: set[str] = set()
        deferred: list[Posting] = []
        deferred_ids: set[str] = set()

        for candidates in likes:
            for posting in candidates:
                if len(output) >= limit:
                    break
                if posting.id in taken or posting.id in deferred_ids:
                    continue
                if posting.id in dislikes:
                    deferred.append(posting)
                    deferred_ids.add(posting.id)
                else:
                    output.append(posting)
                    taken.add(posting.id)
            if len(output) >= limit:
                break

        for posting in deferred:
            if len(output) >= limit:
                break
            if posting.id not in taken:
                output.append(posting)
                taken.add(posting.id)

        for posting in _latest_start_first(pool):
            if len(output) >= limit:
                break
            if posting.id not in taken:
                output.append(posting)
                taken.add(posting.id)

        return output

    def _similar_postings(
        self,
        nearest: NeighborLookup,
        title: str,
        pool: list[Posting],
        count: int,
    ) -> list[Posting]:
        """Pool postings whose titles are among the neighbours of *title*.

        Pages through the index until *count* neighbours present in the pool
        have been found or the neighbour list runs out.
        """
        titles_in_pool = {p.title for p in pool}
        matched: list[str] = []
        offset = 0
        while len(matched) < count:
            page = nearest(title, offset, count)
            if not page:
                break
            offset += count
            for neighbor in page:
                if neighbor.document_id in titles_in_pool and neighbor.document_id not in matched:
                    matched.append(neighbor.document_id)
        matched = matched[:count]

        return [p for neighbor_title in matched for p in pool if p.title == neighbor_title]
