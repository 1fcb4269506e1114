from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from ..analytics.store import record_event
from ..inventory.ports import (
    AccountDirectory,
    PlaceResolver,
    PostingRepository,
    PreferenceRepository,
    SettingsRepository,
)
from ..similarity.config import DEFAULT_SIMILARITY_CONFIG, SimilarityConfig
from ..similarity.coordinator import ModelSwapCoordinator
from ..similarity.index import SimilarityDocument, SimilarityIndex
from .config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from .errors import call_collaborator
from .models import EligibilityConstraints, FilterAnchors, RankedResult, RankingPath
from .range_filter import RangeFilter, utcnow, window_is_valid
from .ranker import Ranker

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Entry point for dish listing and recommendation requests."""

    def __init__(
        self,
        postings: PostingRepository,
        preferences: PreferenceRepository,
        accounts: AccountDirectory,
        places: PlaceResolver,
        settings: SettingsRepository,
        config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
        similarity_config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self._preferences = preferences
        self._accounts = accounts
        self.range_filter = RangeFilter(postings, accounts, places, config, clock)
        self.coordinator = ModelSwapCoordinator(
            self.training_documents,
            settings,
            interval_s=config.retrain_interval_s,
            index_factory=lambda: SimilarityIndex(similarity_config),
        )
        self.ranker = Ranker(self.range_filter, preferences, self.coordinator.active_index, config)

    # ── Requests ──────────────────────────────────────────────────────────

    def list_available(self, constraints: EligibilityConstraints) -> RankedResult:
        """One page of eligible postings in filter order, no personalisation."""
        start_time = time.time()
        result = RankedResult()

        if window_is_valid(constraints, self.range_filter.clock()):
            profile = self.range_filter.load_profile(constraints.requester_id)
            anchors = self.range_filter.resolve_anchors(constraints, profile)
            result = RankedResult(postings=self.range_filter.eligible_postings(constraints, anchors))

        self._record("list_available", constraints, result, start_time)
        return result

    def list_recommended(
        self,
        requester_id: str,
        exclude_ids: Iterable[str],
        constraints: EligibilityConstraints,
        limit: int | None = None,
    ) -> RankedResult:
        start_time = time.time()
        constraints = constraints.model_copy(update={"requester_id": requester_id})
        limit = limit or constraints.limit
        result = RankedResult(path=RankingPath.empty)

        if window_is_valid(constraints, self.range_filter.clock()):
            profile = self.range_filter.load_profile(requester_id)
            if profile is None:
                logger.info("No profile for requester %s, ranking without anchors", requester_id)
            anchors = self.range_filter.resolve_anchors(constraints, profile)
            result = self.ranker.recommend(requester_id, exclude_ids, constraints, anchors, limit)

        self._record("list_recommended", constraints, result, start_time)
        return result

    def _record(
        self,
        event_type: str,
        constraints: EligibilityConstraints,
        result: RankedResult,
        start_time: float,
    ) -> None:
        record_event(event_type, {
            "requester_id": constraints.requester_id,
            "target_city": constraints.target_city,
            "has_date_window": constraints.date_start is not None or constraints.date_end is not None,
            "path": result.path.value if result.path else None,
            "results_returned": len(result.postings),
            "response_time_ms": round((time.time() - start_time) * 1000, 1),
        })

    # ── Model upkeep ──────────────────────────────────────────────────────

    def training_documents(self) -> list[SimilarityDocument]:
        """Available postings, then preference signals of recently active accounts."""
        postings = self.range_filter.eligible_postings(
            EligibilityConstraints(include_synthetic=True),
            FilterAnchors(allow_synthetic=True),
            paginate=False,
        )

        since = self.range_filter.clock() - self.config.active_account_window
        active = call_collaborator(
            "accounts",
            self._accounts.active_account_ids,
            since,
            timeout=self.config.collaborator_timeout_s,
        )
        signals = []
        if active:
            signals = call_collaborator(
                "preferences",
                self._preferences.find_preference_signals,
                account_ids=active,
                timeout=self.config.collaborator_timeout_s,
            )

        documents: list[SimilarityDocument] = []
        seen: set[str] = set()
        for title, content in [(p.title, p.description) for p in postings] + [
            (s.subject_title, s.description) for s in signals
        ]:
            if title in seen:
                continue
            seen.add(title)
            documents.append(SimilarityDocument(document_id=title, content=content))
        return documents

    def retrain_now(self) -> bool:
        return self.coordinator.retrain_now()

    def is_auto_retrain_enabled(self) -> bool:
        return call_collaborator(
            "settings",
            self.coordinator.is_auto_retrain_enabled,
            timeout=self.config.collaborator_timeout_s,
        )

    def set_auto_retrain(self, enabled: bool) -> None:
        call_collaborator(
            "settings",
            self.coordinator.set_auto_retrain,
            enabled,
            timeout=self.config.collaborator_timeout_s,
        )

    def status(self) -> dict[str, Any]:
        return call_collaborator(
            "settings",
            self.coordinator.status,
            timeout=self.config.collaborator_timeout_s,
        )

    def start(self) -> None:
        self.coordinator.start()

    def stop(self) -> None:
        self.coordinator.stop(timeout=5.0)
