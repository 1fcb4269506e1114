"""
Two-slot model swap for the similarity index.

One slot serves lookups while the other is retrained.  A successful build
flips the active selector with a single assignment; a failed build leaves
the selector alone, marks the coordinator degraded and waits for the next
tick.  Readers never take a lock.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from ..analytics.store import record_event
from ..inventory.ports import SettingsRepository
from ..inventory.settings import AUTO_RETRAIN_KEY, BoolSetting, bool_setting_value
from .index import SimilarNeighbor, SimilarityDocument, SimilarityIndex

logger = logging.getLogger(__name__)


class Slot(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"

    @property
    def other(self) -> Slot:
        return Slot.SECONDARY if self is Slot.PRIMARY else Slot.PRIMARY


class TrainingState(str, Enum):
    IDLE = "idle"
    TRAINING = "training"


class ModelSwapCoordinator:
    def __init__(
        self,
        document_source: Callable[[], Sequence[SimilarityDocument]],
        settings: SettingsRepository,
        interval_s: float = 3600.0,
        index_factory: Callable[[], SimilarityIndex] = SimilarityIndex,
    ) -> None:
        self._document_source = document_source
        self._settings = settings
        self.interval_s = interval_s
        self._slots: dict[Slot, SimilarityIndex] = {
            Slot.PRIMARY: index_factory(),
            Slot.SECONDARY: index_factory(),
        }
        self._active = Slot.PRIMARY
        self._train_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

        self.state = TrainingState.IDLE
        self.degraded = False
        self.last_success_at: float | None = None
        self.last_failure_at: float | None = None
        self.last_error: str | None = None
        self.last_document_count = 0

    # ── Readers ───────────────────────────────────────────────────────────

    @property
    def active_slot(self) -> Slot:
        return self._active

    def active_index(self) -> SimilarityIndex:
        return self._slots[self._active]

    def slot(self, slot: Slot) -> SimilarityIndex:
        return self._slots[slot]

    def nearest(self, document_id: str, offset: int = 0, count: int = 10) -> list[SimilarNeighbor]:
        return self.active_index().nearest(document_id, offset, count)

    # ── Training ──────────────────────────────────────────────────────────

    def retrain_now(self) -> bool:
        """Train the standby slot and make it active.

        Returns ``False`` when the build failed; the previous slot keeps
        serving in that case.
        """
        with self._train_lock:
            target = self._active.other
            self.state = TrainingState.TRAINING
            started = time.time()
            logger.info("Retraining similarity index into %s slot", target.value)
            try:
                documents = list(self._document_source())
                self._slots[target].train(documents)
            except Exception as exc:
                self.state = TrainingState.IDLE
                self.degraded = True
                self.last_failure_at = time.time()
                self.last_error = f"{type(exc).__name__}: {exc}"
                logger.exception(
                    "Retraining failed, %s slot keeps serving", self._active.value
                )
                record_event("retrain", {
                    "ok": False,
                    "slot": target.value,
                    "error": self.last_error,
                    "duration_ms": round((time.time() - started) * 1000, 1),
                })
                return False

            # Back to idle only once the new slot is serving
            self._active = target
            self.state = TrainingState.IDLE
            self.degraded = False
            self.last_error = None
            self.last_success_at = time.time()
            self.last_document_count = len(documents)
            elapsed_ms = round((self.last_success_at - started) * 1000, 1)
            logger.info(
                "Similarity index trained on %d documents in %.1f ms, %s slot active",
                len(documents),
                elapsed_ms,
                target.value,
            )
            record_event("retrain", {
                "ok": True,
                "slot": target.value,
                "documents": len(documents),
                "duration_ms": elapsed_ms,
            })
            return True

    # ── Auto-retrain flag ─────────────────────────────────────────────────

    def is_auto_retrain_enabled(self) -> bool:
        return bool_setting_value(self._settings.get(AUTO_RETRAIN_KEY), default=True)

    def set_auto_retrain(self, enabled: bool) -> None:
        self._settings.put(BoolSetting(key=AUTO_RETRAIN_KEY, value=enabled))
        logger.info("Automatic retraining %s", "enabled" if enabled else "disabled")

    # ── Timer ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Run one build immediately, then one every ``interval_s`` seconds."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="similarity-retrain", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        self.retrain_now()
        while not self._stop.wait(self.interval_s):
            self._tick()

    def _tick(self) -> None:
        try:
            if not self.is_auto_retrain_enabled():
                logger.info("Automatic retraining disabled, skipping tick")
                return
        except Exception:
            self.degraded = True
            logger.exception("Could not read the auto-retrain setting")
            return
        self.retrain_now()

    def status(self) -> dict[str, Any]:
        return {
            "active_slot": self._active.value,
            "state": self.state.value,
            "degraded": self.degraded,
            "auto_retrain_enabled": self.is_auto_retrain_enabled(),
            "last_success_at": self.last_success_at,
            "last_failure_at": self.last_failure_at,
            "last_error": self.last_error,
            "last_document_count": self.last_document_count,
            "documents_indexed": self.active_index().document_count,
        }
