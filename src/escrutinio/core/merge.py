"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/escrutinio/core/merge.py`.
Aplica un DeltaSet al documento agregado dentro de una transacción
optimista, recalculando los campos derivados.

Componentes detectados:
  - MergeError
  - MergeOutcome
  - apply_delta
  - recompute_derived
  - AggregateMerger

Notas:
- `reviewPercent` y `totalValidVotes` se recalculan en cada merge.
- Conflictos de concurrencia se reintentan con backoff exponencial.

======================== ENGLISH ========================
File: `src/escrutinio/core/merge.py`.
Applies a DeltaSet to the aggregate document inside an optimistic
transaction, recomputing derived fields.

Detected components:
  - MergeError
  - MergeOutcome
  - apply_delta
  - recompute_derived
  - AggregateMerger

Notes:
- `reviewPercent` and `totalValidVotes` are recomputed on every merge.
- Concurrency conflicts are retried with exponential backoff.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import AggregatorSettings
from .deltas import Counters, DeltaSet
from .models import (
    AggregateDocument,
    CandidateTally,
    DimensionStats,
    DistrictStats,
    ParishStats,
    ZoneStats,
)
from .store import AggregatorError, DocumentStore, Transaction, TransactionConflict

logger = structlog.get_logger(__name__)

S = TypeVar("S", bound=DimensionStats)


class MergeError(AggregatorError):
    """Fallo fatal del merge: el documento queda en su último estado confirmado.

    English:
        Fatal merge failure. The document stays at its last committed state.
    """

    def __init__(self, message: str, record_id: Optional[str] = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.record_id = record_id
        self.attempts = attempts


@dataclass(frozen=True)
class MergeOutcome:
    version: int
    attempts: int
    initialized: bool = False
    skipped: bool = False


def _add_counters(entry: DimensionStats, counters: Counters) -> None:
    entry.total_votes += counters.total_votes
    entry.voters += counters.voters
    entry.records += counters.records
    entry.reviewed += counters.reviewed
    entry.unreviewed += counters.unreviewed


def _fetch_or_create(entries: Dict[str, S], key: str, factory: Callable[[], S]) -> S:
    entry = entries.get(key)
    if entry is None:
        entry = factory()
        entries[key] = entry
    return entry


def recompute_derived(document: AggregateDocument) -> AggregateDocument:
    """Recalcula todos los campos derivados; idempotente.

    English:
        Recompute every derived field (``reviewPercent`` of each parish and
        zone, ``totalValidVotes``) from the counters. Idempotent.
    """
    for parish in document.votes_by_parish.values():
        parish.refresh_review_percent()
    for zone in document.votes_by_zone.values():
        zone.refresh_review_percent()
    document.total_valid_votes = document.candidate_vote_sum()
    return document


def apply_delta(document: AggregateDocument, delta: DeltaSet, now: Optional[datetime] = None) -> AggregateDocument:
    """Aplica un DeltaSet y devuelve el siguiente documento.

    No modifica ``document``. Los contadores no se recortan en cero.

    Args:
        document (AggregateDocument): Valor actual leído en la transacción.
        delta (DeltaSet): Cambio firmado de una mutación de acta.
        now (Optional[datetime]): Hora del merge para ``lastUpdated``.

    Returns:
        AggregateDocument: Documento con contadores sumados, derivados
        recalculados y ``version`` incrementada en uno.

    English:
        Apply a DeltaSet and return the next document value; the input is not
        mutated. Counters are never clamped at zero. Every touched parish and
        zone gets its ``reviewPercent`` recomputed from post-merge counters,
        and ``totalValidVotes`` is re-summed over the whole candidate map.
    """
    updated = document.model_copy(deep=True)

    updated.total_records += delta.records
    updated.total_reviewed += delta.reviewed
    updated.total_unreviewed += delta.unreviewed
    updated.total_voters += delta.voters
    updated.total_blank_votes += delta.blank_votes
    updated.total_null_votes += delta.null_votes

    for candidate_id, item in delta.candidates.items():
        # First delta that introduces a candidate seeds its name.
        tally = _fetch_or_create(updated.votes_by_candidate, candidate_id, lambda: CandidateTally(name=item.name))
        tally.votes += item.votes

    for parish_id, item in delta.parishes.items():
        parish = _fetch_or_create(
            updated.votes_by_parish,
            parish_id,
            lambda: ParishStats(name=item.name, svg_id=item.svg_id),
        )
        if item.svg_id:
            parish.svg_id = item.svg_id
        if not parish.name and item.name:
            parish.name = item.name
        _add_counters(parish, item.counters)
        parish.refresh_review_percent()

    for code, item in delta.districts.items():
        district = _fetch_or_create(updated.votes_by_district, code, DistrictStats)
        _add_counters(district, item.counters)

    for key, item in delta.zones.items():
        zone = _fetch_or_create(
            updated.votes_by_zone,
            key,
            lambda: ZoneStats(
                name=item.name,
                code=item.code,
                parish_id=item.parish_id,
                parish_name=item.parish_name,
                parish_svg_id=item.parish_svg_id,
            ),
        )
        if item.parish_svg_id:
            zone.parish_svg_id = item.parish_svg_id
        _add_counters(zone, item.counters)
        zone.refresh_review_percent()

    updated.total_valid_votes = updated.candidate_vote_sum()
    updated.version = document.version + 1
    updated.last_updated = now or datetime.now(timezone.utc)
    return updated


_INITIALIZED = object()


class AggregateMerger:
    """Aplica deltas al documento agregado singleton.

    English:
        Applies deltas to the singleton aggregate document. Each call to
        ``merge`` is one short-lived unit of work: read, apply, write back,
        retried from a fresh read when a concurrent writer got there first.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[AggregatorSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.settings = settings or AggregatorSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> str:
        return self.settings.AGGREGATE_PATH

    def _retrying(self, record_id: Optional[str]) -> Retrying:
        def log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "merge_conflict_retry",
                record_id=record_id,
                attempt=state.attempt_number,
                error=str(error),
            )

        return Retrying(
            retry=retry_if_exception_type(TransactionConflict),
            stop=stop_after_attempt(self.settings.MAX_MERGE_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.settings.RETRY_BACKOFF_MIN,
                min=self.settings.RETRY_BACKOFF_MIN,
                max=self.settings.RETRY_BACKOFF_MAX,
            ),
            before_sleep=log_retry,
            reraise=True,
        )

    def _apply_in_transaction(
        self,
        txn: Transaction,
        delta: DeltaSet,
        record_id: Optional[str],
        event_id: Optional[str],
    ) -> object:
        raw = txn.get(self.path)
        if raw is None:
            # Initialization is the whole transaction.
            txn.set(self.path, AggregateDocument.empty(self._clock()).to_document())
            return _INITIALIZED

        ledger_path = None
        if self.settings.DEDUPE_ENABLED and record_id and event_id:
            ledger_path = self.settings.ledger_path(record_id)
            ledger = txn.get(ledger_path) or {}
            if ledger.get("lastEventId") == event_id:
                return None

        now = self._clock()
        updated = apply_delta(AggregateDocument.from_document(raw), delta, now)
        txn.set(self.path, updated.to_document())
        if ledger_path is not None:
            txn.set(
                ledger_path,
                {"recordId": record_id, "lastEventId": event_id, "processedAt": now.isoformat()},
            )
        return updated

    def merge(
        self,
        delta: DeltaSet,
        record_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> MergeOutcome:
        """Aplica ``delta`` de forma atómica y durable.

        Raises:
            MergeError: Reintentos agotados o error no recuperable.

        English:
            Apply ``delta`` atomically and durably. When the aggregate does
            not exist yet, one transaction creates the zeroed document and a
            fresh one then applies the delta. Conflicts are retried up to
            ``MAX_MERGE_ATTEMPTS``; any other failure aborts with no partial
            write and surfaces as ``MergeError``.
        """
        initialized = False
        attempts = 0
        try:
            for attempt in self._retrying(record_id):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = self.store.run_transaction(
                        lambda txn: self._apply_in_transaction(txn, delta, record_id, event_id)
                    )
                    if result is _INITIALIZED:
                        initialized = True
                        logger.info("aggregate_initialized", path=self.path, record_id=record_id)
                        result = self.store.run_transaction(
                            lambda txn: self._apply_in_transaction(txn, delta, record_id, event_id)
                        )
                        if result is _INITIALIZED:
                            raise MergeError("aggregate document vanished after initialization", record_id, attempts)
        except TransactionConflict as exc:
            logger.error("merge_retries_exhausted", record_id=record_id, attempts=attempts, error=str(exc))
            raise MergeError(f"merge retries exhausted after {attempts} attempts", record_id, attempts) from exc
        except MergeError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("merge_failed", record_id=record_id, attempts=attempts, error=str(exc))
            raise MergeError(f"merge failed: {exc}", record_id, attempts) from exc

        if result is None:
            logger.info("merge_skipped_duplicate_event", record_id=record_id, event_id=event_id)
            current = self.store.get(self.path) or {}
            return MergeOutcome(
                version=current.get("version", 0),
                attempts=attempts,
                initialized=initialized,
                skipped=True,
            )

        violations = result.invariant_violations()
        if violations:
            logger.warning("aggregate_invariant_violation", record_id=record_id, violations=violations)
        negatives = result.negative_counters()
        if negatives:
            logger.warning("aggregate_negative_counters", record_id=record_id, counters=negatives)
        logger.info("aggregate_merged", record_id=record_id, version=result.version, attempts=attempts)
        return MergeOutcome(version=result.version, attempts=attempts, initialized=initialized)
