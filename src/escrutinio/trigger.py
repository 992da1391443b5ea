# Trigger Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Propósito del módulo
#   2) Componentes principales
#   3) Puntos de extensión
#
# EN: Quick index
#   1) Module purpose
#   2) Main components
#   3) Extension points
#
# Secciones / Sections:
#   - Configuración / Configuration
#   - Lógica principal / Core logic
#   - Integraciones / Integrations

"""Adaptador de disparadores: notificación -> DeltaSet -> merge.

English:
    Trigger adapter: notification -> DeltaSet -> merge. How notifications
    arrive (database trigger, queue, file replay) is up to the caller; this
    module only runs the pipeline for one notification at a time.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

import structlog

from .config import AggregatorSettings
from .core.deltas import compute_delta
from .core.merge import AggregateMerger, MergeError, MergeOutcome
from .core.models import VoteRecord
from .core.store import DocumentStore
from .logging import bind_context

logger = structlog.get_logger(__name__)


class ChangeKind(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


@dataclass(frozen=True)
class ChangeNotification:
    """Cambio de un acta con sus versiones antes/después.

    Attributes:
        record_id (str): Id del documento del acta.
        before (Optional[VoteRecord]): Versión previa; ``None`` si se creó.
        after (Optional[VoteRecord]): Versión nueva; ``None`` si se borró.
        event_id (Optional[str]): Id de entrega, usado para descartar reentregas.

    English:
        One vote-record change with its before/after snapshots. ``event_id``
        identifies the delivery so redeliveries can be dropped.
    """

    record_id: str
    before: Optional[VoteRecord] = None
    after: Optional[VoteRecord] = None
    event_id: Optional[str] = None

    @property
    def kind(self) -> ChangeKind:
        if self.before is None and self.after is None:
            return ChangeKind.NOOP
        if self.before is None:
            return ChangeKind.CREATE
        if self.after is None:
            return ChangeKind.DELETE
        return ChangeKind.UPDATE


class TriggerAdapter:
    """Ejecuta el pipeline del agregador para cada mutación de acta.

    English:
        Runs the aggregator pipeline for each vote-record mutation. Failures
        are logged with the record id and re-raised; redelivery belongs to
        whatever delivers the notifications.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[AggregatorSettings] = None,
        merger: Optional[AggregateMerger] = None,
    ) -> None:
        self.settings = settings or AggregatorSettings()
        self.merger = merger or AggregateMerger(store, self.settings)

    def handle(self, notification: ChangeNotification) -> Optional[MergeOutcome]:
        log = bind_context(
            logger,
            record_id=notification.record_id,
            event_id=notification.event_id,
            change=notification.kind.value,
        )
        if notification.kind is ChangeKind.NOOP:
            log.warning("notification_without_snapshots")
            return None

        try:
            delta = compute_delta(notification.before, notification.after)
        except Exception as exc:  # noqa: BLE001
            log.error("delta_computation_failed", error=str(exc))
            raise MergeError(f"delta computation failed: {exc}", notification.record_id) from exc

        try:
            outcome = self.merger.merge(delta, record_id=notification.record_id, event_id=notification.event_id)
        except MergeError as exc:
            log.error("aggregate_update_failed", error=str(exc), attempts=exc.attempts)
            raise

        log.info("aggregate_updated", version=outcome.version, skipped=outcome.skipped)
        return outcome

    def handle_all(
        self,
        notifications: Iterable[ChangeNotification],
        on_error: Optional[Callable[[ChangeNotification, MergeError], None]] = None,
    ) -> Tuple[List[MergeOutcome], List[Tuple[ChangeNotification, MergeError]]]:
        """Procesa en orden; un acta fallida no bloquea a las demás.

        English:
            Process notifications in order. One record's failure never blocks
            the others; failures are collected and returned.
        """
        outcomes: List[MergeOutcome] = []
        failures: List[Tuple[ChangeNotification, MergeError]] = []
        for notification in notifications:
            try:
                outcome = self.handle(notification)
            except MergeError as exc:
                failures.append((notification, exc))
                if on_error is not None:
                    on_error(notification, exc)
                continue
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes, failures
