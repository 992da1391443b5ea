# Rebuild Module
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

"""Recalculo completo del agregado para conciliación fuera de línea.

English:
    Full recomputation of the aggregate for offline reconciliation. Never
    used on the trigger path, which only ever applies deltas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .core.deltas import compute_delta
from .core.merge import apply_delta
from .core.models import AggregateDocument, VoteRecord

_SCALARS = (
    "totalRecords",
    "totalReviewed",
    "totalUnreviewed",
    "totalVoters",
    "totalBlankVotes",
    "totalNullVotes",
    "totalValidVotes",
)


def rebuild_aggregate(records: Iterable[VoteRecord], now: Optional[datetime] = None) -> AggregateDocument:
    """Suma el aporte de cada acta sobre un documento vacío.

    English: Fold every record's creation delta into an empty document.
    """
    document = AggregateDocument.empty(now)
    for record in records:
        document = apply_delta(document, compute_delta(None, record), now)
    return document


def counter_view(document: AggregateDocument) -> Dict[str, int]:
    """Vista plana de los contadores aditivos; omite entradas en cero.

    English:
        Flat view of the additive counters. Entries whose counters are all
        zero are dropped, since a deleted record leaves its keys behind.
    """
    raw = document.to_document()
    view = {name: raw[name] for name in _SCALARS}
    for candidate_id, tally in document.votes_by_candidate.items():
        if tally.votes:
            view[f"votesByCandidate.{candidate_id}.votes"] = tally.votes
    dimensions = {
        "votesByParish": document.votes_by_parish,
        "votesByDistrict": document.votes_by_district,
        "votesByZone": document.votes_by_zone,
    }
    for label, entries in dimensions.items():
        for key, entry in entries.items():
            if entry.is_zero():
                continue
            for counter, value in entry.counters().items():
                view[f"{label}.{key}.{counter}"] = value
    return view


def diff_counters(expected: AggregateDocument, actual: AggregateDocument) -> List[str]:
    """Campos aditivos que difieren entre dos documentos.

    English: Additive fields that differ between two documents.
    """
    left = counter_view(expected)
    right = counter_view(actual)
    drift = []
    for name in sorted(set(left) | set(right)):
        if left.get(name, 0) != right.get(name, 0):
            drift.append(f"{name}: expected {left.get(name, 0)}, found {right.get(name, 0)}")
    return drift
