"""Lecturas del documento agregado para el tablero.

English:
    Read-side helpers over the aggregate document: what the dashboard views
    consume. Reads happen outside any transaction; eventual consistency is
    acceptable for display.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .config import AggregatorSettings
from .core.models import AggregateDocument, review_percent
from .core.store import DocumentStore


def read_aggregate(store: DocumentStore, settings: Optional[AggregatorSettings] = None) -> AggregateDocument:
    """Documento actual, o uno en cero si aún no existe.

    English: Current document, or a zeroed one when it does not exist yet.
    """
    settings = settings or AggregatorSettings()
    raw = store.get(settings.AGGREGATE_PATH)
    if raw is None:
        return AggregateDocument(last_updated=None)
    return AggregateDocument.from_document(raw)


def ranked_candidates(document: AggregateDocument) -> List[Dict[str, Any]]:
    ranked = [
        {"id": candidate_id, "name": tally.name, "votes": tally.votes}
        for candidate_id, tally in document.votes_by_candidate.items()
        if tally.votes > 0
    ]
    ranked.sort(key=lambda item: (-item["votes"], item["id"]))
    return ranked


def overall_review_percent(document: AggregateDocument) -> int:
    return review_percent(document.total_reviewed, document.total_records)


def summarize_parishes(document: AggregateDocument, svg_ids: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """Totales de las parroquias seleccionadas en el mapa (por ``svgId``).

    Sin selección devuelve los totales globales.

    English:
        Totals over the parishes selected on the map, matched by ``svgId``.
        No selection returns the global totals. Blank/null votes are only
        tracked globally, so they are reported only for the global view.
    """
    selected = {svg_id for svg_id in (svg_ids or []) if svg_id}
    if not selected:
        return {
            "records": document.total_records,
            "voters": document.total_voters,
            "validVotes": document.total_valid_votes,
            "blankVotes": document.total_blank_votes,
            "nullVotes": document.total_null_votes,
            "reviewed": document.total_reviewed,
            "unreviewed": document.total_unreviewed,
            "reviewPercent": overall_review_percent(document),
        }

    summary = {"records": 0, "voters": 0, "totalVotes": 0, "reviewed": 0, "unreviewed": 0}
    for parish in document.votes_by_parish.values():
        if parish.svg_id not in selected:
            continue
        summary["records"] += parish.records
        summary["voters"] += parish.voters
        summary["totalVotes"] += parish.total_votes
        summary["reviewed"] += parish.reviewed
        summary["unreviewed"] += parish.unreviewed
    summary["reviewPercent"] = review_percent(summary["reviewed"], summary["records"])
    return summary
