"""Constructores de actas y notificaciones para las pruebas.

Record and notification builders for the tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from escrutinio.core.models import VoteRecord
from escrutinio.trigger import ChangeNotification

FIXED_NOW = datetime(2025, 2, 9, 20, 0, tzinfo=timezone.utc)


def record_payload(
    *,
    parish: Optional[str] = "P1",
    zone: Optional[str] = "Z1",
    district: Optional[str] = "1",
    candidates: Optional[List[Tuple[str, int]]] = None,
    voters: int = 20,
    blank: int = 0,
    null: int = 0,
    reviewed: bool = False,
    **extra: Any,
) -> Dict[str, Any]:
    """Payload de acta con nombres estables por parroquia/zona/candidato.

    English: Record payload whose names are stable per parish/zone/candidate.
    """
    payload: Dict[str, Any] = {
        "parishId": parish,
        "parishName": f"Parroquia {parish}" if parish else None,
        "parishSvgId": f"svg-{parish}" if parish else None,
        "circunscripcionCode": district,
        "zoneCode": zone,
        "zoneName": f"Zona {zone}" if zone else None,
        "totalVoters": voters,
        "blankVotes": blank,
        "nullVotes": null,
        "reviewed": reviewed,
        "candidateVotes": [
            {"candidateId": candidate_id, "candidateName": f"Candidato {candidate_id}", "voteCount": votes}
            for candidate_id, votes in (candidates if candidates is not None else [("A", 10), ("B", 5)])
        ],
    }
    payload.update(extra)
    return payload


def build_record(**kwargs: Any) -> VoteRecord:
    return VoteRecord.model_validate(record_payload(**kwargs))


def notify(
    record_id: str,
    before: Optional[VoteRecord],
    after: Optional[VoteRecord],
    event_id: Optional[str] = None,
) -> ChangeNotification:
    return ChangeNotification(record_id=record_id, before=before, after=after, event_id=event_id)
