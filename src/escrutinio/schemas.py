"""Validación de payloads de actas y notificaciones de cambio.

English:
    Validation of raw vote-record payloads and change notifications,
    including migration of the legacy Spanish keys written by the original
    field data-collection clients.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .core.models import VoteRecord
from .trigger import ChangeNotification

_LEGACY_RECORD_KEYS = {
    "id": "recordId",
    "votoId": "recordId",
    "parroquiaId": "parishId",
    "parroquiaNombre": "parishName",
    "parroquiaIdSvg": "parishSvgId",
    "circunscripcionCodigo": "circunscripcionCode",
    "zonaCodigo": "zoneCode",
    "zonaNombre": "zoneName",
    "totalSufragantes": "totalVoters",
    "votosBlancos": "blankVotes",
    "votosNulos": "nullVotes",
    "revisado": "reviewed",
    "votos": "candidateVotes",
    "fecha": "timestamp",
}

_LEGACY_CANDIDATE_KEYS = {
    "candidatoId": "candidateId",
    "candidatoNombre": "candidateName",
    "numeroVotos": "voteCount",
}

_LEGACY_NOTIFICATION_KEYS = {
    "votoId": "recordId",
    "antes": "before",
    "despues": "after",
    "eventoId": "eventId",
}


def _parse_payload(data: dict | bytes | str) -> Dict[str, Any]:
    """Parsea payload dict, str o bytes a dict JSON.

    English: Parse dict, str or bytes payload into a JSON dict.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError("Payload is not valid UTF-8") from exc
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError("Payload is not valid JSON") from exc
    if isinstance(data, dict):
        return data
    raise ValueError("Payload must be a JSON object")


def _rename(payload: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    migrated = dict(payload)
    for old, new in mapping.items():
        if old in migrated and new not in migrated:
            migrated[new] = migrated.pop(old)
    return migrated


def _migrate_record(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Migra claves heredadas del acta y de sus votos.

    English: Migrate legacy record keys and the keys of its candidate votes.
    """
    migrated = _rename(payload, _LEGACY_RECORD_KEYS)
    votes = migrated.get("candidateVotes")
    if isinstance(votes, list):
        migrated["candidateVotes"] = [
            _rename(vote, _LEGACY_CANDIDATE_KEYS) if isinstance(vote, dict) else vote for vote in votes
        ]
    return migrated


def parse_vote_record(data: dict | bytes | str | None) -> Optional[VoteRecord]:
    """Valida un acta cruda; ``None`` representa un acta ausente.

    English:
        Validate a raw vote record; ``None`` stands for an absent snapshot.
        Raises ``ValueError`` on malformed input.
    """
    if data is None:
        return None
    payload = _migrate_record(_parse_payload(data))
    try:
        return VoteRecord.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Vote record validation failed: {exc}") from exc


def parse_notification(data: dict | bytes | str) -> ChangeNotification:
    """Valida una notificación ``{recordId, before, after, eventId}``.

    English: Validate a change notification envelope.
    """
    payload = _rename(_parse_payload(data), _LEGACY_NOTIFICATION_KEYS)
    record_id = payload.get("recordId")
    if record_id is None or not str(record_id).strip():
        raise ValueError("Notification requires a recordId")
    before = parse_vote_record(payload.get("before"))
    after = parse_vote_record(payload.get("after"))
    event_id = payload.get("eventId")
    return ChangeNotification(
        record_id=str(record_id).strip(),
        before=before,
        after=after,
        event_id=str(event_id) if event_id is not None else None,
    )
