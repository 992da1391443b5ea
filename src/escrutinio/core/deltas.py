# Deltas Module
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

"""Cálculo de deltas firmados a partir de las versiones antes/después de un acta.

English:
    Signed delta calculation from the before/after snapshots of one vote
    record. Pure and synchronous: it never reads the current aggregate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from .models import VoteRecord


@dataclass(frozen=True)
class Counters:
    """Contadores aditivos de una entrada de dimensión.

    English: Additive counters of one dimension entry.
    """

    total_votes: int = 0
    voters: int = 0
    records: int = 0
    reviewed: int = 0
    unreviewed: int = 0

    def __add__(self, other: "Counters") -> "Counters":
        return Counters(
            total_votes=self.total_votes + other.total_votes,
            voters=self.voters + other.voters,
            records=self.records + other.records,
            reviewed=self.reviewed + other.reviewed,
            unreviewed=self.unreviewed + other.unreviewed,
        )

    def __neg__(self) -> "Counters":
        return Counters(
            total_votes=-self.total_votes,
            voters=-self.voters,
            records=-self.records,
            reviewed=-self.reviewed,
            unreviewed=-self.unreviewed,
        )

    def __sub__(self, other: "Counters") -> "Counters":
        return self + (-other)

    @classmethod
    def of(cls, record: Optional[VoteRecord]) -> "Counters":
        """Aporte completo de un acta (cero si no existe).

        English: Full contribution of one record (zero when absent).
        """
        if record is None:
            return cls()
        return cls(
            total_votes=record.total_votes_cast,
            voters=record.total_voters,
            records=1,
            reviewed=1 if record.reviewed else 0,
            unreviewed=0 if record.reviewed else 1,
        )


@dataclass(frozen=True)
class CandidateDelta:
    candidate_id: str
    name: str
    votes: int


@dataclass(frozen=True)
class ParishDelta:
    parish_id: str
    name: Optional[str]
    svg_id: str
    counters: Counters


@dataclass(frozen=True)
class DistrictDelta:
    code: str
    counters: Counters


@dataclass(frozen=True)
class ZoneDelta:
    key: str
    name: str
    code: str
    parish_id: Optional[str]
    parish_name: Optional[str]
    parish_svg_id: str
    counters: Counters


@dataclass
class DeltaSet:
    """Cambio firmado producido por una mutación de acta.

    Attributes:
        records, reviewed, unreviewed, voters, blank_votes, null_votes:
            deltas de los escalares globales.
        candidates, parishes, districts, zones: deltas por clave.

    English:
        Signed change produced by one vote-record mutation: global scalar
        deltas plus per-key deltas for every dimension. ``totalValidVotes``
        has no delta of its own; the merger recomputes it from the candidates.
    """

    records: int = 0
    reviewed: int = 0
    unreviewed: int = 0
    voters: int = 0
    blank_votes: int = 0
    null_votes: int = 0
    candidates: Dict[str, CandidateDelta] = field(default_factory=dict)
    parishes: Dict[str, ParishDelta] = field(default_factory=dict)
    districts: Dict[str, DistrictDelta] = field(default_factory=dict)
    zones: Dict[str, ZoneDelta] = field(default_factory=dict)

    def is_empty(self) -> bool:
        scalars = (self.records, self.reviewed, self.unreviewed, self.voters, self.blank_votes, self.null_votes)
        return not any(scalars) and not (self.candidates or self.parishes or self.districts or self.zones)

    def negated(self) -> "DeltaSet":
        return DeltaSet(
            records=-self.records,
            reviewed=-self.reviewed,
            unreviewed=-self.unreviewed,
            voters=-self.voters,
            blank_votes=-self.blank_votes,
            null_votes=-self.null_votes,
            candidates={
                key: CandidateDelta(item.candidate_id, item.name, -item.votes) for key, item in self.candidates.items()
            },
            parishes={
                key: ParishDelta(item.parish_id, item.name, item.svg_id, -item.counters)
                for key, item in self.parishes.items()
            },
            districts={key: DistrictDelta(item.code, -item.counters) for key, item in self.districts.items()},
            zones={
                key: ZoneDelta(
                    item.key,
                    item.name,
                    item.code,
                    item.parish_id,
                    item.parish_name,
                    item.parish_svg_id,
                    -item.counters,
                )
                for key, item in self.zones.items()
            },
        )


def candidate_display_name(candidate_id: str, *records: Optional[VoteRecord]) -> str:
    """Nombre del candidato tomado del primer snapshot que lo tenga.

    English: Candidate name from the first snapshot that carries one.
    """
    for record in records:
        if record is None:
            continue
        name = record.candidate_name(candidate_id)
        if name:
            return name
    return f"Candidato {candidate_id}"


def _candidate_deltas(before: Optional[VoteRecord], after: Optional[VoteRecord]) -> Dict[str, CandidateDelta]:
    before_votes = before.votes_by_candidate() if before else {}
    after_votes = after.votes_by_candidate() if after else {}
    deltas: Dict[str, CandidateDelta] = {}
    for candidate_id in list(before_votes) + [key for key in after_votes if key not in before_votes]:
        deltas[candidate_id] = CandidateDelta(
            candidate_id=candidate_id,
            name=candidate_display_name(candidate_id, after, before),
            votes=after_votes.get(candidate_id, 0) - before_votes.get(candidate_id, 0),
        )
    return deltas


def _split_by_key(
    key_before: Optional[str],
    key_after: Optional[str],
    before: Optional[VoteRecord],
    after: Optional[VoteRecord],
) -> Dict[str, tuple]:
    """Reparte el cambio entre las claves viejas y nuevas de una dimensión.

    Misma clave: una sola entrada con la diferencia. Clave distinta: entrada
    negativa completa para la vieja y positiva completa para la nueva.

    English:
        Split the change across a dimension's old and new keys. Same key: one
        entry carrying the difference. Different key: a full negative entry
        for the old key and a full positive entry for the new one.

    Returns:
        Dict[str, tuple]: key -> (counters, record that labels the entry).
    """
    entries: Dict[str, tuple] = {}
    if key_before is not None and key_before == key_after:
        entries[key_after] = (Counters.of(after) - Counters.of(before), after)
        return entries
    if key_before is not None:
        entries[key_before] = (-Counters.of(before), before)
    if key_after is not None:
        entries[key_after] = (Counters.of(after), after)
    return entries


def compute_delta(before: Optional[VoteRecord], after: Optional[VoteRecord]) -> DeltaSet:
    """Calcula el DeltaSet de una mutación (creación, edición o borrado).

    Args:
        before (Optional[VoteRecord]): Acta antes del cambio; ``None`` si se creó.
        after (Optional[VoteRecord]): Acta después del cambio; ``None`` si se borró.

    Returns:
        DeltaSet: Cambios firmados para escalares y las cuatro dimensiones.

    English:
        Compute the DeltaSet of one mutation. Creation yields the record's full
        positive contribution, deletion its negation, and an update the
        per-dimension differences (split into old/new entries whenever a
        dimension key changed). Both snapshots absent yields an empty set.
    """
    if before is None and after is None:
        return DeltaSet()

    scalars = Counters.of(after) - Counters.of(before)
    delta = DeltaSet(
        records=scalars.records,
        reviewed=scalars.reviewed,
        unreviewed=scalars.unreviewed,
        voters=scalars.voters,
        blank_votes=(after.blank_votes if after else 0) - (before.blank_votes if before else 0),
        null_votes=(after.null_votes if after else 0) - (before.null_votes if before else 0),
        candidates=_candidate_deltas(before, after),
    )

    parishes = _split_by_key(
        before.parish_id if before else None,
        after.parish_id if after else None,
        before,
        after,
    )
    for parish_id, (counters, source) in parishes.items():
        delta.parishes[parish_id] = ParishDelta(
            parish_id=parish_id,
            name=source.parish_name,
            svg_id=source.parish_svg_id or "",
            counters=counters,
        )

    districts = _split_by_key(
        before.circunscripcion_code if before else None,
        after.circunscripcion_code if after else None,
        before,
        after,
    )
    for code, (counters, _source) in districts.items():
        delta.districts[code] = DistrictDelta(code=code, counters=counters)

    # Zone keys are rebuilt from each snapshot's own parish.
    zones = _split_by_key(
        before.zone_key if before else None,
        after.zone_key if after else None,
        before,
        after,
    )
    for key, (counters, source) in zones.items():
        delta.zones[key] = ZoneDelta(
            key=key,
            name=source.zone_name or f"Zona {source.zone_code}",
            code=source.zone_code,
            parish_id=source.parish_id,
            parish_name=source.parish_name,
            parish_svg_id=source.parish_svg_id or "",
            counters=counters,
        )

    return delta
