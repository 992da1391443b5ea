"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/escrutinio/core/models.py`.
Modelos del acta (VoteRecord) y del documento agregado de estadísticas
generales que consumen todas las vistas del tablero.

Componentes detectados:
  - CandidateVote
  - VoteRecord
  - CandidateTally
  - DimensionStats
  - DistrictStats
  - ParishStats
  - ZoneStats
  - AggregateDocument
  - review_percent
  - zone_key

Notas:
- Los nombres persistidos (camelCase) son el contrato con el tablero.
- `reviewPercent` es derivado; nunca se acumula por deltas.

======================== ENGLISH ========================
File: `src/escrutinio/core/models.py`.
Vote record (acta) and the singleton general-statistics aggregate document
consumed by every dashboard view.

Detected components:
  - CandidateVote
  - VoteRecord
  - CandidateTally
  - DimensionStats
  - DistrictStats
  - ParishStats
  - ZoneStats
  - AggregateDocument
  - review_percent
  - zone_key

Notes:
- Persisted (camelCase) names are the contract with the dashboard.
- `reviewPercent` is derived; it is never delta-accumulated.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_PARISH_PREFIX = "no_parish"


def review_percent(reviewed: int, records: int) -> int:
    """Porcentaje de actas revisadas, redondeado hacia arriba en .5.

    English:
        Reviewed share as an integer percentage, rounding halves up the way
        the dashboard always has (``Math.round``). Zero when ``records <= 0``.
    """
    if records <= 0:
        return 0
    return (200 * reviewed + records) // (2 * records)


def zone_key(parish_id: Optional[str], zone_code: Optional[str]) -> Optional[str]:
    """Clave compuesta de zona: los códigos de zona se repiten entre parroquias.

    English:
        Composite zone key. Zone codes repeat across parishes, so the key is
        always built from the parish the record belongs to right now.
    """
    if zone_code is None:
        return None
    return f"{parish_id or NO_PARISH_PREFIX}_{zone_code}"


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _count(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("count must be an integer, not a boolean")
    return value


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CandidateVote(_Document):
    """Votos de un candidato dentro de un acta.

    English: One candidate's votes within a vote record.
    """

    candidate_id: str = Field(alias="candidateId", min_length=1)
    candidate_name: Optional[str] = Field(default=None, alias="candidateName")
    vote_count: int = Field(default=0, alias="voteCount", ge=0)

    @field_validator("candidate_id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        # 7 and "7" name the same candidate.
        if value is None:
            raise ValueError("candidateId is required")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip()

    @field_validator("vote_count", mode="before")
    @classmethod
    def _missing_votes_are_zero(cls, value: Any) -> int:
        return _count(value)


class VoteRecord(_Document):
    """Acta: el conteo de una junta receptora.

    Solo lectura para el agregador; lo crean y modifican los clientes de
    recolección en campo.

    English:
        One polling-station ballot tally. Read-only to the aggregator; field
        data-collection clients own its lifecycle.
    """

    record_id: Optional[str] = Field(default=None, alias="recordId")
    parish_id: Optional[str] = Field(default=None, alias="parishId")
    parish_name: Optional[str] = Field(default=None, alias="parishName")
    parish_svg_id: Optional[str] = Field(default=None, alias="parishSvgId")
    circunscripcion_code: Optional[str] = Field(default=None, alias="circunscripcionCode")
    zone_code: Optional[str] = Field(default=None, alias="zoneCode")
    zone_name: Optional[str] = Field(default=None, alias="zoneName")
    total_voters: int = Field(default=0, alias="totalVoters", ge=0)
    blank_votes: int = Field(default=0, alias="blankVotes", ge=0)
    null_votes: int = Field(default=0, alias="nullVotes", ge=0)
    reviewed: bool = False
    candidate_votes: List[CandidateVote] = Field(default_factory=list, alias="candidateVotes")
    timestamp: Optional[datetime] = None

    @field_validator(
        "record_id",
        "parish_id",
        "parish_name",
        "parish_svg_id",
        "circunscripcion_code",
        "zone_code",
        "zone_name",
        mode="before",
    )
    @classmethod
    def _normalize_text(cls, value: Any) -> Optional[str]:
        return _blank_to_none(value)

    @field_validator("total_voters", "blank_votes", "null_votes", mode="before")
    @classmethod
    def _missing_counts_are_zero(cls, value: Any) -> int:
        return _count(value)

    @field_validator("reviewed", mode="before")
    @classmethod
    def _only_true_is_reviewed(cls, value: Any) -> bool:
        return value is True

    @field_validator("candidate_votes", mode="before")
    @classmethod
    def _missing_candidates_are_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def total_valid_votes(self) -> int:
        return sum(vote.vote_count for vote in self.candidate_votes)

    @property
    def total_votes_cast(self) -> int:
        """Votos válidos + blancos + nulos. / Valid + blank + null votes."""
        return self.total_valid_votes + self.blank_votes + self.null_votes

    @property
    def zone_key(self) -> Optional[str]:
        return zone_key(self.parish_id, self.zone_code)

    def votes_by_candidate(self) -> Dict[str, int]:
        """Mapa candidato -> votos; ids repetidos se suman.

        English: Candidate id -> votes; repeated ids are summed.
        """
        votes: Dict[str, int] = {}
        for vote in self.candidate_votes:
            votes[vote.candidate_id] = votes.get(vote.candidate_id, 0) + vote.vote_count
        return votes

    def candidate_name(self, candidate_id: str) -> Optional[str]:
        for vote in self.candidate_votes:
            if vote.candidate_id == str(candidate_id) and vote.candidate_name:
                return vote.candidate_name
        return None


class CandidateTally(_Document):
    name: str = ""
    votes: int = 0


class DimensionStats(_Document):
    """Contadores aditivos compartidos por parroquia, circunscripción y zona.

    English: Additive counters shared by the parish, district and zone entries.
    """

    total_votes: int = Field(default=0, alias="totalVotes")
    voters: int = 0
    records: int = 0
    reviewed: int = 0
    unreviewed: int = 0

    def counters(self) -> Dict[str, int]:
        return {
            "totalVotes": self.total_votes,
            "voters": self.voters,
            "records": self.records,
            "reviewed": self.reviewed,
            "unreviewed": self.unreviewed,
        }

    def is_zero(self) -> bool:
        return not any(self.counters().values())


class DistrictStats(DimensionStats):
    """Circunscripción: solo contadores. / District entry: counters only."""


class ParishStats(DimensionStats):
    name: Optional[str] = None
    svg_id: str = Field(default="", alias="svgId")
    review_percent: int = Field(default=0, alias="reviewPercent")

    def refresh_review_percent(self) -> None:
        self.review_percent = review_percent(self.reviewed, self.records)


class ZoneStats(DimensionStats):
    name: Optional[str] = None
    code: Optional[str] = None
    parish_id: Optional[str] = Field(default=None, alias="parishId")
    parish_name: Optional[str] = Field(default=None, alias="parishName")
    parish_svg_id: str = Field(default="", alias="parishSvgId")
    review_percent: int = Field(default=0, alias="reviewPercent")

    def refresh_review_percent(self) -> None:
        self.review_percent = review_percent(self.reviewed, self.records)


class AggregateDocument(_Document):
    """Documento singleton de estadísticas generales.

    Se crea perezosamente con escalares en cero y mapas vacíos; el núcleo
    nunca lo borra. Los contadores pueden quedar negativos si los datos de
    origen son inconsistentes: es una señal, no se corrige en silencio.

    English:
        Singleton general-statistics document. Lazily created with zeroed
        scalars and empty maps; the core never deletes it. Counters may go
        negative when upstream data is inconsistent; that is reported, not
        silently clamped.
    """

    total_records: int = Field(default=0, alias="totalRecords")
    total_reviewed: int = Field(default=0, alias="totalReviewed")
    total_unreviewed: int = Field(default=0, alias="totalUnreviewed")
    total_voters: int = Field(default=0, alias="totalVoters")
    total_blank_votes: int = Field(default=0, alias="totalBlankVotes")
    total_null_votes: int = Field(default=0, alias="totalNullVotes")
    total_valid_votes: int = Field(default=0, alias="totalValidVotes")
    version: int = 1
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")
    votes_by_candidate: Dict[str, CandidateTally] = Field(default_factory=dict, alias="votesByCandidate")
    votes_by_parish: Dict[str, ParishStats] = Field(default_factory=dict, alias="votesByParish")
    votes_by_district: Dict[str, DistrictStats] = Field(default_factory=dict, alias="votesByDistrict")
    votes_by_zone: Dict[str, ZoneStats] = Field(default_factory=dict, alias="votesByZone")

    @classmethod
    def empty(cls, now: Optional[datetime] = None) -> "AggregateDocument":
        return cls(last_updated=now or datetime.now(timezone.utc))

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "AggregateDocument":
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        """Forma persistida (camelCase, JSON). / Persisted JSON form."""
        return self.model_dump(by_alias=True, mode="json")

    def candidate_vote_sum(self) -> int:
        return sum(tally.votes for tally in self.votes_by_candidate.values())

    def invariant_violations(self) -> List[str]:
        """Lista las invariantes rotas; vacía si el documento es consistente.

        English:
            List broken invariants; empty when the document is consistent.
        """
        problems: List[str] = []
        if self.total_records != self.total_reviewed + self.total_unreviewed:
            problems.append(
                f"totalRecords={self.total_records} != totalReviewed+totalUnreviewed="
                f"{self.total_reviewed + self.total_unreviewed}"
            )
        candidate_sum = self.candidate_vote_sum()
        if self.total_valid_votes != candidate_sum:
            problems.append(f"totalValidVotes={self.total_valid_votes} != sum(votesByCandidate)={candidate_sum}")
        dimensions: Dict[str, Dict[str, DimensionStats]] = {
            "votesByParish": self.votes_by_parish,
            "votesByDistrict": self.votes_by_district,
            "votesByZone": self.votes_by_zone,
        }
        for label, entries in dimensions.items():
            for key, entry in entries.items():
                if entry.records != entry.reviewed + entry.unreviewed:
                    problems.append(f"{label}[{key}].records != reviewed+unreviewed")
                if isinstance(entry, (ParishStats, ZoneStats)):
                    expected = review_percent(entry.reviewed, entry.records)
                    if entry.review_percent != expected:
                        problems.append(f"{label}[{key}].reviewPercent={entry.review_percent} != {expected}")
        return problems

    def negative_counters(self) -> List[str]:
        """Contadores por debajo de cero (datos de origen inconsistentes).

        English: Counters below zero, a symptom of inconsistent upstream data.
        """
        found = [
            name
            for name, value in self.to_document().items()
            if isinstance(value, int) and not isinstance(value, bool) and value < 0
        ]
        for candidate_id, tally in self.votes_by_candidate.items():
            if tally.votes < 0:
                found.append(f"votesByCandidate[{candidate_id}].votes")
        dimensions: Dict[str, Dict[str, DimensionStats]] = {
            "votesByParish": self.votes_by_parish,
            "votesByDistrict": self.votes_by_district,
            "votesByZone": self.votes_by_zone,
        }
        for label, entries in dimensions.items():
            for key, entry in entries.items():
                for counter, value in entry.counters().items():
                    if value < 0:
                        found.append(f"{label}[{key}].{counter}")
        return found
