"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `tests/test_models.py`.
Pruebas de los modelos de acta y del documento agregado.

======================== ENGLISH ========================
File: `tests/test_models.py`.
Tests for the vote-record and aggregate document models.
"""

import pytest
from pydantic import ValidationError

from escrutinio.core.models import AggregateDocument, VoteRecord, review_percent, zone_key
from factories import build_record


def test_missing_numeric_fields_are_zero():
    """Español: Campos numéricos ausentes o nulos valen cero.

    English: Absent or null numeric fields count as zero.
    """
    record = VoteRecord.model_validate(
        {"parishId": "P1", "totalVoters": None, "candidateVotes": [{"candidateId": "A"}]}
    )

    assert record.total_voters == 0
    assert record.blank_votes == 0
    assert record.null_votes == 0
    assert record.candidate_votes[0].vote_count == 0
    assert record.reviewed is False


def test_candidate_ids_are_compared_as_strings():
    record = VoteRecord.model_validate(
        {"candidateVotes": [{"candidateId": 7, "candidateName": "Siete", "voteCount": 3}]}
    )

    assert record.votes_by_candidate() == {"7": 3}
    assert record.candidate_name(7) == "Siete"


@pytest.mark.parametrize("candidate_id, expected", [(7.0, "7"), (7.5, "7.5"), (" 7 ", "7")])
def test_numeric_candidate_ids_match_their_text_form(candidate_id, expected):
    record = VoteRecord.model_validate({"candidateVotes": [{"candidateId": candidate_id, "voteCount": 3}]})

    assert record.votes_by_candidate() == {expected: 3}


def test_only_literal_true_counts_as_reviewed():
    assert VoteRecord.model_validate({"reviewed": "true"}).reviewed is False
    assert VoteRecord.model_validate({"reviewed": 1}).reviewed is False
    assert VoteRecord.model_validate({"reviewed": True}).reviewed is True


def test_negative_counts_are_rejected():
    with pytest.raises(ValidationError):
        VoteRecord.model_validate({"totalVoters": -1})


def test_totals_include_blank_and_null_votes():
    record = build_record(candidates=[("A", 10), ("B", 5)], blank=2, null=1)

    assert record.total_valid_votes == 15
    assert record.total_votes_cast == 18


@pytest.mark.parametrize(
    ("parish", "zone", "expected"),
    [
        ("P1", "Z1", "P1_Z1"),
        (None, "Z1", "no_parish_Z1"),
        ("P1", None, None),
    ],
)
def test_zone_key(parish, zone, expected):
    assert zone_key(parish, zone) == expected


def test_zone_key_follows_current_parish():
    before = build_record(parish="P1", zone="3")
    after = build_record(parish="P2", zone="3")

    assert before.zone_key != after.zone_key


@pytest.mark.parametrize(
    ("reviewed", "records", "expected"),
    [(0, 0, 0), (1, 1, 100), (1, 3, 33), (2, 3, 67), (1, 2, 50), (1, 8, 13), (5, -1, 0)],
)
def test_review_percent_rounds_half_up(reviewed, records, expected):
    assert review_percent(reviewed, records) == expected


def test_empty_document_round_trips_with_persisted_names():
    document = AggregateDocument.empty()
    raw = document.to_document()

    assert raw["totalRecords"] == 0
    assert raw["votesByCandidate"] == {}
    assert raw["votesByZone"] == {}
    assert raw["version"] == 1
    assert AggregateDocument.from_document(raw) == document
    assert document.invariant_violations() == []


def test_invariant_violations_reports_broken_conservation():
    document = AggregateDocument.from_document(
        {
            "totalRecords": 2,
            "totalReviewed": 1,
            "totalUnreviewed": 0,
            "totalValidVotes": 9,
            "votesByCandidate": {"A": {"name": "A", "votes": 10}},
            "votesByParish": {"P1": {"records": 1, "reviewed": 1, "unreviewed": 0, "reviewPercent": 0}},
        }
    )

    problems = document.invariant_violations()

    assert any(problem.startswith("totalRecords") for problem in problems)
    assert any(problem.startswith("totalValidVotes") for problem in problems)
    assert any("reviewPercent" in problem for problem in problems)


def test_negative_counters_are_reported_not_clamped():
    document = AggregateDocument.from_document(
        {"totalVoters": -5, "votesByDistrict": {"1": {"voters": -5}}}
    )

    assert document.total_voters == -5
    assert "totalVoters" in document.negative_counters()
    assert "votesByDistrict[1].voters" in document.negative_counters()
