"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `tests/test_cli.py`.
Comandos `apply`, `show` y `verify` sobre un almacenamiento SQLite temporal.

======================== ENGLISH ========================
File: `tests/test_cli.py`.
`apply`, `show` and `verify` commands over a temporary SQLite storage.
"""

import json

from typer.testing import CliRunner

from escrutinio.cli import app
from factories import record_payload

runner = CliRunner()


def _invoke(tmp_path, *args):
    return runner.invoke(app, ["--storage-path", str(tmp_path / "data"), "--log-level", "WARNING", *args])


def _write_lines(path, items):
    path.write_text("\n".join(json.dumps(item) for item in items) + "\n", encoding="utf-8")
    return path


def _replay(tmp_path):
    created = record_payload(parish="P1", candidates=[("A", 10), ("B", 5)], voters=20)
    reviewed = record_payload(parish="P1", candidates=[("A", 12), ("B", 5)], voters=20, reviewed=True)
    other = record_payload(parish="P2", zone="Z9", candidates=[("B", 7)], voters=9)
    notifications = _write_lines(
        tmp_path / "notifications.jsonl",
        [
            {"recordId": "r1", "before": None, "after": created, "eventId": "e1"},
            {"recordId": "r1", "before": created, "after": reviewed, "eventId": "e2"},
            {"votoId": "r2", "antes": None, "despues": other, "eventoId": "e3"},
        ],
    )
    return notifications, [reviewed, other]


def test_apply_then_show(tmp_path):
    """Español: `apply` reproduce el flujo y `show` imprime el agregado.

    English: `apply` replays the stream and `show` prints the aggregate.
    """
    notifications, _ = _replay(tmp_path)

    applied = _invoke(tmp_path, "apply", str(notifications))
    assert applied.exit_code == 0, applied.output
    assert "applied=3 skipped=0 failed=0" in applied.output

    shown = _invoke(tmp_path, "show")
    assert shown.exit_code == 0, shown.output
    document = json.loads(shown.stdout)
    assert document["version"] == 4
    assert document["totalRecords"] == 2
    assert document["totalReviewed"] == 1
    assert document["totalValidVotes"] == 24
    assert document["votesByParish"]["P1"]["reviewPercent"] == 100
    assert document["votesByZone"]["P2_Z9"]["totalVotes"] == 7


def test_show_summary_filters_parishes(tmp_path):
    notifications, _ = _replay(tmp_path)
    _invoke(tmp_path, "apply", str(notifications))

    shown = _invoke(tmp_path, "show", "--parish", "svg-P2")

    payload = json.loads(shown.stdout)
    assert payload["totals"]["records"] == 1
    assert payload["totals"]["totalVotes"] == 7
    assert [item["id"] for item in payload["candidates"]] == ["A", "B"]


def test_redelivered_notifications_are_skipped(tmp_path):
    notifications, _ = _replay(tmp_path)
    _invoke(tmp_path, "apply", str(notifications))
    latest = notifications.read_text(encoding="utf-8").splitlines()[1:]
    redelivered = tmp_path / "redelivered.jsonl"
    redelivered.write_text("\n".join(latest), encoding="utf-8")

    again = _invoke(tmp_path, "apply", str(redelivered))

    assert again.exit_code == 0, again.output
    assert "applied=0 skipped=2 failed=0" in again.output

    shown = json.loads(_invoke(tmp_path, "show").stdout)
    assert shown["version"] == 4


def test_verify_reports_consistent_aggregate(tmp_path):
    notifications, final_records = _replay(tmp_path)
    _invoke(tmp_path, "apply", str(notifications))
    records = tmp_path / "records.json"
    records.write_text(json.dumps(final_records), encoding="utf-8")

    result = _invoke(tmp_path, "verify", str(records))

    assert result.exit_code == 0, result.output
    assert "aggregate consistent" in result.output


def test_verify_detects_drift(tmp_path):
    notifications, final_records = _replay(tmp_path)
    _invoke(tmp_path, "apply", str(notifications))
    records = tmp_path / "records.json"
    records.write_text(json.dumps(final_records[:1]), encoding="utf-8")

    result = _invoke(tmp_path, "verify", str(records))

    assert result.exit_code == 1
    assert "drift totalRecords: expected 1, found 2" in result.output


def test_invalid_configuration_exits_with_code_two(tmp_path):
    result = runner.invoke(app, ["--storage-path", str(tmp_path), "--log-level", "LOUD", "show"])

    assert result.exit_code == 2


def test_apply_rejects_malformed_line(tmp_path):
    notifications = tmp_path / "notifications.jsonl"
    notifications.write_text('{"recordId": "r1", "before": null, "after": {}}\n{not json\n', encoding="utf-8")

    result = _invoke(tmp_path, "apply", str(notifications))

    assert result.exit_code == 2
    assert "invalid JSON" in result.output


def test_apply_rejects_notification_without_record_id(tmp_path):
    notifications = _write_lines(tmp_path / "notifications.jsonl", [{"before": None, "after": {}}])

    result = _invoke(tmp_path, "apply", str(notifications))

    assert result.exit_code == 2
    assert "item 1" in result.output


def test_verify_rejects_invalid_record(tmp_path):
    records = tmp_path / "records.json"
    records.write_text(json.dumps([{"totalVoters": -1}]), encoding="utf-8")

    result = _invoke(tmp_path, "verify", str(records))

    assert result.exit_code == 2
    assert "item 1" in result.output
