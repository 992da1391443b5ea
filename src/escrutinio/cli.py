"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/escrutinio/cli.py`.
Herramientas de operador: reproducir notificaciones, mostrar el agregado y
conciliarlo contra la colección de actas.

Componentes detectados:
  - main
  - apply
  - show
  - verify

Notas:
- `verify` recalcula desde cero; nunca se ejecuta en el camino del trigger.
- Códigos de salida: 0 ok, 1 fallos o deriva detectada, 2 entrada o configuración inválida.

======================== ENGLISH ========================
File: `src/escrutinio/cli.py`.
Operator tools: replay notifications, show the aggregate and reconcile it
against the vote-record collection.

Detected components:
  - main
  - apply
  - show
  - verify

Notes:
- `verify` recomputes from scratch; it never runs on the trigger path.
- Exit codes: 0 ok, 1 failures or drift detected, 2 invalid input or configuration.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer

from .config import AggregatorSettings, load_config
from .core.store import SqliteDocumentStore
from .logging import setup_logging
from .rebuild import diff_counters, rebuild_aggregate
from .reports import ranked_candidates, read_aggregate, summarize_parishes
from .schemas import parse_notification, parse_vote_record
from .trigger import TriggerAdapter

app = typer.Typer(help="Agregador incremental de estadísticas de actas / Incremental vote-tally aggregator")

_state: dict[str, Any] = {}


def _read_items(path: Path) -> List[Any]:
    """Lee un arreglo JSON o un archivo JSON-lines.

    English: Read a JSON array or a JSON-lines file.
    """
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        items = json.loads(text)
        if not isinstance(items, list):
            raise typer.BadParameter(f"{path} must contain a JSON array")
        return items
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def _parse_items(path: Path, parse: Callable[[Any], Any]) -> List[Any]:
    """Lee y valida cada elemento; un error de formato termina con código 2.

    English: Read and validate every item; a malformed item exits with code 2.
    """
    try:
        items = _read_items(path)
    except ValueError as exc:
        typer.echo(f"{path}: invalid JSON: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    parsed = []
    for position, item in enumerate(items, start=1):
        try:
            parsed.append(parse(item))
        except ValueError as exc:
            typer.echo(f"{path}: item {position}: {exc}", err=True)
            raise typer.Exit(code=2) from exc
    return parsed


def _settings() -> AggregatorSettings:
    return _state["settings"]


def _open_store() -> SqliteDocumentStore:
    settings = _settings()
    settings.STORAGE_PATH.mkdir(parents=True, exist_ok=True)
    return SqliteDocumentStore(settings.database_path)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Archivo YAML de configuración."),
    storage_path: Optional[Path] = typer.Option(None, "--storage-path", help="Directorio de datos."),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
) -> None:
    """Interfaz de línea de comandos del agregador.

    English: Aggregator command line interface.
    """
    overrides: dict[str, Any] = {}
    if storage_path is not None:
        overrides["STORAGE_PATH"] = storage_path
    if log_level is not None:
        overrides["LOG_LEVEL"] = log_level
    try:
        settings = load_config(config, **overrides)
    except (ValueError, FileNotFoundError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    _state["settings"] = settings
    setup_logging(settings.LOG_LEVEL, settings.STORAGE_PATH)


@app.command()
def apply(notifications: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Aplica notificaciones de cambio en orden. / Apply change notifications in order."""
    parsed = _parse_items(notifications, parse_notification)
    store = _open_store()
    try:
        outcomes, failures = TriggerAdapter(store, _settings()).handle_all(parsed)
    finally:
        store.close()
    skipped = sum(1 for outcome in outcomes if outcome.skipped)
    typer.echo(f"applied={len(outcomes) - skipped} skipped={skipped} failed={len(failures)}")
    for notification, error in failures:
        typer.echo(f"failed record {notification.record_id}: {error}", err=True)
    if failures:
        raise typer.Exit(code=1)


@app.command()
def show(
    parish: List[str] = typer.Option([], "--parish", "-p", help="svgId de parroquia a filtrar."),
    summary: bool = typer.Option(False, "--summary", help="Solo totales y ranking."),
) -> None:
    """Muestra el documento agregado. / Print the aggregate document."""
    store = _open_store()
    try:
        document = read_aggregate(store, _settings())
    finally:
        store.close()
    if summary or parish:
        payload: Any = {
            "totals": summarize_parishes(document, parish),
            "candidates": ranked_candidates(document),
            "version": document.version,
        }
    else:
        payload = document.to_document()
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command()
def verify(records: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Recalcula desde las actas y compara con el agregado guardado.

    English: Rebuild from the records and diff against the stored aggregate.
    """
    parsed = _parse_items(records, parse_vote_record)
    expected = rebuild_aggregate(record for record in parsed if record is not None)
    store = _open_store()
    try:
        actual = read_aggregate(store, _settings())
    finally:
        store.close()
    drift = diff_counters(expected, actual)
    problems = actual.invariant_violations()
    for line in drift:
        typer.echo(f"drift {line}")
    for line in problems:
        typer.echo(f"invariant {line}")
    if drift or problems:
        raise typer.Exit(code=1)
    typer.echo("aggregate consistent")


if __name__ == "__main__":
    app()
