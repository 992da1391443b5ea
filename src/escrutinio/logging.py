"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/escrutinio/logging.py`.
Configuración de structlog para el agregador y contexto estándar por
mutación de acta.

Componentes detectados:
  - setup_logging
  - bind_context

Notas:
- Los eventos se nombran en snake_case (`aggregate_merged`).
- Todo error de merge se registra con el `record_id` que lo disparó.

======================== ENGLISH ========================
File: `src/escrutinio/logging.py`.
structlog configuration for the aggregator plus the standard per-mutation
context.

Detected components:
  - setup_logging
  - bind_context

Notes:
- Events are named in snake_case (`aggregate_merged`).
- Every merge failure is logged with the `record_id` that triggered it.
"""

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import structlog


def setup_logging(log_level: str, storage_path: Optional[Path] = None) -> structlog.BoundLogger:
    """Configura structlog y handlers de consola/archivo.

    English:
        Configure structlog with console and, when ``storage_path`` is given,
        a daily rotating file handler under ``<storage_path>/logs``.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if storage_path is not None:
        log_dir = Path(storage_path) / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            TimedRotatingFileHandler(
                log_dir / "escrutinio.log",
                when="midnight",
                backupCount=30,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=log_level.upper(),
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level.upper())),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("escrutinio")


def bind_context(
    logger: Any,
    record_id: Optional[str] = None,
    event_id: Optional[str] = None,
    change: Optional[str] = None,
) -> Any:
    """Adjunta contexto estándar al logger.

    English: Bind standard context to the logger.
    """
    context: dict[str, Any] = {}
    if record_id:
        context["record_id"] = record_id
    if event_id:
        context["event_id"] = event_id
    if change:
        context["change"] = change
    return logger.bind(**context)
