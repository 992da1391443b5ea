"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `tests/test_logging.py`.
Configuración de logging estructurado.

======================== ENGLISH ========================
File: `tests/test_logging.py`.
Structured logging setup.
"""

import logging

from escrutinio.logging import bind_context, setup_logging


def test_setup_logging_creates_rotating_file(tmp_path):
    setup_logging("INFO", tmp_path)

    assert (tmp_path / "logs").is_dir()
    assert any(isinstance(handler, logging.FileHandler) for handler in logging.getLogger().handlers)


def test_bind_context_skips_missing_values():
    class Recorder:
        def bind(self, **context):
            return context

    assert bind_context(Recorder(), record_id="r1", event_id=None, change="create") == {
        "record_id": "r1",
        "change": "create",
    }
