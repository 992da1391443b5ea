"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `conftest.py`.
Fixtures globales: sin red durante las pruebas y sin `.env` local.

Componentes detectados:
  - block_network
  - isolate_environment

======================== ENGLISH ========================
File: `conftest.py`.
Global fixtures: no network during tests and no local `.env`.

Detected components:
  - block_network
  - isolate_environment
"""

from __future__ import annotations

import os
import socket
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def block_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Impide conexiones de red reales en tests.

    English:
        Prevents real network connections in tests.
    """

    def guarded_connect(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("Network access is disabled during tests.")

    def guarded_create_connection(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("Network access is disabled during tests.")

    monkeypatch.setattr(socket.socket, "connect", guarded_connect, raising=True)
    monkeypatch.setattr(socket, "create_connection", guarded_create_connection, raising=True)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Evita que variables ``ESCRUTINIO_*`` o un .env local afecten las pruebas.

    English: Keep ``ESCRUTINIO_*`` variables and a local .env out of tests.
    """
    for name in list(os.environ):
        if name.startswith("ESCRUTINIO_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
