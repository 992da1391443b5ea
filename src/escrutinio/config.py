# Config Module
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

"""Configuración validada del agregador de estadísticas.

Validated configuration for the statistics aggregator.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PATH = Path(".env")
_ENV_LOCAL_PATH = Path(".env.local")
load_dotenv(_ENV_PATH, override=False)
load_dotenv(_ENV_LOCAL_PATH, override=False)

DEFAULT_AGGREGATE_PATH = "estadisticas_totales/estadisticas_generales"
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class AggregatorSettings(BaseSettings):
    """Variables de entorno (prefijo ``ESCRUTINIO_``) y archivo .env.

    English: Environment variables (``ESCRUTINIO_`` prefix) and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="ESCRUTINIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    STORAGE_PATH: Path = Path("data")
    DATABASE_FILE: str = "escrutinio.sqlite3"
    LOG_LEVEL: str = "INFO"
    AGGREGATE_PATH: str = DEFAULT_AGGREGATE_PATH
    LEDGER_COLLECTION: str = "eventos_procesados"
    MAX_MERGE_ATTEMPTS: int = Field(default=5, ge=1, le=20)
    RETRY_BACKOFF_MIN: float = Field(default=0.1, ge=0)
    RETRY_BACKOFF_MAX: float = Field(default=2.0, ge=0)
    DEDUPE_ENABLED: bool = True

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown LOG_LEVEL: {value}")
        return level

    @field_validator("AGGREGATE_PATH")
    @classmethod
    def _collection_and_document(cls, value: str) -> str:
        parts = [part for part in value.strip().split("/") if part]
        if len(parts) < 2 or len(parts) % 2:
            raise ValueError("AGGREGATE_PATH must look like 'collection/document'")
        return "/".join(parts)

    @model_validator(mode="after")
    def _backoff_bounds(self) -> "AggregatorSettings":
        if self.RETRY_BACKOFF_MAX < self.RETRY_BACKOFF_MIN:
            raise ValueError("RETRY_BACKOFF_MAX must be >= RETRY_BACKOFF_MIN")
        return self

    @property
    def database_path(self) -> Path:
        return self.STORAGE_PATH / self.DATABASE_FILE

    def ledger_path(self, record_id: str) -> str:
        # Record ids are opaque; the document key is their digest.
        digest = hashlib.sha256(record_id.encode("utf-8")).hexdigest()
        return f"{self.LEDGER_COLLECTION}/{digest}"


def _load_yaml_mapping(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping or raise a user-facing error.

    Carga un mapa YAML o lanza un error orientado al usuario.
    """
    if not path.exists():
        raise FileNotFoundError(f"Falta {path.as_posix()} (Missing {path.as_posix()}).")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"{path.name} tiene errores de sintaxis YAML ({path.name} has YAML syntax errors).") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"{path.name} debe ser un mapa YAML ({path.name} must be a YAML mapping).")
    return {str(key).upper(): value for key, value in raw.items()}


def load_config(config_path: Optional[Path] = None, **overrides: Any) -> AggregatorSettings:
    """Carga y valida configuración, fallando con detalle.

    Prioridad: ``overrides`` > archivo YAML > entorno/.env > valores por defecto.

    English:
        Load and validate configuration, failing with details. Precedence:
        ``overrides`` > YAML file > environment/.env > defaults.
    """
    values: Dict[str, Any] = {}
    if config_path is not None:
        values.update(_load_yaml_mapping(Path(config_path)))
    values.update({key.upper(): value for key, value in overrides.items()})
    try:
        return AggregatorSettings(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
