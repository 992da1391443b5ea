"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/escrutinio/core/store.py`.
Almacén de documentos con transacciones optimistas: cada transacción
recuerda la revisión de lo que leyó y solo confirma si nada cambió.

Componentes detectados:
  - AggregatorError
  - StoreError
  - TransactionConflict
  - StoreBusy
  - Transaction
  - DocumentStore
  - InMemoryDocumentStore
  - SqliteDocumentStore

Notas:
- Una transacción que sale con excepción descarta sus escrituras.
- El reintento ante conflicto lo decide quien llama (AggregateMerger).

======================== ENGLISH ========================
File: `src/escrutinio/core/store.py`.
Document store with optimistic transactions: each transaction remembers the
revision of everything it read and only commits if none of it changed.

Detected components:
  - AggregatorError
  - StoreError
  - TransactionConflict
  - StoreBusy
  - Transaction
  - DocumentStore
  - InMemoryDocumentStore
  - SqliteDocumentStore

Notes:
- A transaction exiting with an exception discards its writes.
- Retrying on conflict is the caller's decision (AggregateMerger).
"""

from __future__ import annotations

import copy
import json
import re
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, TypeVar

import structlog

logger = structlog.get_logger(__name__)

Document = Dict[str, Any]
T = TypeVar("T")


class AggregatorError(Exception):
    """Base error for the statistics aggregator."""


class StoreError(AggregatorError):
    """Raised when the underlying store cannot read or write."""


class TransactionConflict(AggregatorError):
    """Un escritor concurrente modificó algo que la transacción leyó.

    English: A concurrent writer changed something the transaction read.
    """

    def __init__(self, path: str, expected: int, found: int) -> None:
        super().__init__(f"conflict on {path}: read revision {expected}, store has {found}")
        self.path = path
        self.expected = expected
        self.found = found


class StoreBusy(TransactionConflict):
    """Otro proceso retiene el bloqueo de la base; se reintenta como conflicto.

    English: Another process holds the database lock; retried like a conflict.
    """

    def __init__(self, path: str, error: Exception) -> None:
        AggregatorError.__init__(self, f"{path} is locked: {error}")
        self.path = path
        self.expected = -1
        self.found = -1


def _is_locked(exc: Exception) -> bool:
    message = str(exc).lower()
    return isinstance(exc, sqlite3.OperationalError) and ("locked" in message or "busy" in message)


def _serialize(writes: Dict[str, Document]) -> Dict[str, str]:
    """Serializa todas las escrituras antes de tocar el almacén.

    English: Serialize every write before the store is touched.
    """
    try:
        return {path: json.dumps(data, ensure_ascii=False, sort_keys=True) for path, data in writes.items()}
    except (TypeError, ValueError) as exc:
        raise StoreError(f"document is not JSON serializable: {exc}") from exc


_PATH_RE = re.compile(r"^[A-Za-z0-9_\-.]+(/[A-Za-z0-9_\-.]+)*$")


def validate_path(path: str) -> str:
    if not _PATH_RE.match(path or ""):
        raise ValueError(f"Invalid document path: {path!r}")
    return path


class Transaction:
    """Transacción de lectura-modificación-escritura.

    English:
        Read-modify-write unit. Reads are recorded with their revision;
        writes are buffered until ``commit``.
    """

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self._reads: Dict[str, int] = {}
        self._writes: Dict[str, Document] = {}
        self.committed = False

    def get(self, path: str) -> Optional[Document]:
        validate_path(path)
        if path in self._writes:
            return copy.deepcopy(self._writes[path])
        data, revision = self._store._read(path)
        self._reads.setdefault(path, revision)
        return data

    def set(self, path: str, data: Document) -> None:
        validate_path(path)
        if self.committed:
            raise StoreError("transaction already committed")
        self._writes[path] = copy.deepcopy(data)

    def commit(self) -> None:
        if self.committed:
            raise StoreError("transaction already committed")
        if self._writes:
            self._store._commit(dict(self._reads), dict(self._writes))
        self.committed = True


class DocumentStore:
    """Interfaz mínima del almacén de documentos.

    English:
        Minimal document store contract. Subclasses implement ``_read`` and
        ``_commit``; revision ``0`` means the document does not exist.
    """

    def get(self, path: str) -> Optional[Document]:
        """Lectura fuera de transacción (eventualmente consistente).

        English: Read outside any transaction (eventually consistent).
        """
        data, _revision = self._read(validate_path(path))
        return data

    def revision(self, path: str) -> int:
        return self._read(validate_path(path))[1]

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        txn = Transaction(self)
        yield txn
        if not txn.committed:
            txn.commit()

    def run_transaction(self, body: Callable[[Transaction], T]) -> T:
        """Ejecuta ``body`` dentro de una transacción y confirma una sola vez.

        English:
            Run ``body`` inside one transaction and commit once. Raises
            ``TransactionConflict`` without retrying.
        """
        with self.transaction() as txn:
            return body(txn)

    def close(self) -> None:
        return None

    def _read(self, path: str) -> Tuple[Optional[Document], int]:
        raise NotImplementedError

    def _commit(self, reads: Dict[str, int], writes: Dict[str, Document]) -> None:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """Almacén en memoria, seguro entre hilos.

    English: Thread-safe in-memory store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: Dict[str, Tuple[str, int]] = {}
        self._revisions: Dict[str, int] = {}

    def _read(self, path: str) -> Tuple[Optional[Document], int]:
        with self._lock:
            entry = self._documents.get(path)
            revision = self._revisions.get(path, 0)
        if entry is None:
            return None, revision
        return json.loads(entry[0]), revision

    def _commit(self, reads: Dict[str, int], writes: Dict[str, Document]) -> None:
        with self._lock:
            for path, expected in reads.items():
                found = self._revisions.get(path, 0)
                if found != expected:
                    raise TransactionConflict(path, expected, found)
            bodies = _serialize(writes)
            for path, body in bodies.items():
                revision = self._revisions.get(path, 0) + 1
                self._documents[path] = (body, revision)
                self._revisions[path] = revision

    def delete(self, path: str) -> None:
        """Borrado manual (reinicio externo). / Manual delete (external reset)."""
        with self._lock:
            self._documents.pop(validate_path(path), None)
            self._revisions[path] = self._revisions.get(path, 0) + 1


class SqliteDocumentStore(DocumentStore):
    """Almacén SQLite con compare-and-swap sobre la columna ``revision``.

    English:
        SQLite-backed store. Commits run under ``BEGIN IMMEDIATE`` and compare
        each read revision before writing, so separate processes sharing the
        file get the same optimistic semantics.
    """

    def __init__(self, db_path: str | Path, timeout: float = 5.0) -> None:
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            self._connection = sqlite3.connect(
                self.db_path,
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open {self.db_path}: {exc}") from exc
        self._connection.row_factory = sqlite3.Row
        self._ensure_table()

    def close(self) -> None:
        self._connection.close()

    def _ensure_table(self) -> None:
        with self._lock:
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    path TEXT PRIMARY KEY,
                    body TEXT,
                    revision INTEGER NOT NULL
                )
                """
            )

    def _read(self, path: str) -> Tuple[Optional[Document], int]:
        with self._lock:
            try:
                row = self._connection.execute(
                    "SELECT body, revision FROM documents WHERE path = ?",
                    (path,),
                ).fetchone()
            except sqlite3.Error as exc:
                if _is_locked(exc):
                    raise StoreBusy(self.db_path, exc) from exc
                raise StoreError(f"read failed for {path}: {exc}") from exc
        if row is None:
            return None, 0
        if row["body"] is None:
            return None, row["revision"]
        try:
            return json.loads(row["body"]), row["revision"]
        except json.JSONDecodeError as exc:
            logger.error("store_document_corrupt", path=path, error=str(exc))
            raise StoreError(f"corrupt document at {path}") from exc

    def _current_revision(self, path: str) -> int:
        row = self._connection.execute("SELECT revision FROM documents WHERE path = ?", (path,)).fetchone()
        return row["revision"] if row else 0

    def _commit(self, reads: Dict[str, int], writes: Dict[str, Document]) -> None:
        bodies = _serialize(writes)
        with self._lock:
            try:
                self._connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                if _is_locked(exc):
                    raise StoreBusy(self.db_path, exc) from exc
                raise StoreError(f"cannot begin transaction: {exc}") from exc
            try:
                for path, expected in reads.items():
                    found = self._current_revision(path)
                    if found != expected:
                        raise TransactionConflict(path, expected, found)
                for path, body in bodies.items():
                    self._connection.execute(
                        """
                        INSERT INTO documents (path, body, revision) VALUES (?, ?, ?)
                        ON CONFLICT(path) DO UPDATE SET body = excluded.body, revision = excluded.revision
                        """,
                        (path, body, self._current_revision(path) + 1),
                    )
                self._connection.execute("COMMIT")
            except BaseException as exc:
                if self._connection.in_transaction:
                    self._connection.execute("ROLLBACK")
                if isinstance(exc, sqlite3.Error):
                    if _is_locked(exc):
                        raise StoreBusy(self.db_path, exc) from exc
                    raise StoreError(f"commit failed: {exc}") from exc
                raise
