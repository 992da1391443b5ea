"""Núcleo del agregador: modelos, deltas, merge y almacén.

English: Aggregator core: models, deltas, merge and store.
"""

from .deltas import DeltaSet, compute_delta
from .merge import AggregateMerger, MergeError, MergeOutcome, apply_delta, recompute_derived
from .models import AggregateDocument, VoteRecord
from .store import (
    AggregatorError,
    DocumentStore,
    InMemoryDocumentStore,
    SqliteDocumentStore,
    StoreError,
    TransactionConflict,
)

__all__ = [
    "AggregateDocument",
    "AggregateMerger",
    "AggregatorError",
    "DeltaSet",
    "DocumentStore",
    "InMemoryDocumentStore",
    "MergeError",
    "MergeOutcome",
    "SqliteDocumentStore",
    "StoreError",
    "TransactionConflict",
    "VoteRecord",
    "apply_delta",
    "compute_delta",
    "recompute_derived",
]
