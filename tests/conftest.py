"""Fixtures compartidas para las pruebas del agregador.

Shared fixtures for the aggregator tests.
"""

from __future__ import annotations

import pytest

from escrutinio.config import AggregatorSettings
from escrutinio.core.merge import AggregateMerger
from escrutinio.core.store import InMemoryDocumentStore
from escrutinio.trigger import TriggerAdapter
from factories import FIXED_NOW


@pytest.fixture()
def settings() -> AggregatorSettings:
    return AggregatorSettings(RETRY_BACKOFF_MIN=0, RETRY_BACKOFF_MAX=0)


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def merger(store: InMemoryDocumentStore, settings: AggregatorSettings) -> AggregateMerger:
    return AggregateMerger(store, settings, clock=lambda: FIXED_NOW)


@pytest.fixture()
def adapter(store: InMemoryDocumentStore, settings: AggregatorSettings, merger: AggregateMerger) -> TriggerAdapter:
    return TriggerAdapter(store, settings, merger=merger)
