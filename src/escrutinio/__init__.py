"""Agregador incremental de estadísticas de actas.

English:
    Incremental statistics aggregator for vote-tally records.
"""

__version__ = "0.1.0"
