from __future__ import annotations

from .aggregator import StatusAggregator, as_items, unique_items
from .convergence import await_condition
from .executor import MutationExecutor, MutationKind, settle
from .resolver import ResourceResolver

__all__ = [
    "MutationExecutor",
    "MutationKind",
    "ResourceResolver",
    "StatusAggregator",
    "as_items",
    "await_condition",
    "settle",
    "unique_items",
]
