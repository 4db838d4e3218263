"""State/store layer.

This package is the single source of truth for what the presentation
layer sees. Every asynchronous result is tagged with the fetch generation
that produced it; the store drops anything from a superseded generation.
"""

from clustergeo.state.events import MapUpdate, UpdateKind
from clustergeo.state.generation import FetchGeneration, GenerationCounter
from clustergeo.state.store import MapState, MapStateStore, StateListener

__all__ = [
    "FetchGeneration",
    "GenerationCounter",
    "MapState",
    "MapStateStore",
    "MapUpdate",
    "StateListener",
    "UpdateKind",
]
