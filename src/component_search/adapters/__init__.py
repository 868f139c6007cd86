"""Adapters layer - search engine implementations."""

from .memory_engine import InMemorySearchEngine
from .nouveau_engine import NouveauSearchEngine
from .search_engine import AbstractSearchEngine, EngineHit, EngineResult


__all__ = [
    "AbstractSearchEngine",
    "EngineHit",
    "EngineResult",
    "InMemorySearchEngine",
    "NouveauSearchEngine",
]
