"""
knowledge_sources package: adapters for upstream Pokemon data providers.

Each module wraps one provider behind the `KnowledgeSource` contract defined in `base`.
The aggregation layer fans lookups out to every registered source and never needs to know
which provider it is talking to.

Included modules:
- base: the abstract interface, the `Absent` tag and the error types
- http_source: shared httpx plumbing for JSON REST providers
- pokeapi_client: the official PokeAPI (all kinds, weight 1.0)
- pokedexapi_client: the community PokedexAPI (basic Pokemon data only, weight 0.7)
- mock_client: deterministic in-memory source for offline runs and tests
"""

from .base import (
    Absent,
    KnowledgeSource,
    KnowledgeSourceError,
    KnowledgeSourceUnreachableError,
)
from .mock_client import MockKnowledgeSource
from .pokeapi_client import PokeApiKnowledgeSource
from .pokedexapi_client import PokedexApiKnowledgeSource

__all__ = [
    "Absent",
    "KnowledgeSource",
    "KnowledgeSourceError",
    "KnowledgeSourceUnreachableError",
    "MockKnowledgeSource",
    "PokeApiKnowledgeSource",
    "PokedexApiKnowledgeSource",
]
