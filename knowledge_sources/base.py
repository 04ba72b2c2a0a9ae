"""
Provider-agnostic interface for Pokemon knowledge sources.

This module defines the abstract contract that any upstream Pokemon data provider must
fulfill in order to be used by the aggregation layer. The design uses the adapter pattern:
each concrete source deals with its own base URL, HTTP transport and payload shape, and
hands back records in a normalized dictionary form. The aggregator, data fetcher and
orchestrator only ever speak to this contract, so adding a third provider means writing
one new subclass and registering it in the composition root.

Key concepts:
- Reliability weight: a static number in [0, 1] describing how authoritative a source is.
  It travels with every record so the response generator can tell the LLM which source to
  trust when two disagree (1.0 = official, 0.7 = community).
- Absent: the tagged value a source returns when it has nothing to offer for a lookup,
  either because it does not serve that kind of data at all or because the entity does not
  exist upstream. Returning `Absent` is a normal outcome, not an error, and it never affects
  how the same source is treated for other kinds.
- Errors: genuine transport failures are raised as `KnowledgeSourceError`. When the host
  cannot be reached at all the more specific `KnowledgeSourceUnreachableError` is raised,
  which lets the data fetcher distinguish "one flaky source" from "no network".
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Union

from shared.models import EndpointKind


class Absent(Enum):
    """Tagged "nothing here" result returned instead of a record."""
    NOT_SUPPORTED = "not_supported"
    NOT_FOUND = "not_found"


class KnowledgeSourceError(Exception):
    """A knowledge source failed while serving a lookup it supports."""

    def __init__(self, source_name: str, message: str):
        self.source_name = source_name
        super().__init__(f"{source_name}: {message}")


class KnowledgeSourceUnreachableError(KnowledgeSourceError):
    """The knowledge source host could not be reached (DNS failure, connection refused)."""


Record = Dict[str, Any]
LookupResult = Union[Record, Absent]


class KnowledgeSource(ABC):
    """
    Abstract knowledge source defining the operations the aggregation layer depends on.

    Subclasses must name themselves and declare a reliability weight. Every lookup method has
    a default implementation returning `Absent.NOT_SUPPORTED`, so a source only overrides the
    kinds it actually serves. This keeps partial providers (for example one that only knows
    basic Pokemon data) small and honest about their coverage.

    Contract for every lookup:
    - return a normalized record dict on success
    - return `Absent.NOT_SUPPORTED` for kinds the source does not serve
    - return `Absent.NOT_FOUND` when the upstream says the entity does not exist
    - raise `KnowledgeSourceError` (or its unreachable subclass) on transport failure
    """

    @abstractmethod
    def get_source_name(self) -> str:
        """Short display name used in provenance and diagnostics, e.g. "PokeAPI"."""
        raise NotImplementedError

    @abstractmethod
    def get_reliability_weight(self) -> float:
        """Static reliability weight in [0, 1]. Higher means more authoritative."""
        raise NotImplementedError

    async def get_pokemon(self, id_or_name: Union[int, str]) -> LookupResult:
        """Basic Pokemon data: stats, types, abilities, moves, sprites, height, weight."""
        return Absent.NOT_SUPPORTED

    async def get_species(self, id_or_name: Union[int, str]) -> LookupResult:
        """Species data: evolution chain reference, egg groups, growth rate, Pokedex entries."""
        return Absent.NOT_SUPPORTED

    async def get_ability(self, id_or_name: Union[int, str]) -> LookupResult:
        return Absent.NOT_SUPPORTED

    async def get_move(self, id_or_name: Union[int, str]) -> LookupResult:
        return Absent.NOT_SUPPORTED

    async def get_type(self, id_or_name: Union[int, str]) -> LookupResult:
        """Type data including damage relations used for effectiveness."""
        return Absent.NOT_SUPPORTED

    async def search_pokemon(self, limit: int = 20, offset: int = 0) -> Union[Dict[str, Any], Absent]:
        """
        List Pokemon with pagination.

        Returns:
            A dict with `results` (list of {"name", "url"}) and `count`, or `Absent`.
        """
        return Absent.NOT_SUPPORTED

    async def fetch(self, kind: EndpointKind, id_or_name: Union[int, str]) -> LookupResult:
        """
        Dispatch a lookup by endpoint kind.

        Args:
            kind (EndpointKind): Which kind of record to fetch.
            id_or_name (Union[int, str]): Numeric id or name of the entity.

        Returns:
            LookupResult: The normalized record or an `Absent` tag.
        """
        handlers: Dict[EndpointKind, Callable[[Union[int, str]], Awaitable[LookupResult]]] = {
            EndpointKind.POKEMON: self.get_pokemon,
            EndpointKind.SPECIES: self.get_species,
            EndpointKind.ABILITY: self.get_ability,
            EndpointKind.MOVE: self.get_move,
            EndpointKind.TYPE: self.get_type,
        }
        return await handlers[kind](id_or_name)

    async def aclose(self) -> None:
        """Release network resources. Sources without any keep the default no-op."""
        return None
