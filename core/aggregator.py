"""
core/aggregator.py

Parallel, weighted aggregation of knowledge lookups across every registered source.

The aggregator is the only component that knows more than one knowledge source exists. For each
lookup it queries all sources at once, waits for every one of them (bounded by a per-source
timeout), and merges whatever came back into a single `AggregatedResult` that records which
source produced which record and how much each source should be trusted.

Failure model:
- A source that raises, times out or returns `Absent` is left out of the result. The remaining
  sources still contribute. No retries are attempted.
- When every source that attempted the lookup was unreachable, the failure is raised as
  `KnowledgeSourceUnreachableError`: the knowledge network as a whole is down. Sources that
  answer `Absent.NOT_SUPPORTED` make no request and do not count towards that decision.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Sequence, Tuple, Union

from knowledge_sources.base import (
    Absent,
    KnowledgeSource,
    KnowledgeSourceUnreachableError,
)
from monitoring.metrics import ERROR_COUNT, KNOWLEDGE_SOURCE_REQUEST_TIME
from shared.models import AggregatedResult, EndpointKind, SearchResult

logger = logging.getLogger(__name__)


class KnowledgeAggregator:
    """
    Fan-out/fan-in over a fixed, ordered set of knowledge sources.

    The source list is frozen at construction; there is no runtime registration. Results always
    follow registration order, so the output for a given set of upstream answers is stable.

    Args:
        sources (Sequence[KnowledgeSource]): Sources in priority/registration order.
        per_source_timeout (float): Seconds to wait for any single source before treating it as absent.
    """

    def __init__(self, sources: Sequence[KnowledgeSource], per_source_timeout: float = 10.0):
        self._sources: Tuple[KnowledgeSource, ...] = tuple(sources)
        self._per_source_timeout = per_source_timeout
        logger.info(
            "[KnowledgeAggregator] Initialized with %d sources: %s",
            len(self._sources),
            ", ".join(s.get_source_name() for s in self._sources),
        )

    @property
    def sources(self) -> Tuple[KnowledgeSource, ...]:
        return self._sources

    async def _timed(self, source: KnowledgeSource, label: str, awaitable) -> Any:
        start = time.perf_counter()
        try:
            return await asyncio.wait_for(awaitable, timeout=self._per_source_timeout)
        finally:
            KNOWLEDGE_SOURCE_REQUEST_TIME.labels(
                source=source.get_source_name(), kind=label
            ).observe(time.perf_counter() - start)

    def _is_usable(self, source: KnowledgeSource, outcome: Any, what: str) -> bool:
        """Log and classify one source outcome. True when it carries data."""
        name = source.get_source_name()
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, asyncio.TimeoutError):
            ERROR_COUNT.labels(type='knowledge_source', location=name).inc()
            logger.warning(f"[KnowledgeAggregator] {name} timed out after {self._per_source_timeout}s for {what}")
            return False
        if isinstance(outcome, Exception):
            ERROR_COUNT.labels(type='knowledge_source', location=name).inc()
            logger.warning(f"[KnowledgeAggregator] {name} failed for {what}: {outcome}")
            return False
        if isinstance(outcome, Absent):
            logger.debug(f"[KnowledgeAggregator] {name} has nothing for {what} ({outcome.value})")
            return False
        return True

    def _raise_if_all_unreachable(self, outcomes: List[Any], what: str) -> None:
        attempted = [o for o in outcomes if o is not Absent.NOT_SUPPORTED]
        if attempted and all(isinstance(o, KnowledgeSourceUnreachableError) for o in attempted):
            raise KnowledgeSourceUnreachableError(
                "knowledge network",
                f"none of the {len(attempted)} sources serving {what} could be reached: {attempted[0]}",
            )

    async def lookup(self, kind: EndpointKind, parameter: Union[int, str]) -> AggregatedResult:
        """
        Query every source for one entity and merge the successful records.

        Args:
            kind (EndpointKind): Kind of record to look up.
            parameter (Union[int, str]): Entity id or name.

        Returns:
            AggregatedResult: Records with provenance. Empty when no source had anything; that is
            a normal outcome, not an error.

        Raises:
            KnowledgeSourceUnreachableError: Every source serving this kind was unreachable.
        """
        what = f"{kind.value}/{parameter}"
        outcomes = await asyncio.gather(
            *(self._timed(source, kind.value, source.fetch(kind, parameter)) for source in self._sources),
            return_exceptions=True,
        )
        self._raise_if_all_unreachable(outcomes, what)

        records: List[Dict[str, Any]] = []
        names: List[str] = []
        weights: Dict[str, float] = {}
        for source, outcome in zip(self._sources, outcomes):
            if not self._is_usable(source, outcome, what):
                continue
            records.append(outcome)
            names.append(source.get_source_name())
            weights[source.get_source_name()] = source.get_reliability_weight()

        logger.info(f"[KnowledgeAggregator] {what}: {len(records)}/{len(self._sources)} sources responded")
        return AggregatedResult(
            kind=kind,
            parameter=parameter,
            records=records,
            sources=names,
            source_weights=weights,
        )

    async def get_pokemon(self, id_or_name: Union[int, str]) -> AggregatedResult:
        return await self.lookup(EndpointKind.POKEMON, id_or_name)

    async def get_species(self, id_or_name: Union[int, str]) -> AggregatedResult:
        return await self.lookup(EndpointKind.SPECIES, id_or_name)

    async def get_ability(self, id_or_name: Union[int, str]) -> AggregatedResult:
        return await self.lookup(EndpointKind.ABILITY, id_or_name)

    async def get_move(self, id_or_name: Union[int, str]) -> AggregatedResult:
        return await self.lookup(EndpointKind.MOVE, id_or_name)

    async def get_type(self, id_or_name: Union[int, str]) -> AggregatedResult:
        return await self.lookup(EndpointKind.TYPE, id_or_name)

    async def search(self, limit: int = 20, offset: int = 0) -> SearchResult:
        """
        Merge paginated Pokemon listings from every source that supports listing.

        Entries are concatenated in registration order without de-duplication, so the same
        Pokemon may appear once per source. Sources that fail or do not list contribute nothing.
        """
        what = f"search(limit={limit}, offset={offset})"
        outcomes = await asyncio.gather(
            *(self._timed(source, 'search', source.search_pokemon(limit, offset)) for source in self._sources),
            return_exceptions=True,
        )
        results: List[Dict[str, str]] = []
        names: List[str] = []
        for source, outcome in zip(self._sources, outcomes):
            if not self._is_usable(source, outcome, what):
                continue
            results.extend(outcome.get('results', []))
            names.append(source.get_source_name())
        return SearchResult(results=results, count=len(results), sources=names)
