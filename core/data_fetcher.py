"""
core/data_fetcher.py

Executes the knowledge lookups requested by the intent classifier.

Each requested lookup is sent to the aggregator concurrently and timed on its own. Successful
lookups are grouped by endpoint kind for the response generator, and every contributing source is
recorded as a `ResourceUsageEntry` for the turn diagnostics.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple, Union

from knowledge_sources.base import KnowledgeSourceUnreachableError
from shared.models import AggregatedResult, EndpointKind, EndpointRequest, ResourceUsageEntry
from shared.utils import elapsed_ms
from .aggregator import KnowledgeAggregator

logger = logging.getLogger(__name__)


class DataFetchError(Exception):
    """The knowledge network could not be reached; the turn cannot be answered from data."""


FetchedData = Dict[str, List[AggregatedResult]]


class DataFetcher:
    """
    Runs a batch of endpoint requests against the aggregator.

    Args:
        aggregator (KnowledgeAggregator): Multi-source lookup engine.
    """

    def __init__(self, aggregator: KnowledgeAggregator):
        self.aggregator = aggregator

    async def _timed_lookup(self, kind: EndpointKind, parameter: Union[int, str]) -> Tuple[AggregatedResult, float]:
        start = time.perf_counter()
        result = await self.aggregator.lookup(kind, parameter)
        return result, elapsed_ms(start)

    async def fetch_endpoint_data(
        self,
        requests: Sequence[EndpointRequest],
        resources_used: Optional[List[ResourceUsageEntry]] = None,
    ) -> FetchedData:
        """
        Fetch every requested lookup concurrently and group the results by kind.

        Args:
            requests (Sequence[EndpointRequest]): Lookups in the order the classifier produced them.
            resources_used (Optional[List[ResourceUsageEntry]]): List to append one entry per
                contributing source per lookup. Entries are labelled "<Source>-<Kind>", e.g.
                "PokeAPI-Pokemon".

        Returns:
            FetchedData: Mapping of kind value (e.g. "pokemon") to results in request order. An empty
            request list returns {} without touching the aggregator. Unknown kinds are skipped.

        Raises:
            DataFetchError: The knowledge sources were unreachable.
        """
        if not requests:
            return {}
        if resources_used is None:
            resources_used = []

        planned: List[Tuple[EndpointKind, Union[int, str]]] = []
        for request in requests:
            kind = EndpointKind.parse(request.endpoint)
            if kind is None:
                logger.warning(f"[DataFetcher] Unknown endpoint kind '{request.endpoint}', skipping")
                continue
            planned.append((kind, request.parameter))

        outcomes = await asyncio.gather(
            *(self._timed_lookup(kind, parameter) for kind, parameter in planned),
            return_exceptions=True,
        )

        for outcome in outcomes:
            if isinstance(outcome, KnowledgeSourceUnreachableError):
                raise DataFetchError(f"Unable to connect to Pokemon API: {outcome}") from outcome

        fetched: FetchedData = {}
        for (kind, parameter), outcome in zip(planned, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error(f"[DataFetcher] Lookup {kind.value}/{parameter} failed: {outcome}")
                continue
            result, response_time_ms = outcome
            for source in result.sources:
                resources_used.append(ResourceUsageEntry(
                    source=f"{source}-{kind.value.capitalize()}",
                    parameter=str(parameter),
                    response_time_ms=response_time_ms,
                ))
            fetched.setdefault(kind.value, []).append(result)

        logger.info(
            f"[DataFetcher] Fetched {sum(len(v) for v in fetched.values())} lookups "
            f"across {len(fetched)} kinds"
        )
        return fetched
