"""
core/bootstrap.py

Composition root: builds the chat pipeline object graph once at startup.

Nothing in the pipeline constructs its own collaborators. Everything is created here from the
configuration and passed in. The set of knowledge sources is fixed once this returns.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from config import CONFIG, load_prompts
from knowledge_sources import (
    KnowledgeSource,
    MockKnowledgeSource,
    PokeApiKnowledgeSource,
    PokedexApiKnowledgeSource,
)
from llm_cloud.service import LLMService
from services.session_store import SessionStore
from .aggregator import KnowledgeAggregator
from .classifier import IntentClassifier
from .data_fetcher import DataFetcher
from .orchestrator import ChatOrchestrator
from .response_generator import ResponseGenerator
from .summary import SummaryGenerator, SummaryScheduler

logger = logging.getLogger(__name__)


@dataclass
class ChatComponents:
    """Everything the HTTP layer needs, built once and shared for the process lifetime."""
    store: SessionStore
    llm: LLMService
    sources: Tuple[KnowledgeSource, ...]
    aggregator: KnowledgeAggregator
    summary_scheduler: SummaryScheduler
    orchestrator: ChatOrchestrator

    async def aclose(self) -> None:
        """Wait for outstanding summaries, then release knowledge source connections."""
        await self.summary_scheduler.drain()
        for source in self.sources:
            await source.aclose()


def _reliability_weight(source_config: dict, name: str, default: float) -> float:
    """Read a configured reliability weight, which must lie in [0, 1]."""
    weight = float(source_config.get('weight', default))
    if not 0.0 <= weight <= 1.0:
        raise ValueError(f"Reliability weight for {name} must be between 0 and 1, got {weight}")
    return weight


def build_knowledge_sources(config: dict = CONFIG) -> Tuple[KnowledgeSource, ...]:
    """
    Create the knowledge sources named by configuration, in priority order.

    `knowledge_sources.mode == "mock"` swaps both HTTP providers for in-memory sources with the
    same names and weights, so the whole pipeline can run offline.

    Raises:
        ValueError: A configured reliability weight lies outside [0, 1].
    """
    ks_config = config.get('knowledge_sources', {})
    pokeapi = ks_config.get('pokeapi', {})
    pokedexapi = ks_config.get('pokedexapi', {})
    pokeapi_weight = _reliability_weight(pokeapi, 'PokeAPI', 1.0)
    pokedexapi_weight = _reliability_weight(pokedexapi, 'PokedexAPI', 0.7)

    if ks_config.get('mode', 'http') == 'mock':
        logger.info("[bootstrap] Using mock knowledge sources")
        sources: List[KnowledgeSource] = [
            MockKnowledgeSource(name="PokeAPI", weight=pokeapi_weight),
            MockKnowledgeSource(name="PokedexAPI", weight=pokedexapi_weight, supported_kinds=[]),
        ]
        return tuple(sources)

    timeout = float(ks_config.get('request_timeout', 8))
    sources = [
        PokeApiKnowledgeSource(
            base_url=pokeapi.get('base_url', 'https://pokeapi.co/api/v2'),
            weight=pokeapi_weight,
            timeout=timeout,
        ),
        PokedexApiKnowledgeSource(
            base_url=pokedexapi.get('base_url', 'https://pokedexapi.com'),
            weight=pokedexapi_weight,
            timeout=timeout,
        ),
    ]
    return tuple(sources)


def build_components(
    config: dict = CONFIG,
    store: Optional[SessionStore] = None,
    llm: Optional[LLMService] = None,
    sources: Optional[Tuple[KnowledgeSource, ...]] = None,
    prompts: Optional[dict] = None,
) -> ChatComponents:
    """
    Build the full chat pipeline.

    Every argument except `config` is optional and only meant for tests that want to inject a
    temporary database, a fake LLM or in-memory sources.
    """
    prompts = prompts or load_prompts()
    store = store or SessionStore(config['paths']['database_full_path'])
    llm = llm or LLMService(config)
    sources = tuple(sources) if sources is not None else build_knowledge_sources(config)

    conversation = config.get('conversation', {})
    summary_config = config.get('summary', {})

    aggregator = KnowledgeAggregator(
        sources,
        per_source_timeout=float(config.get('knowledge_sources', {}).get('per_source_timeout', 10)),
    )
    classifier = IntentClassifier(
        llm, prompts, preview_length=conversation.get('classifier_preview_length', 100)
    )
    response_generator = ResponseGenerator(
        llm, prompts, preview_length=conversation.get('response_preview_length', 150)
    )
    summary_generator = SummaryGenerator(
        store,
        llm,
        prompts,
        trigger_first=summary_config.get('trigger_first', 5),
        trigger_interval=summary_config.get('trigger_interval', 10),
        max_tokens=summary_config.get('max_tokens', 300),
        preview_length=summary_config.get('preview_length', 200),
    )
    summary_scheduler = SummaryScheduler(summary_generator)
    orchestrator = ChatOrchestrator(
        store=store,
        classifier=classifier,
        data_fetcher=DataFetcher(aggregator),
        response_generator=response_generator,
        summary_scheduler=summary_scheduler,
        llm=llm,
        off_topic_response=prompts['off_topic_response'],
        recent_turns=conversation.get('recent_turns', 3),
    )
    return ChatComponents(
        store=store,
        llm=llm,
        sources=sources,
        aggregator=aggregator,
        summary_scheduler=summary_scheduler,
        orchestrator=orchestrator,
    )
