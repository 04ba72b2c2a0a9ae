"""
Tests for `core/orchestrator.py` – ChatOrchestrator turn processing.

These tests build the real pipeline through the composition root (`build_components`) with three
substitutions: a temporary SQLite store, in-memory knowledge sources and a scripted LLM that
answers by system prompt. Everything between those seams (classifier parsing, aggregation, data
fetching, prompt selection, persistence, summary scheduling) is the production code.

Covered behavior:
- off-topic messages get the fixed redirect without any lookup or generation
- the end-to-end abilities question with one full source and one source that serves nothing
- failed turns return the apologetic fallback and leave no trace in storage
- persistence failures still return the reply, flagged as not persisted
- conversation context and summaries flow into later turns
"""

import asyncio
import json
import sqlite3
from unittest.mock import AsyncMock, MagicMock

import pytest

from config import CONFIG
from core.bootstrap import build_components
from core.orchestrator import FALLBACK_RESPONSE
from knowledge_sources import KnowledgeSource, KnowledgeSourceUnreachableError, MockKnowledgeSource
from llm_cloud.service import LLMProviderError
from services.session_store import SessionNotFoundError

ABILITIES_CLASSIFICATION = json.dumps({
    "isPokemonRelated": True,
    "pokemonName": "pikachu",
    "isBattleSimulation": False,
    "requiredEndpoints": [
        {"endpoint": "pokemon", "parameter": "pikachu"},
        {"endpoint": "ability", "parameter": "static"},
        {"endpoint": "ability", "parameter": "lightning-rod"},
    ],
    "reasoning": "Question about a Pokemon's abilities",
})

OFF_TOPIC_CLASSIFICATION = '{"isPokemonRelated": false, "requiredEndpoints": [], "reasoning": "sports"}'


class UnreachableSource(KnowledgeSource):

    def __init__(self, name):
        self._name = name

    def get_source_name(self):
        return self._name

    def get_reliability_weight(self):
        return 1.0

    async def fetch(self, kind, id_or_name):
        raise KnowledgeSourceUnreachableError(self._name, "connection refused")


def default_sources():
    """One source serving everything, one registered source that serves nothing."""
    return (
        MockKnowledgeSource(name="PokeAPI", weight=1.0),
        MockKnowledgeSource(name="PokedexAPI", weight=0.7, supported_kinds=[]),
    )


def build(store, prompts, llm, sources=None):
    return build_components(CONFIG, store=store, llm=llm, sources=sources or default_sources(), prompts=prompts)


def run_turns(components, session_id, *messages):
    """Process messages in order on one event loop, then wait for background summaries."""
    async def run():
        responses = []
        for message in messages:
            responses.append(await components.orchestrator.process_turn(session_id, message))
        await components.summary_scheduler.drain()
        return responses
    return asyncio.run(run())


def test_end_to_end_abilities_question(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()

    [response] = run_turns(components, session.id, "Tell me about pikachu's abilities")

    assert response.error is False
    assert response.persisted is True
    assert response.response == "Pikachu has Static and Lightning Rod!"
    assert response.chat_session_id == session.id

    debug = response.debug
    assert debug.api_data_fetched is True
    assert debug.classification.is_pokemon_related is True
    assert debug.classification.endpoints_count == 3
    assert sorted((r.source, r.parameter) for r in debug.resources_used) == [
        ("PokeAPI-Ability", "lightning-rod"),
        ("PokeAPI-Ability", "static"),
        ("PokeAPI-Pokemon", "pikachu"),
    ]
    assert debug.llm.connected is True
    assert debug.llm.provider == "Groq"
    assert debug.timing.total >= debug.timing.classification

    [generation_prompt] = llm.prompts_sent_with(prompts['assistant_system'])
    assert '"lightning-rod"' in generation_prompt
    assert '"PokeAPI": 1.0' in generation_prompt
    assert "PokedexAPI" not in generation_prompt

    turns = store.list_turns(session.id)
    assert [(t.message, t.response) for t in turns] == [
        ("Tell me about pikachu's abilities", "Pikachu has Static and Lightning Rod!"),
    ]
    assert store.get_session(session.id).message_count == 1


def test_off_topic_message_skips_fetch_and_generation(store, prompts, scripted_llm):
    llm = scripted_llm(OFF_TOPIC_CLASSIFICATION)
    components = build(store, prompts, llm)
    fetch_spy = AsyncMock()
    components.orchestrator.data_fetcher.fetch_endpoint_data = fetch_spy
    session = store.create_session()

    [response] = run_turns(components, session.id, "Who won the football match yesterday?")

    assert response.response == prompts['off_topic_response']
    assert response.error is False
    fetch_spy.assert_not_awaited()
    assert llm.prompts_sent_with(prompts['assistant_system']) == []
    assert response.debug.classification.is_pokemon_related is False
    assert response.debug.classification.endpoints_count == 0
    assert response.debug.timing.api_fetch == 0
    assert response.debug.timing.llm_generation == 0
    assert response.debug.api_data_fetched is False
    # Redirects are still part of the conversation.
    assert store.get_session(session.id).message_count == 1


def test_generation_failure_returns_fallback_and_persists_nothing(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION, reply=LLMProviderError("Could not connect to Groq API"))
    components = build(store, prompts, llm)
    session = store.create_session()

    [response] = run_turns(components, session.id, "Tell me about pikachu's abilities")

    assert response.error is True
    assert response.response == FALLBACK_RESPONSE
    assert response.debug is None
    assert response.persisted is False
    assert store.list_turns(session.id) == []
    assert store.get_session(session.id).message_count == 0
    assert components.summary_scheduler.pending == 0


def test_unreachable_knowledge_network_returns_fallback(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    sources = (UnreachableSource("PokeAPI"), UnreachableSource("PokedexAPI"))
    components = build(store, prompts, llm, sources=sources)
    session = store.create_session()

    [response] = run_turns(components, session.id, "Tell me about pikachu's abilities")

    assert response.error is True
    assert response.response == FALLBACK_RESPONSE
    assert llm.prompts_sent_with(prompts['assistant_system']) == []
    assert store.list_turns(session.id) == []


def test_classification_failure_fails_open_to_no_data_reply(store, prompts, scripted_llm):
    llm = scripted_llm("not json at all", reply="Hi trainer!")
    components = build(store, prompts, llm)
    session = store.create_session()

    [response] = run_turns(components, session.id, "hey")

    assert response.error is False
    assert response.response == "Hi trainer!"
    assert response.debug.api_data_fetched is False
    [generation_prompt] = llm.prompts_sent_with(prompts['assistant_system'])
    assert "No API data was needed" in generation_prompt


def test_unknown_session_raises_before_any_work(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)

    with pytest.raises(SessionNotFoundError):
        run_turns(components, 404, "Tell me about pikachu")
    llm.generate.assert_not_awaited()


def test_persistence_failure_still_returns_reply(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()
    components.orchestrator.summary_scheduler = MagicMock()
    components.orchestrator.store = MagicMock(wraps=store)
    components.orchestrator.store.record_turn.side_effect = sqlite3.OperationalError("database is locked")

    [response] = run_turns(components, session.id, "Tell me about pikachu's abilities")

    assert response.error is False
    assert response.persisted is False
    assert response.response == "Pikachu has Static and Lightning Rod!"
    components.orchestrator.summary_scheduler.schedule.assert_not_called()
    assert store.get_session(session.id).message_count == 0


def test_recent_turns_feed_the_next_classification(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()

    run_turns(components, session.id, "Tell me about pikachu's abilities", "What about its evolution?")

    first, second = llm.prompts_sent_with(prompts['classification_system'])
    assert "No previous context." in first
    assert "User: Tell me about pikachu's abilities..." in second
    assert "Assistant: Pikachu has Static and Lightning Rod!..." in second


def test_summary_written_on_fifth_turn_and_used_afterwards(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()

    run_turns(components, session.id, *[f"question {i}" for i in range(4)])
    assert store.get_session(session.id).conversation_summary is None

    run_turns(components, session.id, "question 4")
    stored = json.loads(store.get_session(session.id).conversation_summary)
    assert stored["pokemonDiscussed"] == ["pikachu"]
    assert len(llm.prompts_sent_with(prompts['summary_system'])) == 1

    run_turns(components, session.id, "question 5")
    last_classification = llm.prompts_sent_with(prompts['classification_system'])[-1]
    assert "- Pokemon discussed: pikachu" in last_classification
    assert len(llm.prompts_sent_with(prompts['summary_system'])) == 1


def test_only_last_three_turns_are_in_context(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()

    run_turns(components, session.id, "first", "second", "third", "fourth", "fifth-ish")

    last_classification = llm.prompts_sent_with(prompts['classification_system'])[-1]
    assert "User: first..." not in last_classification
    assert "User: second..." in last_classification
    assert "User: fourth..." in last_classification


def test_corrupt_stored_summary_is_ignored(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()
    store.update_summary(session.id, "{not valid json")

    [response] = run_turns(components, session.id, "Tell me about pikachu's abilities")

    assert response.error is False
    [classification_prompt] = llm.prompts_sent_with(prompts['classification_system'])
    assert "Conversation Summary" not in classification_prompt


def test_client_context_is_stored_with_the_turn(store, prompts, scripted_llm):
    llm = scripted_llm(ABILITIES_CLASSIFICATION)
    components = build(store, prompts, llm)
    session = store.create_session()

    async def run():
        response = await components.orchestrator.process_turn(session.id, "hi", {"client": "cli"})
        await components.summary_scheduler.drain()
        return response

    asyncio.run(run())

    [turn] = store.list_turns(session.id)
    assert json.loads(turn.context) == {"client": "cli"}
