"""
shared/models.py

Common data models and type definitions used across the chat pipeline.

This module contains the shared data structures that standardize communication between the
classifier, the knowledge aggregation layer, the response generator, the session store and the
HTTP API. Pydantic models are used wherever data crosses a trust boundary (LLM output, HTTP
bodies, stored JSON); plain dataclasses are used for rows read from our own database.

Wire names:
- The classifier and summary prompts ask the LLM for camelCase keys (`isPokemonRelated`,
  `pokemonDiscussed`, ...). The models declare those as aliases and accept the Python field
  names too, so the same model parses LLM output and can be built directly in code and tests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


class EndpointKind(str, Enum):
    """
    Kinds of knowledge the classifier may request and the knowledge sources may serve.

    - POKEMON: the primary entity (stats, types, abilities, moves, sprites)
    - SPECIES: the sub-entity (evolution chain reference, egg groups, Pokedex entries)
    - ABILITY, MOVE, TYPE: standalone reference data
    """
    POKEMON = "pokemon"
    SPECIES = "species"
    ABILITY = "ability"
    MOVE = "move"
    TYPE = "type"

    @classmethod
    def parse(cls, value: str) -> Optional["EndpointKind"]:
        """Return the kind for a classifier-emitted string, or None when it is not a known kind."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class EndpointRequest(BaseModel):
    """A single lookup the classifier asked for. The same kind may appear several times."""
    endpoint: str
    parameter: Union[int, str]


class RandomPokemonRequest(BaseModel):
    """Informational description of a "show me N random Pokemon" request; never drives fetching."""
    count: int = 1
    generation: Optional[int] = None
    type: Optional[str] = None


class IntentClassification(BaseModel):
    """
    Structured result of intent classification for one user message.

    The classifier prompt demands exactly this JSON shape. Unknown keys returned by the model are
    ignored. `required_endpoints` keeps the order the model produced.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_pokemon_related: bool = Field(alias="isPokemonRelated")
    pokemon_name: Optional[str] = Field(default=None, alias="pokemonName")
    corrected_pokemon_name: Optional[str] = Field(default=None, alias="correctedPokemonName")
    required_endpoints: List[EndpointRequest] = Field(default_factory=list, alias="requiredEndpoints")
    is_battle_simulation: bool = Field(default=False, alias="isBattleSimulation")
    reasoning: Optional[str] = None
    random_pokemon_request: Optional[RandomPokemonRequest] = Field(default=None, alias="randomPokemonRequest")

    @field_validator("required_endpoints", mode="before")
    @classmethod
    def _drop_invalid_endpoints(cls, value):
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        kept = []
        for entry in value:
            try:
                kept.append(EndpointRequest.model_validate(entry))
            except ValidationError:
                logger.warning(f"[IntentClassification] Dropping malformed endpoint request: {entry!r}")
        return kept

    @field_validator("is_battle_simulation", mode="before")
    @classmethod
    def _null_battle_flag_to_false(cls, value):
        return False if value is None else value

    @classmethod
    def fail_open(cls) -> "IntentClassification":
        """
        Default used whenever classification cannot be trusted.

        The message is treated as on-topic with nothing to fetch, so the user still gets a
        conversational answer instead of an error or an unwarranted off-topic redirect.
        """
        return cls(
            is_pokemon_related=True,
            required_endpoints=[],
            reasoning="Classification failed, assuming Pokemon-related",
        )


class ConversationSummary(BaseModel):
    """Compressed record of a conversation, regenerated wholesale by the summary generator."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pokemon_discussed: List[str] = Field(default_factory=list, alias="pokemonDiscussed")
    topics_covered: List[str] = Field(default_factory=list, alias="topicsCovered")
    last_known_context: str = Field(default="", alias="lastKnownContext")

    @field_validator("pokemon_discussed", "topics_covered", mode="before")
    @classmethod
    def _deduplicate(cls, value):
        if value is None:
            return []
        # Names are compared case-insensitively; the first spelling wins.
        seen = set()
        unique = []
        for item in value:
            key = str(item).strip().lower()
            if key not in seen:
                seen.add(key)
                unique.append(item)
        return unique

    def to_storage(self) -> str:
        """Serialize with the camelCase keys used in the session table."""
        return self.model_dump_json(by_alias=True)


class ConversationMessage(BaseModel):
    role: MessageRole
    content: str


class ConversationContext(BaseModel):
    """Recent messages in chronological order plus the latest stored summary, if any."""
    recent_messages: List[ConversationMessage] = Field(default_factory=list)
    summary: Optional[ConversationSummary] = None

    def is_empty(self) -> bool:
        return not self.recent_messages and self.summary is None


class AggregatedResult(BaseModel):
    """
    Merged answer to one knowledge lookup across every registered source.

    `records[i]` was produced by `sources[i]`. Sources that failed, timed out or had nothing to
    offer are simply missing; they never appear as null entries.
    """
    kind: EndpointKind
    parameter: Union[int, str]
    records: List[Dict[str, Any]] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    source_weights: Dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_provenance(self):
        if len(self.records) != len(self.sources):
            raise ValueError("every record must have exactly one source")
        unknown = set(self.source_weights) - set(self.sources)
        if unknown:
            raise ValueError(f"weights given for non-contributing sources: {sorted(unknown)}")
        return self

    def is_empty(self) -> bool:
        return not self.records


class SearchResult(BaseModel):
    """Name/url pairs merged from every source that supports listing."""
    results: List[Dict[str, str]] = Field(default_factory=list)
    count: int = 0
    sources: List[str] = Field(default_factory=list)


class ResourceUsageEntry(BaseModel):
    """Diagnostic record of one source contributing to one lookup (e.g. `PokeAPI-Pokemon`)."""
    source: str
    parameter: str
    response_time_ms: float


class LLMStatus(BaseModel):
    connected: bool
    provider: str
    model: str


class ClassificationDiagnostics(BaseModel):
    is_pokemon_related: bool
    is_battle_simulation: bool
    endpoints_count: int
    processing_time_ms: float


class TimingDiagnostics(BaseModel):
    """Per-stage wall-clock durations of a turn, in milliseconds."""
    classification: float = 0.0
    api_fetch: float = 0.0
    llm_generation: float = 0.0
    total: float = 0.0


class TurnDiagnostics(BaseModel):
    resources_used: List[ResourceUsageEntry] = Field(default_factory=list)
    llm: LLMStatus
    classification: ClassificationDiagnostics
    timing: TimingDiagnostics
    api_data_fetched: bool = False


class ChatResponse(BaseModel):
    """
    Result of one conversation turn as returned to the transport layer.

    `error` is True when the turn failed and `response` holds the apologetic fallback text; such
    turns carry no diagnostics and are never persisted. `persisted` is False when the reply was
    produced but could not be recorded.
    """
    message: str
    response: str
    chat_session_id: int
    timestamp: datetime
    error: bool = False
    persisted: bool = False
    debug: Optional[TurnDiagnostics] = None


class SendMessageRequest(BaseModel):
    """Body of POST /api/sessions/{id}/messages."""
    message: str = Field(min_length=1, max_length=2000)
    context: Optional[Dict[str, Any]] = None


@dataclass
class ChatSession:
    """
    A conversation session row.

    `message_count` only grows; it is incremented once per persisted turn. `conversation_summary`
    holds the JSON produced by `ConversationSummary.to_storage()`.
    """
    id: int
    created_at: str
    updated_at: str
    is_active: bool
    message_count: int
    conversation_summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'is_active': self.is_active,
            'message_count': self.message_count,
            'conversation_summary': self.conversation_summary,
        }


@dataclass
class ConversationTurn:
    """One completed exchange. Immutable once written."""
    id: int
    session_id: int
    message: str
    response: str
    context: Optional[str]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'session_id': self.session_id,
            'message': self.message,
            'response': self.response,
            'context': self.context,
            'timestamp': self.timestamp,
        }
