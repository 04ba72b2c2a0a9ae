"""
core/orchestrator.py

Central coordinator for one conversation turn.

This module contains the main coordination logic that:
1. Loads the session and builds the conversation context (recent turns plus stored summary)
2. Classifies the incoming message
3. Redirects off-topic messages, or fetches knowledge and generates a reply
4. Persists the completed turn and schedules summary generation in the background
5. Measures every stage and handles errors and fallbacks
"""

import datetime as _dt
import json
import time
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config.logging_config import get_logger
from llm_cloud.service import LLMService
from monitoring.metrics import CHAT_STAGE_TIME, ERROR_COUNT
from services.session_store import SessionStore
from shared.models import (
    ChatResponse,
    ChatSession,
    ClassificationDiagnostics,
    ConversationContext,
    ConversationMessage,
    ConversationSummary,
    LLMStatus,
    MessageRole,
    ResourceUsageEntry,
    TimingDiagnostics,
    TurnDiagnostics,
)
from shared.utils import elapsed_ms
from .classifier import IntentClassifier
from .data_fetcher import DataFetcher
from .response_generator import ResponseGenerator
from .summary import SummaryScheduler

logger = get_logger(__name__)

FALLBACK_RESPONSE = "I apologize, but I encountered an unexpected issue processing your request. Please try again."


class ChatOrchestrator:
    """
    Runs the full chat turn pipeline against injected collaborators.

    Responsibilities:
    - Conversation context assembly from the session store
    - Intent classification and the off-topic short-circuit
    - Knowledge fetching and reply generation for on-topic messages
    - Per-stage timing and the diagnostics block returned with every successful reply
    - Atomic persistence of successful turns and background summary scheduling
    - Error handling: any failure inside the pipeline becomes an apologetic reply with
      `error=True`; such turns are neither persisted nor summarized

    Args:
        store (SessionStore): Session and turn persistence.
        classifier (IntentClassifier): Intent classification.
        data_fetcher (DataFetcher): Knowledge lookups.
        response_generator (ResponseGenerator): Reply synthesis.
        summary_scheduler (SummaryScheduler): Background summary runner.
        llm (LLMService): Used for provider/model diagnostics.
        off_topic_response (str): Fixed redirect text for messages unrelated to Pokemon.
        recent_turns (int): Number of most recent turns included in the context.
    """

    def __init__(
        self,
        store: SessionStore,
        classifier: IntentClassifier,
        data_fetcher: DataFetcher,
        response_generator: ResponseGenerator,
        summary_scheduler: SummaryScheduler,
        llm: LLMService,
        off_topic_response: str,
        recent_turns: int = 3,
    ):
        self.store = store
        self.classifier = classifier
        self.data_fetcher = data_fetcher
        self.response_generator = response_generator
        self.summary_scheduler = summary_scheduler
        self.llm = llm
        self.off_topic_response = off_topic_response
        self.recent_turns = recent_turns
        logger.info("[ChatOrchestrator] Initialized (recent_turns=%d)", recent_turns)

    def build_context(self, session: ChatSession) -> ConversationContext:
        """
        Assemble the conversation context for a session.

        The stored summary is parsed if present; a summary that fails to parse is logged and
        ignored rather than failing the turn. The most recent turns are flattened into
        alternating user/assistant messages in chronological order.
        """
        summary = None
        if session.conversation_summary:
            try:
                summary = ConversationSummary.model_validate_json(session.conversation_summary)
            except ValidationError as e:
                logger.warning(
                    "Failed to parse conversation summary for session %s: %s", session.id, e
                )

        messages: List[ConversationMessage] = []
        for turn in self.store.recent_turns(session.id, self.recent_turns):
            messages.append(ConversationMessage(role=MessageRole.USER, content=turn.message))
            messages.append(ConversationMessage(role=MessageRole.ASSISTANT, content=turn.response))
        return ConversationContext(recent_messages=messages, summary=summary)

    def _llm_status(self) -> LLMStatus:
        return LLMStatus(
            connected=self.llm.last_call_succeeded,
            provider=self.llm.provider_name(),
            model=self.llm.model_name(),
        )

    async def process_turn(
        self,
        session_id: int,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ChatResponse:
        """
        Process one user message end to end.

        Args:
            session_id (int): Target session. Must exist.
            message (str): The user's message.
            context (Optional[Dict[str, Any]]): Optional client-supplied context, stored with the
                turn as JSON.

        Returns:
            ChatResponse: The reply with diagnostics, or the fallback reply with `error=True`.

        Raises:
            SessionNotFoundError: The session does not exist. Raised before any work is done.
        """
        interaction_id = str(uuid.uuid4())
        turn_logger = get_logger(__name__, interaction_id=interaction_id, session_id=session_id)

        session = self.store.require_session(session_id)
        turn_logger.info(
            "Processing turn",
            extra={'extra_fields': {'message_preview': message[:50], 'message_count': session.message_count}},
        )

        total_start = time.perf_counter()
        timing = TimingDiagnostics()
        resources_used: List[ResourceUsageEntry] = []
        fetched_data: Dict[str, Any] = {}

        try:
            conversation = self.build_context(session)

            # 1. Classify the message
            stage_start = time.perf_counter()
            classification = await self.classifier.classify(message, conversation)
            timing.classification = elapsed_ms(stage_start)

            if not classification.is_pokemon_related:
                # 2a. Off-topic: fixed redirect, no lookups, no generation
                response_text = self.off_topic_response
                turn_logger.info("Message not Pokemon-related, sending friendly redirect")
            else:
                # 2b. Fetch knowledge
                stage_start = time.perf_counter()
                fetched_data = await self.data_fetcher.fetch_endpoint_data(
                    classification.required_endpoints, resources_used
                )
                timing.api_fetch = elapsed_ms(stage_start)

                # 3. Generate the reply
                stage_start = time.perf_counter()
                response_text = await self.response_generator.generate_response(
                    message,
                    fetched_data,
                    conversation,
                    classification.is_battle_simulation,
                )
                timing.llm_generation = elapsed_ms(stage_start)
        except Exception as e:
            ERROR_COUNT.labels(type='turn', location='orchestrator').inc()
            turn_logger.error(
                "Error processing turn",
                exc_info=True,
                extra={'extra_fields': {'error_type': type(e).__name__, 'error_message': str(e)}},
            )
            return ChatResponse(
                message=message,
                response=FALLBACK_RESPONSE,
                chat_session_id=session_id,
                timestamp=_dt.datetime.now(_dt.timezone.utc),
                error=True,
            )

        timing.total = elapsed_ms(total_start)
        for stage in ('classification', 'api_fetch', 'llm_generation', 'total'):
            CHAT_STAGE_TIME.labels(stage=stage).observe(getattr(timing, stage) / 1000)

        related = classification.is_pokemon_related
        diagnostics = TurnDiagnostics(
            resources_used=resources_used,
            llm=self._llm_status(),
            classification=ClassificationDiagnostics(
                is_pokemon_related=related,
                is_battle_simulation=related and classification.is_battle_simulation,
                endpoints_count=len(classification.required_endpoints) if related else 0,
                processing_time_ms=timing.classification,
            ),
            timing=timing,
            api_data_fetched=bool(fetched_data),
        )

        # 4. Persist, then summarize in the background
        persisted = self._persist(session_id, message, response_text, context, turn_logger)
        if persisted:
            self.summary_scheduler.schedule(session_id)

        turn_logger.info(
            "Turn complete",
            extra={'extra_fields': {'timing_ms': timing.model_dump(), 'persisted': persisted}},
        )
        return ChatResponse(
            message=message,
            response=response_text,
            chat_session_id=session_id,
            timestamp=_dt.datetime.now(_dt.timezone.utc),
            persisted=persisted,
            debug=diagnostics,
        )

    def _persist(self, session_id: int, message: str, response: str, context: Optional[Dict[str, Any]], turn_logger) -> bool:
        """Record the turn atomically. A storage failure is logged and reported, never raised."""
        context_json = json.dumps(context) if context else None
        try:
            self.store.record_turn(session_id, message, response, context_json)
            return True
        except Exception as e:
            ERROR_COUNT.labels(type='persistence', location='orchestrator').inc()
            turn_logger.error(
                "Failed to persist turn; reply returned without being recorded",
                exc_info=True,
                extra={'extra_fields': {'error_type': type(e).__name__, 'error_message': str(e)}},
            )
            return False
