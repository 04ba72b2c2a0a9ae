"""
core/summary.py

Conversation summaries: when to produce them, how to produce them, and how to run them without
delaying the reply.

A summary compresses a whole session into the Pokemon discussed, the topics covered and one
sentence about what the user was last interested in. It is fed back into the classifier and the
response generator so long conversations keep their thread without resending every message.

Trigger policy: a summary is produced when the persisted message counter equals 5 (the first
summary) and then at every multiple of 10. Summary work is best effort. It runs as a background
task after a turn has been stored; failures are logged and the previous summary stays in place.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional, Set

from pydantic import ValidationError

from llm_cloud.service import LLMService
from monitoring.metrics import CHAT_STAGE_TIME, track_latency
from services.session_store import SessionStore
from shared.models import ConversationSummary, ConversationTurn
from shared.utils import clean_llm_json, fill_template, preview

logger = logging.getLogger(__name__)

SUMMARY_TRIGGER_FIRST = 5
SUMMARY_TRIGGER_INTERVAL = 10


def should_trigger_summary(
    message_count: int,
    first: int = SUMMARY_TRIGGER_FIRST,
    interval: int = SUMMARY_TRIGGER_INTERVAL,
) -> bool:
    """
    Decide whether a session's counter has reached a summary point.

    Args:
        message_count (int): The persisted counter, read after the current turn was recorded.
        first (int): Counter value of the first summary.
        interval (int): Summaries are produced at every multiple of this value.

    Returns:
        bool: True iff `message_count == first` or `message_count % interval == 0` (counts of 0
        or less never trigger).
    """
    if message_count <= 0:
        return False
    return message_count == first or message_count % interval == 0


class SummaryGenerator:
    """
    Builds and stores the conversation summary of a session.

    Args:
        store (SessionStore): Session persistence.
        llm (LLMService): Text generation facade.
        prompts (dict): Loaded templates; uses 'summary' and 'summary_system'.
        trigger_first (int): First summary point.
        trigger_interval (int): Interval between later summary points.
        max_tokens (int): Token budget stated in the prompt.
        preview_length (int): Characters of each assistant reply included in the history.
    """

    def __init__(
        self,
        store: SessionStore,
        llm: LLMService,
        prompts: dict,
        trigger_first: int = SUMMARY_TRIGGER_FIRST,
        trigger_interval: int = SUMMARY_TRIGGER_INTERVAL,
        max_tokens: int = 300,
        preview_length: int = 200,
    ):
        self.store = store
        self.llm = llm
        self.summary_prompt = prompts['summary']
        self.system_prompt = prompts['summary_system']
        self.trigger_first = trigger_first
        self.trigger_interval = trigger_interval
        self.max_tokens = max_tokens
        self.preview_length = preview_length

    def should_summarize(self, message_count: int) -> bool:
        return should_trigger_summary(message_count, self.trigger_first, self.trigger_interval)

    def format_history(self, turns: List[ConversationTurn]) -> str:
        """Render turns oldest first; assistant replies are shortened, user messages are kept whole."""
        return "\n\n".join(
            f"User: {turn.message}\nAssistant: {preview(turn.response, self.preview_length)}"
            for turn in turns
        )

    @staticmethod
    def parse(raw: str) -> ConversationSummary:
        """
        Parse raw LLM output into a `ConversationSummary`.

        Raises:
            ValueError: Output is not a JSON object matching the summary shape.
        """
        payload = json.loads(clean_llm_json(raw))
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return ConversationSummary.model_validate(payload)

    @track_latency(CHAT_STAGE_TIME, labels=lambda self: {"stage": "summary"})
    async def generate_summary(self, session_id: int) -> Optional[ConversationSummary]:
        """
        Summarize the full history of a session without storing it.

        Returns:
            Optional[ConversationSummary]: The parsed summary, or None when there is no history or
            the model output could not be parsed.

        Raises:
            LLMProviderError: The LLM call failed.
        """
        turns = self.store.list_turns(session_id, order="ASC")
        if not turns:
            logger.info(f"[SummaryGenerator] Session {session_id} has no history to summarize")
            return None

        prompt = fill_template(
            self.summary_prompt,
            conversation_history=self.format_history(turns),
            max_tokens=self.max_tokens,
        )
        raw = await self.llm.generate(prompt, self.system_prompt)
        try:
            return self.parse(raw)
        except (ValueError, ValidationError) as e:
            logger.warning(f"[SummaryGenerator] Discarding unparseable summary for session {session_id}: {e}")
            return None

    async def generate_and_update_summary(self, session_id: int) -> Optional[ConversationSummary]:
        """
        Re-check the trigger policy and, when due, regenerate and store the summary.

        The counter is re-read from the store so the decision is made on the persisted value
        rather than on whatever the caller saw. This method never raises; every failure is logged
        and the previous summary is left untouched.

        Returns:
            Optional[ConversationSummary]: The stored summary, or None when nothing was written.
        """
        try:
            session = self.store.get_session(session_id)
            if session is None:
                logger.warning(f"[SummaryGenerator] Session {session_id} no longer exists, skipping summary")
                return None
            if not self.should_summarize(session.message_count):
                logger.debug(
                    f"[SummaryGenerator] No summary due for session {session_id} "
                    f"(message_count={session.message_count})"
                )
                return None

            summary = await self.generate_summary(session_id)
            if summary is None:
                return None
            self.store.update_summary(session_id, summary.to_storage())
            logger.info(
                f"[SummaryGenerator] Updated summary for session {session_id} "
                f"at message_count={session.message_count}"
            )
            return summary
        except Exception as e:
            logger.error(f"[SummaryGenerator] Summary generation failed for session {session_id}: {e}", exc_info=True)
            return None


class SummaryScheduler:
    """
    Runs summary generation as detached asyncio tasks.

    The turn that triggers a summary never awaits it. A strong reference to each task is kept
    until it finishes, since the event loop itself only holds weak references to tasks. Any
    exception that escapes a task is logged from its done-callback.

    Args:
        generator (SummaryGenerator): The work to run per session.
    """

    def __init__(self, generator: SummaryGenerator):
        self.generator = generator
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, session_id: int) -> asyncio.Task:
        """Start summary generation for a session in the background and return its task."""
        task = asyncio.create_task(
            self.generator.generate_and_update_summary(session_id),
            name=f"summary-session-{session_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"[SummaryScheduler] {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[SummaryScheduler] {task.get_name()} failed: {error}", exc_info=error)

    async def drain(self) -> None:
        """Wait for every outstanding summary task. Used at shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
