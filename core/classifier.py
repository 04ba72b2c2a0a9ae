"""
core/classifier.py

Intent classification for incoming chat messages.

This module decides, with one LLM call, whether a message is about Pokemon, whether it asks for a
battle simulation, and which knowledge lookups are needed to answer it. It is the single source of
truth for that decision; the orchestrator only acts on the returned `IntentClassification`.
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from llm_cloud.service import LLMService
from shared.models import ConversationContext, IntentClassification, MessageRole
from shared.utils import clean_llm_json, fill_template, preview

logger = logging.getLogger(__name__)

NO_CONTEXT_TEXT = "No previous context."


def format_classification_context(context: Optional[ConversationContext], preview_length: int = 100) -> str:
    """
    Render conversation context for the classification prompt.

    The summary comes first, then the recent transcript in chronological order with every message
    cut to `preview_length` characters. The classifier only needs enough to resolve pronouns such
    as "it" or "his evolution", so messages are kept short.

    Args:
        context (Optional[ConversationContext]): Recent messages and summary, if any.
        preview_length (int): Characters kept per message.

    Returns:
        str: The context block, or "No previous context." when there is nothing to show.
    """
    if context is None or context.is_empty():
        return NO_CONTEXT_TEXT

    block = ""
    if context.summary:
        summary = context.summary
        block += (
            "\nConversation Summary:\n"
            f"- Pokemon discussed: {', '.join(summary.pokemon_discussed)}\n"
            f"- Topics covered: {', '.join(summary.topics_covered)}\n"
            f"- Context: {summary.last_known_context}\n"
        )
    if context.recent_messages:
        block += "\nRecent conversation:\n"
        for message in context.recent_messages:
            speaker = "User" if message.role == MessageRole.USER else "Assistant"
            block += f"{speaker}: {preview(message.content, preview_length)}\n"
    return block


class IntentClassifier:
    """
    LLM-backed classifier producing an `IntentClassification` for each user message.

    Responsibilities:
    - Fill the classification prompt with the conversation context and the raw message
    - Ask the LLM for strict JSON and clean up the usual decorations (code fences, comments)
    - Validate the result against the `IntentClassification` schema

    Failure policy:
    - Classification fails open. If the LLM call fails, the output is not JSON, or the JSON does
      not match the schema, the message is treated as on-topic with no lookups. The user then gets
      a conversational answer instead of an error or a wrong off-topic redirect.

    Args:
        llm (LLMService): Text generation facade.
        prompts (dict): Loaded prompt templates; uses 'classification' and 'classification_system'.
        preview_length (int): Characters of each recent message included in the prompt.
    """

    def __init__(self, llm: LLMService, prompts: dict, preview_length: int = 100):
        self.llm = llm
        self.classification_prompt = prompts['classification']
        self.system_prompt = prompts['classification_system']
        self.preview_length = preview_length
        logger.info("[IntentClassifier] Initialized")

    def build_prompt(self, message: str, context: Optional[ConversationContext] = None) -> str:
        return fill_template(
            self.classification_prompt,
            conversation_context=format_classification_context(context, self.preview_length),
            user_message=message,
        )

    @staticmethod
    def parse(raw: str) -> IntentClassification:
        """
        Parse raw LLM output into an `IntentClassification`.

        Raises:
            ValueError: Output is not JSON or does not match the schema.
        """
        payload = json.loads(clean_llm_json(raw))
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return IntentClassification.model_validate(payload)

    async def classify(self, message: str, context: Optional[ConversationContext] = None) -> IntentClassification:
        """
        Classify a user message.

        Args:
            message (str): The raw user input.
            context (Optional[ConversationContext]): Recent conversation and summary for pronoun resolution.

        Returns:
            IntentClassification: The parsed classification, or the fail-open default on any failure.
            This method never raises.
        """
        try:
            raw = await self.llm.generate(self.build_prompt(message, context), self.system_prompt)
            logger.debug(f"[IntentClassifier] Raw model output: {raw!r}")
            result = self.parse(raw)
        except (ValueError, ValidationError) as e:
            logger.error(f"[IntentClassifier] Could not parse classification: {e}")
            return IntentClassification.fail_open()
        except Exception as e:
            logger.error(f"[IntentClassifier] Classification error: {e}")
            return IntentClassification.fail_open()

        logger.info(
            f"[IntentClassifier] Classified '{message[:50]}': related={result.is_pokemon_related}, "
            f"battle={result.is_battle_simulation}, endpoints={len(result.required_endpoints)}"
        )
        return result
