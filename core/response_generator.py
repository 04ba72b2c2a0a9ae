"""
core/response_generator.py

Turns fetched knowledge and conversation context into the assistant's reply.

Three prompt shapes exist:
- battle simulation: the classifier flagged a battle and data was fetched
- with data: data was fetched for an ordinary question
- no data: nothing was fetched (casual chat, random Pokemon requests, or lookups not needed)

Fetched data is embedded as indented JSON that keeps each record's source name and reliability
weight, so the model can prefer the more authoritative source when two disagree.
"""

import json
import logging
from typing import Dict, List, Optional

from llm_cloud.service import LLMService
from shared.models import AggregatedResult, ConversationContext, MessageRole
from shared.utils import fill_template, preview

logger = logging.getLogger(__name__)

NO_CONTEXT_TEXT = "No previous conversation context."


def format_response_context(context: Optional[ConversationContext], preview_length: int = 150) -> str:
    """
    Flatten conversation context into the text block placed at the top of the reply prompt.

    Args:
        context (Optional[ConversationContext]): Recent messages and summary, if any.
        preview_length (int): Characters kept per recent message.

    Returns:
        str: Summary section then recent messages, or "No previous conversation context.".
    """
    if context is None or context.is_empty():
        return NO_CONTEXT_TEXT

    block = ""
    if context.summary:
        summary = context.summary
        block += (
            "Previous Conversation Summary:\n"
            f"- Pokemon Discussed: {', '.join(summary.pokemon_discussed)}\n"
            f"- Topics Covered: {', '.join(summary.topics_covered)}\n"
            f"- Context: {summary.last_known_context}\n\n"
        )
    if context.recent_messages:
        block += "Recent Messages:\n"
        for message in context.recent_messages:
            role = "User" if message.role == MessageRole.USER else "Assistant"
            block += f"{role}: {preview(message.content, preview_length)}\n"
    return block


def serialize_fetched_data(fetched_data: Dict[str, List[AggregatedResult]]) -> str:
    payload = {
        kind: [result.model_dump(mode="json", exclude={"kind"}) for result in results]
        for kind, results in fetched_data.items()
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


class ResponseGenerator:
    """
    Selects a prompt shape and asks the LLM for the final reply.

    Generation failures are not caught here. A turn that cannot produce a reply is a failed turn,
    and the orchestrator owns the fallback message.

    Args:
        llm (LLMService): Text generation facade.
        prompts (dict): Loaded templates; uses 'assistant_system', 'response_with_data',
            'response_no_data' and 'battle_simulation'.
        preview_length (int): Characters of each recent message included in the prompt.
    """

    def __init__(self, llm: LLMService, prompts: dict, preview_length: int = 150):
        self.llm = llm
        self.system_prompt = prompts['assistant_system']
        self.with_data_prompt = prompts['response_with_data']
        self.no_data_prompt = prompts['response_no_data']
        self.battle_prompt = prompts['battle_simulation']
        self.preview_length = preview_length

    def build_prompt(
        self,
        message: str,
        fetched_data: Dict[str, List[AggregatedResult]],
        context: Optional[ConversationContext] = None,
        is_battle: bool = False,
    ) -> str:
        conversation_context = format_response_context(context, self.preview_length)
        if not fetched_data:
            return fill_template(
                self.no_data_prompt,
                conversation_context=conversation_context,
                user_message=message,
            )
        template = self.battle_prompt if is_battle else self.with_data_prompt
        return fill_template(
            template,
            conversation_context=conversation_context,
            user_message=message,
            api_data=serialize_fetched_data(fetched_data),
        )

    async def generate_response(
        self,
        message: str,
        fetched_data: Dict[str, List[AggregatedResult]],
        context: Optional[ConversationContext] = None,
        is_battle: bool = False,
    ) -> str:
        """
        Generate the assistant reply for one turn.

        Args:
            message (str): The user's message.
            fetched_data (Dict[str, List[AggregatedResult]]): Output of the data fetcher; may be empty.
            context (Optional[ConversationContext]): Recent conversation and summary.
            is_battle (bool): Classifier's battle flag. Ignored when no data was fetched.

        Returns:
            str: Reply text.

        Raises:
            LLMProviderError: Propagated unchanged from the LLM layer.
        """
        shape = "no_data" if not fetched_data else ("battle" if is_battle else "with_data")
        logger.info(f"[ResponseGenerator] Generating reply using the {shape} prompt")
        prompt = self.build_prompt(message, fetched_data, context, is_battle)
        return await self.llm.generate(prompt, self.system_prompt)
