"""
Unit tests for `core/response_generator.py` – prompt shape selection and context flattening.

The LLM is mocked; assertions are made on the prompt that would have been sent. The three shapes
are told apart by wording that only appears in the matching template file under config/.
"""

import asyncio
import json
import unittest
from unittest.mock import AsyncMock, MagicMock

from config import load_prompts
from core.response_generator import ResponseGenerator, format_response_context, serialize_fetched_data
from llm_cloud.service import LLMProviderError
from shared.models import (
    AggregatedResult,
    ConversationContext,
    ConversationMessage,
    ConversationSummary,
    EndpointKind,
    MessageRole,
)


def pikachu_result():
    return AggregatedResult(
        kind=EndpointKind.POKEMON,
        parameter="pikachu",
        records=[{"name": "pikachu", "id": 25}, {"name": "pikachu", "id": 25}],
        sources=["PokeAPI", "PokedexAPI"],
        source_weights={"PokeAPI": 1.0, "PokedexAPI": 0.7},
    )


class TestResponseGenerator(unittest.TestCase):

    def setUp(self):
        self.prompts = load_prompts()
        self.llm = MagicMock()
        self.llm.generate = AsyncMock(return_value="Pikachu is an Electric-type Pokemon!")
        self.generator = ResponseGenerator(self.llm, self.prompts)

    def sent_prompt(self):
        return self.llm.generate.await_args.args[0]

    def test_no_data_uses_no_data_prompt_even_for_battles(self):
        reply = asyncio.run(self.generator.generate_response("hi!", {}, None, is_battle=True))

        self.assertEqual(reply, "Pikachu is an Electric-type Pokemon!")
        self.assertEqual(
            self.sent_prompt(),
            self.generator.build_prompt("hi!", {}, None, is_battle=False),
        )
        self.assertIn("No API data was needed", self.sent_prompt())
        self.assertEqual(self.llm.generate.await_args.args[1], self.prompts['assistant_system'])

    def test_with_data_prompt_embeds_records_sources_and_weights(self):
        fetched = {"pokemon": [pikachu_result()]}
        asyncio.run(self.generator.generate_response("Tell me about pikachu", fetched))

        prompt = self.sent_prompt()
        self.assertNotIn("No API data was needed", prompt)
        self.assertNotIn("{api_data}", prompt)
        self.assertIn('"PokedexAPI": 0.7', prompt)
        self.assertIn(serialize_fetched_data(fetched), prompt)

    def test_battle_prompt_differs_from_with_data_prompt(self):
        fetched = {"pokemon": [pikachu_result()]}
        battle = self.generator.build_prompt("Pikachu vs Charizard", fetched, None, is_battle=True)
        plain = self.generator.build_prompt("Pikachu vs Charizard", fetched, None, is_battle=False)

        self.assertNotEqual(battle, plain)
        self.assertIn(serialize_fetched_data(fetched), battle)

    def test_fetched_but_empty_result_still_uses_with_data_prompt(self):
        empty = AggregatedResult(kind=EndpointKind.POKEMON, parameter="missingno")
        prompt = self.generator.build_prompt("Tell me about missingno", {"pokemon": [empty]})

        self.assertNotIn("No API data was needed", prompt)
        self.assertIn('"parameter": "missingno"', prompt)

    def test_llm_failure_propagates(self):
        self.llm.generate.side_effect = LLMProviderError("Could not connect to Groq API")

        with self.assertRaises(LLMProviderError):
            asyncio.run(self.generator.generate_response("Tell me about pikachu", {}))

    def test_serialized_data_is_grouped_by_kind_without_kind_field(self):
        payload = json.loads(serialize_fetched_data({"pokemon": [pikachu_result()]}))

        self.assertEqual(list(payload), ["pokemon"])
        self.assertNotIn("kind", payload["pokemon"][0])
        self.assertEqual(payload["pokemon"][0]["sources"], ["PokeAPI", "PokedexAPI"])


class TestFormatResponseContext(unittest.TestCase):

    def test_empty_context(self):
        self.assertEqual(format_response_context(None), "No previous conversation context.")

    def test_summary_and_recent_messages(self):
        context = ConversationContext(
            recent_messages=[
                ConversationMessage(role=MessageRole.USER, content="Tell me about pikachu"),
                ConversationMessage(role=MessageRole.ASSISTANT, content="y" * 400),
            ],
            summary=ConversationSummary(
                pokemon_discussed=["pikachu"],
                topics_covered=["abilities"],
                last_known_context="User asked about abilities",
            ),
        )

        block = format_response_context(context)

        self.assertTrue(block.startswith("Previous Conversation Summary:\n- Pokemon Discussed: pikachu\n"))
        self.assertIn("Recent Messages:\nUser: Tell me about pikachu...\n", block)
        self.assertIn("Assistant: " + "y" * 150 + "...\n", block)
        self.assertNotIn("y" * 151, block)


if __name__ == '__main__':
    unittest.main()
