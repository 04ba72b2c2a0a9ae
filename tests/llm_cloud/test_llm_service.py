"""
Unit tests for `llm_cloud/service.py` – LLMService request shaping and error translation.

The OpenAI SDK client is replaced with a `MagicMock` whose `chat.completions.create` coroutine is
an `AsyncMock`. SDK exceptions are constructed with hand-made `httpx` responses, so every
translation branch is exercised without a network call.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai

from llm_cloud.service import LLMProviderError, LLMService

TEST_CONFIG = {
    "llm": {
        "provider": "groq",
        "models": {
            "chat": {"name": "llama-3.1-8b-instant", "settings": {"max_tokens": 512, "temperature": 0.2}},
            "connection_check": {"settings": {"max_tokens": 3}},
        },
    }
}

REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def status_error(cls, status_code):
    return cls("provider error", response=httpx.Response(status_code, request=REQUEST), body=None)


def completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def fake_client(result=None, error=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=result, side_effect=error)
    return client


class TestLLMServiceGenerate(unittest.TestCase):

    def test_sends_system_and_user_messages_with_configured_settings(self):
        client = fake_client(completion("Pikachu!"))
        service = LLMService(TEST_CONFIG, client=client)

        text = asyncio.run(service.generate("Tell me about pikachu", "You are PokeBuddy"))

        self.assertEqual(text, "Pikachu!")
        self.assertTrue(service.last_call_succeeded)
        kwargs = client.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["model"], "llama-3.1-8b-instant")
        self.assertEqual(kwargs["messages"], [
            {"role": "system", "content": "You are PokeBuddy"},
            {"role": "user", "content": "Tell me about pikachu"},
        ])
        self.assertEqual(kwargs["max_tokens"], 512)
        self.assertEqual(kwargs["temperature"], 0.2)

    def test_system_prompt_is_optional(self):
        client = fake_client(completion("ok"))
        asyncio.run(LLMService(TEST_CONFIG, client=client).generate("hello"))

        messages = client.chat.completions.create.await_args.kwargs["messages"]
        self.assertEqual(messages, [{"role": "user", "content": "hello"}])

    def test_empty_completion_is_an_error(self):
        service = LLMService(TEST_CONFIG, client=fake_client(completion("")))

        with self.assertRaises(LLMProviderError):
            asyncio.run(service.generate("hello"))
        self.assertFalse(service.last_call_succeeded)

    def test_provider_errors_are_translated(self):
        cases = [
            (status_error(openai.AuthenticationError, 401), "Invalid Groq API key"),
            (status_error(openai.RateLimitError, 429), "rate limit exceeded"),
            (status_error(openai.APIStatusError, 402), "Insufficient Groq credits"),
            (openai.APIConnectionError(request=REQUEST), "Could not connect to Groq API"),
            (status_error(openai.InternalServerError, 500), "Groq request failed"),
        ]
        for error, expected in cases:
            with self.subTest(error=type(error).__name__):
                service = LLMService(TEST_CONFIG, client=fake_client(error=error))
                with self.assertRaises(LLMProviderError) as ctx:
                    asyncio.run(service.generate("hello"))
                self.assertIn(expected, str(ctx.exception))
                self.assertIs(ctx.exception.__cause__, error)

    @patch("llm_cloud.service.get_client")
    def test_missing_api_key_surfaces_as_provider_error(self, mock_get_client):
        mock_get_client.side_effect = RuntimeError("Missing required environment variable. Set one of: GROQ_API_KEY")
        service = LLMService(TEST_CONFIG)

        with self.assertRaises(LLMProviderError) as ctx:
            asyncio.run(service.generate("hello"))
        self.assertIn("GROQ_API_KEY", str(ctx.exception))

    @patch("llm_cloud.service.get_client")
    def test_client_is_built_lazily_once(self, mock_get_client):
        mock_get_client.return_value = fake_client(completion("ok"))
        service = LLMService(TEST_CONFIG)
        mock_get_client.assert_not_called()

        asyncio.run(service.generate("one"))
        asyncio.run(service.generate("two"))

        mock_get_client.assert_called_once()


class TestLLMServiceStatus(unittest.TestCase):

    def test_names(self):
        service = LLMService(TEST_CONFIG, client=fake_client())
        self.assertEqual(service.provider_name(), "Groq")
        self.assertEqual(service.model_name(), "llama-3.1-8b-instant")

        openrouter = LLMService({"llm": {"provider": "openrouter", "models": {"chat": {"name": "m"}}}}, client=fake_client())
        self.assertEqual(openrouter.provider_name(), "OpenRouter")

    def test_status_connected(self):
        client = fake_client(completion("ok"))
        status = asyncio.run(LLMService(TEST_CONFIG, client=client).get_status())

        self.assertTrue(status.connected)
        self.assertEqual(status.provider, "Groq")
        self.assertEqual(client.chat.completions.create.await_args.kwargs["max_tokens"], 3)

    def test_check_connection_never_raises(self):
        service = LLMService(TEST_CONFIG, client=fake_client(error=status_error(openai.AuthenticationError, 401)))

        self.assertFalse(asyncio.run(service.check_connection()))


if __name__ == '__main__':
    unittest.main()
