"""
llm_cloud/service.py

Facade over the configured chat completion provider.

Every component that needs text generation (classifier, response generator, summary generator)
depends on `LLMService` rather than on the SDK. The provider is fixed when the service is built
at startup; there is no per-request switching. The SDK client itself is created lazily on first
use so that a missing API key surfaces as a failed call (and a "disconnected" status) instead of
preventing the application from starting.
"""

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from config import CONFIG
from monitoring.metrics import LLM_REQUEST_TIME, track_errors
from shared.models import LLMStatus
from shared.utils import preview
from .provider import SUPPORTED_PROVIDERS, get_client, get_provider_name

logger = logging.getLogger(__name__)

LOG_PROMPT_PREVIEW_LENGTH = 200
LOG_RESPONSE_PREVIEW_LENGTH = 300


class LLMProviderError(Exception):
    """A chat completion request failed. The message is safe to log."""


class LLMService:
    """
    Thin async wrapper around an OpenAI-compatible chat completions endpoint.

    Args:
        config (dict): Global configuration; reads the `llm` section.
        client (Optional[AsyncOpenAI]): Pre-built client, mainly for tests. When omitted the
            client is built with `get_client()` on first use.
    """

    def __init__(self, config: dict = CONFIG, client: Optional[AsyncOpenAI] = None):
        self._llm_config = config.get("llm", {})
        self._provider = get_provider_name(config)
        self._client = client
        self.last_call_succeeded = False
        logger.info(
            "[LLMService] Initialized with provider: %s, model: %s",
            self.provider_name(),
            self.model_name(),
        )

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_client()
        return self._client

    def provider_name(self) -> str:
        return SUPPORTED_PROVIDERS.get(self._provider, {}).get("display_name", self._provider)

    def model_name(self) -> str:
        return self._llm_config.get("models", {}).get("chat", {}).get("name", "unknown")

    def _settings(self) -> dict:
        return self._llm_config.get("models", {}).get("chat", {}).get("settings", {})

    def _translate_error(self, error: Exception) -> LLMProviderError:
        name = self.provider_name()
        if isinstance(error, openai.AuthenticationError):
            return LLMProviderError(f"Invalid {name} API key. Please check your API key in the .env file")
        if isinstance(error, openai.RateLimitError):
            return LLMProviderError(f"{name} API rate limit exceeded. Please try again in a moment")
        if isinstance(error, openai.APIStatusError) and error.status_code == 402:
            return LLMProviderError(f"Insufficient {name} credits for model {self.model_name()}")
        if isinstance(error, openai.APIConnectionError):
            return LLMProviderError(f"Could not connect to {name} API")
        if isinstance(error, RuntimeError):
            return LLMProviderError(str(error))
        return LLMProviderError(f"{name} request failed: {error}")

    @track_errors("llm", "llm_service")
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Send one system + user exchange and return the assistant text.

        Args:
            prompt (str): User message content.
            system_prompt (Optional[str]): System instruction. Omitted from the request when None.

        Returns:
            str: The completion text.

        Raises:
            LLMProviderError: Any provider, network or configuration failure, or an empty completion.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        settings = self._settings()
        logger.info(
            f"[LLMService] Request to {self.provider_name()} ({self.model_name()}): "
            f"{preview(prompt, LOG_PROMPT_PREVIEW_LENGTH)}"
        )
        try:
            with LLM_REQUEST_TIME.labels(model=self.model_name()).time():
                response = await self._get_client().chat.completions.create(
                    model=self.model_name(),
                    messages=messages,
                    temperature=settings.get("temperature", 0.7),
                    max_tokens=settings.get("max_tokens", 1000),
                )
        except (openai.OpenAIError, RuntimeError, ValueError) as e:
            self.last_call_succeeded = False
            raise self._translate_error(e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            self.last_call_succeeded = False
            raise LLMProviderError(f"No response content from {self.provider_name()}")

        self.last_call_succeeded = True
        logger.info(f"[LLMService] Response: {preview(content, LOG_RESPONSE_PREVIEW_LENGTH)}")
        return content

    async def check_connection(self) -> bool:
        """
        Probe the provider with a tiny completion. Never raises.

        Returns:
            bool: True when the key is configured and the provider answered.
        """
        max_tokens = (
            self._llm_config.get("models", {})
            .get("connection_check", {})
            .get("settings", {})
            .get("max_tokens", 5)
        )
        try:
            await self._get_client().chat.completions.create(
                model=self.model_name(),
                messages=[{"role": "user", "content": "test"}],
                max_tokens=max_tokens,
            )
        except (openai.OpenAIError, RuntimeError, ValueError) as e:
            logger.warning(f"[LLMService] {self.provider_name()} API not available: {e}")
            return False
        logger.info(f"[LLMService] {self.provider_name()} API connection successful")
        return True

    async def get_status(self) -> LLMStatus:
        connected = await self.check_connection()
        return LLMStatus(connected=connected, provider=self.provider_name(), model=self.model_name())
