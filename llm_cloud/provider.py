"""
provider.py – External LLM client with provider routing and validation.
-----------------------------------------------------------------------
In the overall data-flow this file sits at the infrastructure layer.
It is the single place where we build a client for the external LLM platform.

Both supported providers expose an OpenAI-compatible chat completions API, so one SDK
(`openai.AsyncOpenAI`) covers them; only the base URL, API key variable and a few headers differ.

Provider routing logic (CONFIG["llm"]["provider"], overridable with LLM_PROVIDER):
- "groq": Groq inference API with GROQ_API_KEY
- "openrouter": OpenRouter with OPENROUTER_API_KEY and its attribution headers
- Unsupported providers raise ValueError with a clear error message

The validation and routing happen at client creation time (not import time) so the module stays
importable in tests and tools that never talk to a provider.
"""

import logging
import os
from typing import Dict, List, Tuple

from openai import AsyncOpenAI
from config import CONFIG

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = {
    "groq": {
        "env_vars": ["GROQ_API_KEY"],
        "base_url": "https://api.groq.com/openai/v1",
        "display_name": "Groq",
    },
    "openrouter": {
        "env_vars": ["OPENROUTER_API_KEY"],
        "base_url": "https://openrouter.ai/api/v1",
        "display_name": "OpenRouter",
    },
}

# Values shipped in .env.example; treated the same as an unset key.
PLACEHOLDER_KEYS = {"your-groq-api-key-here", "your-openrouter-api-key-here"}


def get_provider_name(config: Dict = CONFIG) -> str:
    """Return the normalized provider identifier from configuration."""
    return (config.get("llm", {}).get("provider") or "groq").strip().lower()


def require_any_env(var_names: List[str]) -> Tuple[str, str]:
    """
    Check that at least one of the specified environment variables is present and non-empty.

    Placeholder values copied from the example env file count as missing. The function never logs
    or returns more than the variable name for diagnostics; the secret is only handed back to the
    caller that builds the client.

    Args:
        var_names (List[str]): Environment variable names to check, in order of preference.

    Returns:
        Tuple[str, str]: (selected_var_name, value)

    Raises:
        RuntimeError: If none of the variables hold a usable value.
    """
    for var_name in var_names:
        value = os.getenv(var_name, "")
        if value and value not in PLACEHOLDER_KEYS:
            return var_name, value

    var_list = ", ".join(var_names)
    raise RuntimeError(
        f"Missing required environment variable. Set one of: {var_list}"
    )


def validate_env_for_provider(config: Dict) -> None:
    """
    Validate that the API key for the configured LLM provider is available.

    Args:
        config (Dict): Configuration dictionary with an 'llm' section holding 'provider'.

    Raises:
        ValueError: If an unsupported provider is configured.
        RuntimeError: If the provider's API key variable is missing or a placeholder.
    """
    provider = get_provider_name(config)
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported LLM provider: {provider}")
    selected_var, _ = require_any_env(SUPPORTED_PROVIDERS[provider]["env_vars"])
    logger.info("LLM provider selected: %s | using environment variable: %s", provider, selected_var)


def get_client() -> AsyncOpenAI:
    """
    Build and return a configured OpenAI-compatible async client for the selected provider.

    The base URL comes from CONFIG["llm"]["base_url"] when set, otherwise from the provider's
    default. OpenRouter additionally receives the HTTP-Referer and X-Title headers it uses for
    app attribution.

    Returns:
        AsyncOpenAI: A ready-to-use client.

    Raises:
        RuntimeError: If required environment variables are missing (via validation).
        ValueError: If an unsupported provider is configured.
    """
    validate_env_for_provider(CONFIG)

    llm_config = CONFIG.get("llm", {})
    provider = get_provider_name(CONFIG)
    provider_info = SUPPORTED_PROVIDERS[provider]
    _, api_key = require_any_env(provider_info["env_vars"])
    base_url = llm_config.get("base_url") or provider_info["base_url"]

    default_headers = None
    if provider == "openrouter":
        default_headers = {
            "HTTP-Referer": llm_config.get("site_url", "http://localhost:3000"),
            "X-Title": llm_config.get("app_name", "PokeBuddy"),
        }

    logger.info("LLM provider selected: %s | base_url=%s", provider, base_url)
    return AsyncOpenAI(
        base_url=base_url,
        api_key=api_key,
        timeout=llm_config.get("timeout", 30),  # seconds
        default_headers=default_headers,
    )
