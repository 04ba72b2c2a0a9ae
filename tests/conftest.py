"""
conftest.py – central pytest configuration and test bootstrap ("config test").

Pytest imports this module before it collects any test files, which lets us prepare the
environment so that importing the application packages succeeds on any machine:

1) Extend `sys.path` with the project root directory so absolute-style imports like
   `from core ...` and `from shared ...` resolve without performing an editable install.
2) Define safe default environment variables read at import time by the configuration layer:
   - `GROQ_API_KEY`: a dummy key so the LLM provider layer validates without a real secret.
     No test talks to a real provider; every LLM call is mocked.
   - `KNOWLEDGE_SOURCE_MODE=mock`: the composition root builds in-memory knowledge sources.
   - `LOG_FILE_PATH=""`: console logging only, no log files written by the test run.
   - `DB_PATH`: a throwaway SQLite file in a temporary directory.

Shared fixtures for building a fake LLM and a temporary session store also live here.
"""

import json
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Ensure project root is on sys.path for direct imports like `core`, `shared`, etc.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Provide required environment defaults for tests
os.environ.setdefault("GROQ_API_KEY", "test-key")
os.environ.setdefault("LLM_PROVIDER", "groq")
os.environ.setdefault("KNOWLEDGE_SOURCE_MODE", "mock")
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("DB_PATH", str(Path(tempfile.mkdtemp(prefix="pokebuddy-tests-")) / "pokebuddy.db"))


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite session store in the test's temporary directory."""
    from services.session_store import SessionStore
    return SessionStore(str(tmp_path / "sessions.db"))


@pytest.fixture
def prompts():
    """The real prompt templates shipped in config/."""
    from config import load_prompts
    return load_prompts()


DEFAULT_SUMMARY = json.dumps({
    "pokemonDiscussed": ["pikachu"],
    "topicsCovered": ["abilities"],
    "lastKnownContext": "User asked about pikachu's abilities",
})


class ScriptedLLM:
    """
    Stand-in for `LLMService` that answers by system prompt.

    The classifier, the response generator and the summary generator each send a different
    system prompt, so one scripted object can drive a whole turn. Any scripted value that is an
    exception instance is raised instead of returned. `generate` is an `AsyncMock`, so tests can
    inspect every prompt that was sent.
    """

    def __init__(self, prompts, classification, reply="Pikachu has Static and Lightning Rod!", summary=DEFAULT_SUMMARY):
        self._by_system_prompt = {
            prompts['classification_system']: classification,
            prompts['assistant_system']: reply,
            prompts['summary_system']: summary,
        }
        self.last_call_succeeded = False
        self.generate = AsyncMock(side_effect=self._generate)

    async def _generate(self, prompt, system_prompt=None):
        answer = self._by_system_prompt[system_prompt]
        if isinstance(answer, Exception):
            self.last_call_succeeded = False
            raise answer
        self.last_call_succeeded = True
        return answer

    def prompts_sent_with(self, system_prompt):
        return [c.args[0] for c in self.generate.await_args_list if c.args[1] == system_prompt]

    def provider_name(self):
        return "Groq"

    def model_name(self):
        return "llama-3.1-8b-instant"

    async def get_status(self):
        from shared.models import LLMStatus
        return LLMStatus(connected=True, provider=self.provider_name(), model=self.model_name())


@pytest.fixture
def scripted_llm(prompts):
    """Factory fixture: `scripted_llm(classification_json, reply=..., summary=...)`."""
    def factory(classification, **kwargs):
        return ScriptedLLM(prompts, classification, **kwargs)
    return factory
