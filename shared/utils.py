"""
shared/utils.py

Shared utility functions used across multiple modules.

This module contains small helpers for handling raw LLM output and for building the
text previews used in prompts and logs.
"""

import re
import time
from typing import Any


_CODE_FENCE_OPEN = re.compile(r"```(?:json)?", re.IGNORECASE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
# A `//` comment only when it is not part of a URL such as https://...
_LINE_COMMENT = re.compile(r"(?<![:\"'\\])//[^\n]*")


def clean_llm_json(raw: str) -> str:
    """
    Strip the decorations LLMs commonly wrap around JSON output.

    Removes Markdown code fences (```json ... ```), `/* ... */` block comments and `//` line
    comments, then trims surrounding whitespace. Even with a strict "JSON only" instruction,
    smaller models regularly emit these, and `json.loads` rejects all of them.

    Args:
        raw (str): Text as returned by the model.

    Returns:
        str: Text ready for `json.loads`. It may still be invalid JSON.
    """
    cleaned = (raw or "").strip()
    cleaned = _CODE_FENCE_OPEN.sub("", cleaned)
    cleaned = _BLOCK_COMMENT.sub("", cleaned)
    cleaned = _LINE_COMMENT.sub("", cleaned)
    return cleaned.strip()


def preview(text: str, limit: int) -> str:
    """Return the first `limit` characters of `text` followed by `...`."""
    return f"{(text or '')[:limit]}..."


def elapsed_ms(start: float) -> float:
    """Milliseconds elapsed since a `time.perf_counter()` reading, rounded to 0.01 ms."""
    return round((time.perf_counter() - start) * 1000, 2)


def fill_template(template: str, **values: Any) -> str:
    """
    Substitute `{name}` placeholders in a prompt template in a single pass.

    `str.format` cannot be used because the templates contain literal JSON braces. Substituting
    in one pass also means text inserted for one placeholder (a user message, say) is never
    scanned for another placeholder.
    """
    if not values:
        return template
    pattern = re.compile(r"\{(" + "|".join(re.escape(name) for name in values) + r")\}")
    return pattern.sub(lambda match: str(values[match.group(1)]), template)
