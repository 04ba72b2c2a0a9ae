"""
Health endpoint for the PokeBuddy backend.

Exposes a liveness check at "/health" returning a static "ok" status, the app version and a UTC
timestamp. It does not touch the database, the LLM or any knowledge source.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter

from version import __version__

router = APIRouter()


@router.get("/health")
def health() -> Dict[str, str]:
    """
    Return a simple health status payload.

    Returns:
        Dict[str, str]: Keys "status", "version" and "timestamp" (ISO 8601, UTC).
    """
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
