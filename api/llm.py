"""
api/llm.py

LLM provider status endpoint.

  - GET /llm/status: Report the configured provider, model, and whether a probe completion
                     succeeds right now.
"""

from fastapi import APIRouter, Depends

from core.bootstrap import ChatComponents
from shared.models import LLMStatus
from .sessions import get_components

router = APIRouter()


@router.get("/llm/status", response_model=LLMStatus)
async def llm_status(components: ChatComponents = Depends(get_components)) -> LLMStatus:
    return await components.llm.get_status()
