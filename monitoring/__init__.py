"""
Monitoring package initializer.

This package exposes Prometheus metrics and helper decorators for tracking chat turn
stages, knowledge source latency and LLM latency.
"""

from .metrics import (
    REQUEST_COUNT,
    ERROR_COUNT,
    CHAT_STAGE_TIME,
    KNOWLEDGE_SOURCE_REQUEST_TIME,
    LLM_REQUEST_TIME,
    track_latency,
    track_errors,
)

__all__ = [
    'REQUEST_COUNT',
    'ERROR_COUNT',
    'CHAT_STAGE_TIME',
    'KNOWLEDGE_SOURCE_REQUEST_TIME',
    'LLM_REQUEST_TIME',
    'track_latency',
    'track_errors',
]
