"""
Core metrics and monitoring decorators for the PokeBuddy backend.

This module defines Prometheus metrics and decorators for tracking:
- Request counts
- Error rates
- Per-stage chat turn latency (classification, data fetch, generation, total, summary)
- Knowledge source latency
- LLM API latency
"""

import inspect
import time
import functools
import logging
from typing import Optional, Callable
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

# Error metrics
ERROR_COUNT = Counter(
    'error_total',
    'Total number of errors',
    ['type', 'location']  # type: e.g., 'http', 'turn', 'knowledge_source'; location: specific component
)

# Chat turn stage metrics
CHAT_STAGE_TIME = Histogram(
    'chat_stage_duration_seconds',
    'Time spent in each stage of a chat turn',
    ['stage'],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, float("inf")]
)

# External API metrics
KNOWLEDGE_SOURCE_REQUEST_TIME = Histogram(
    'knowledge_source_request_duration_seconds',
    'Time spent waiting for a knowledge source',
    ['source', 'kind'],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, float("inf")]
)

LLM_REQUEST_TIME = Histogram(
    'llm_request_duration_seconds',
    'Time spent waiting for LLM API',
    ['model'],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, float("inf")]
)


def _observe(metric: Histogram, labels: Optional[Callable], args, func_name: str, duration: float) -> None:
    if labels and args:
        # For instance methods, first arg is 'self'
        metric.labels(**labels(args[0])).observe(duration)
    else:
        metric.observe(duration)
    logger.debug(
        f"Function {func_name} execution time: {duration:.2f} seconds",
        extra={'extra_fields': {'duration': duration, 'function': func_name}}
    )


def track_latency(metric: Histogram, labels: Optional[Callable] = None) -> Callable:
    """
    A decorator factory that tracks the execution time of a function using a Prometheus Histogram.

    Works for plain functions and for coroutine functions. For coroutines the timing covers
    the awaited work, not just the creation of the coroutine object.

    Args:
        metric (Histogram): The Prometheus Histogram to record the timing in
        labels (Callable, optional): Function that receives `self` and returns metric labels dictionary

    Returns:
        Callable: The decorated function
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _observe(metric, labels, args, func.__name__, time.perf_counter() - start_time)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _observe(metric, labels, args, func.__name__, time.perf_counter() - start_time)
        return wrapper
    return decorator


def _record_error(error_type: str, location: str, error: Exception) -> None:
    ERROR_COUNT.labels(type=error_type, location=location).inc()
    logger.error(
        f"Error in {location} ({error_type}): {str(error)}",
        extra={'extra_fields': {
            'error_type': error_type,
            'location': location,
            'error': str(error)
        }},
        exc_info=True
    )


def track_errors(error_type: str, location: str) -> Callable:
    """
    A decorator factory that counts and logs errors raised by a function, then re-raises them.

    Args:
        error_type (str): Type of error (e.g., 'http', 'llm', 'knowledge_source')
        location (str): Where the error occurred

    Returns:
        Callable: The decorated function

    Example:
        @track_errors('llm', 'llm_service')
        async def generate(self, prompt: str):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _record_error(error_type, location, e)
                    raise
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _record_error(error_type, location, e)
                raise
        return wrapper
    return decorator
