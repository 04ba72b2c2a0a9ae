"""
shared/__init__.py

Shared utilities and models used across multiple modules.

This package contains common functionality that is used by multiple
components of the chat backend:
- models: Common data structures and type definitions
- utils: LLM output cleaning and text preview helpers
"""
