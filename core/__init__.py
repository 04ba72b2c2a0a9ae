"""
core/__init__.py

Core chat pipeline modules.

This package contains the coordination logic for a conversation turn:
- classifier: intent classification and endpoint selection
- aggregator: parallel weighted lookups across knowledge sources
- data_fetcher: runs the classifier's lookups and records resource usage
- response_generator: prompt selection and reply synthesis
- summary: summary trigger policy, generator and background scheduler
- orchestrator: the per-turn flow with timing, diagnostics and fallbacks
- bootstrap: builds the whole object graph once at startup
"""
