"""
api package: FastAPI routers for the chat backend.

- sessions: chat sessions, message turns and history
- pokemon: direct aggregated Pokemon lookups and listing
- llm: LLM provider status
- health: liveness check
"""
