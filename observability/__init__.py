"""
Structured event emission and the in-memory event store.

Shared by the orchestrator core and the engine adapters.
"""
