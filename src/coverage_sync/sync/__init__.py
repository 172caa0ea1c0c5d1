"""Sync infrastructure.

Modules:
    orchestrator — Per-invocation state machine (probe, key, drain, send)
    scheduler    — Fixed-interval trigger used by the service
"""
