"""
Core engine: configuration, time sources, and the session/attempt state
machines.

Nothing in this package imports from ``assessment_engine.models``; the
engine works on the plain records in ``core.entities``.
"""
from .config import settings

__all__ = ["settings"]
