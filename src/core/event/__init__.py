"""
In-process event bus for the Study Twin backend.
"""

from src.core.event.bus import EventBus, EventListener, EventPayload, matches

__all__ = ["EventBus", "EventListener", "EventPayload", "matches"]
