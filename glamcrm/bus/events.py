"""
Event Bus - Decoupled Module Communication
Stores and the dashboard controller emit events; notifications and audit
hooks listen without importing each other.
"""

from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple synchronous event bus.
    A failing handler is logged and skipped so it cannot break the emitting operation.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """
        Register a handler for an event.

        Args:
            event_name: Name of the event to listen for
            handler: Callable that receives the event_data dict
        """
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)!r}")

    def off(self, event_name: str, handler: Callable) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, event_name: str, event_data: Dict[str, Any] = None):
        """
        Emit an event to all registered handlers, in registration order.

        Args:
            event_name: Name of the event
            event_data: Optional dict of data to pass to handlers
        """
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with keys: {sorted(event_data)}")

        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)!r} for event '{event_name}': {e}")

    def clear(self):
        """Clear all handlers (useful for testing)."""
        self._handlers.clear()


# Singleton instance
bus = EventBus()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Lead store
EVENT_LEAD_CREATED = 'lead_created'
EVENT_LEAD_UPDATED = 'lead_updated'

# Dashboard controller
EVENT_LEADS_LOADED = 'leads_loaded'
EVENT_LEADS_FALLBACK = 'leads_fallback'
EVENT_LEAD_SAVED = 'lead_saved'
EVENT_LEAD_SAVE_FAILED = 'lead_save_failed'
EVENT_LEAD_REVERTED = 'lead_reverted'
EVENT_LEAD_REMOVED = 'lead_removed'

# Notifications
EVENT_INQUIRY_SENT = 'inquiry_sent'
