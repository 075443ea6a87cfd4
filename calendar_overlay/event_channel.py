"""In-process event channel for calendar notifications.

Pattern: typed payloads, explicit subscribe/unsubscribe owned by the subscriber.
"""
import threading
from typing import Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from calendar_overlay.logging_config import get_logger

logger = get_logger(__name__)


class StaffDeleted(BaseModel):
    """Published after a staff member (user) has been deleted."""
    staff_id: str = Field(..., min_length=1, description="Staff profile id")
    user_id: Optional[str] = Field(None, description="Underlying user id, if known")


Handler = Callable[[BaseModel], None]


class EventChannel:
    """
    Synchronous publish/subscribe keyed by payload type.

    Handlers run in the publisher's thread, in subscription order. A failing
    handler is logged and does not stop the others.
    """

    def __init__(self):
        self._handlers: Dict[Type[BaseModel], List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[BaseModel], handler: Handler) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            event_type: Payload class to listen for
            handler: Called with the payload instance

        Returns:
            Callable that removes this subscription (safe to call twice)
        """
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe():
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event: BaseModel) -> int:
        """Deliver an event. Returns the number of handlers invoked."""
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    error=str(e),
                    exc_info=True
                )

        logger.info("event_published", event_type=type(event).__name__, handlers=len(handlers))
        return len(handlers)

    def subscriber_count(self, event_type: Type[BaseModel]) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, []))
