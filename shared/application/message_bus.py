"""
Message Bus

Routes domain events to the handlers that react to them (confirmation
mail, audit logging). Handlers subscribe per event type; one event can
have many handlers.
"""

from typing import Callable, Dict, Iterable, List, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class MessageBus:
    """
    Event dispatcher

    A failing handler is logged and skipped; the remaining handlers for
    the same event still run.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler):
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Subscribed {handler.__name__} to {event_type.__name__}")

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler):
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[EventHandler]:
        return list(self._handlers.get(event_type, []))

    def publish(self, events: Iterable[DomainEvent]):
        for event in events:
            handlers = self.handlers_for(type(event))
            if not handlers:
                logger.debug(f"No handlers for {event.name}")
                continue

            logger.info(f"Publishing {event.name} (aggregate {event.aggregate_id})")

            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        f"Handler {handler.__name__} failed for {event.name}: {e}",
                        exc_info=True
                    )


# Global message bus instance
message_bus = MessageBus()
