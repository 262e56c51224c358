"""
Unit of Work

Wraps a database transaction and makes sure domain events collected
inside it are published only if the transaction commits.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        pass

    @abstractmethod
    def rollback(self):
        pass

    @abstractmethod
    def collect_events(self, aggregate):
        pass


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Usage:
        with DjangoUnitOfWork() as uow:
            row = Booking.objects.select_for_update().get(pk=booking_id)
            record = to_domain(row)
            record.transition_to(BookingStatus.PAID, reason=reason)
            ... save row, add status change ...
            uow.collect_events(record)
        # BookingPaid is published after COMMIT
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._transaction = None

    def __enter__(self):
        self._transaction = transaction.atomic()
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._transaction:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)

    def commit(self):
        """Schedule publishing for after the surrounding transaction commits."""
        events, self._events = self._events, []
        if events:
            logger.debug(f"Deferring {len(events)} events until commit")
            transaction.on_commit(lambda: self._publish_events(events))

    def rollback(self):
        if self._events:
            logger.warning(f"Rolling back, discarding {len(self._events)} events")
        self._events.clear()

    def collect_events(self, aggregate):
        new_events = aggregate.pull_events()
        if new_events:
            self._events.extend(new_events)
            logger.debug(
                f"Collected {len(new_events)} events from "
                f"{aggregate.__class__.__name__} {aggregate.id}"
            )

    def _publish_events(self, events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        try:
            message_bus.publish(events)
        except Exception as e:
            # The state change is already committed; monitoring picks this up.
            logger.error(f"Error publishing events: {e}", exc_info=True)
