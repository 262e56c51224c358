"""
Base Domain Classes

Building blocks shared by the booking and payment contexts:
- Entity: object with identity, compared by id
- ValueObject: immutable object compared by value
- Aggregate: consistency boundary that records domain events
- DomainEvent: something that happened, published after commit
"""

from abc import ABC
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List
from uuid import UUID, uuid4


@dataclass(kw_only=True)
class Entity(ABC):
    """
    Base class for all entities

    Two entities are equal when their ids are equal, whatever the
    rest of their state looks like.
    """
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def touch(self):
        self.updated_at = datetime.now()

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable; equality is structural.
    """
    pass


@dataclass(kw_only=True, eq=False)
class Aggregate(Entity):
    """
    Base class for aggregate roots

    State changes on the aggregate record events; the unit of work
    pulls them and hands them to the message bus once the transaction
    has committed.
    """
    _events: List['DomainEvent'] = field(default_factory=list, repr=False, init=False, compare=False)

    def record_event(self, event: 'DomainEvent'):
        if event.aggregate_id is None:
            event.aggregate_id = self.id
        self._events.append(event)

    def pull_events(self) -> List['DomainEvent']:
        """Return recorded events and forget them."""
        events, self._events = self._events, []
        return events

    @property
    def events(self) -> List['DomainEvent']:
        return list(self._events)


def _serialize(value):
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, ValueObject):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_serialize(item) for item in value]
    return value


@dataclass(kw_only=True)
class DomainEvent:
    """
    Base class for domain events

    Subclasses add their own payload fields; `to_dict()` flattens the
    whole event for logging and task arguments.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=datetime.now)
    aggregate_id: UUID | None = None

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        payload = {
            f.name: _serialize(getattr(self, f.name))
            for f in fields(self)
            if f.name not in ('event_id', 'occurred_at', 'aggregate_id')
        }
        return {
            'event_id': str(self.event_id),
            'event_type': self.name,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': str(self.aggregate_id) if self.aggregate_id else None,
            'payload': payload,
        }
