"""
Events - Notifications emitted by the staking pool after a commit.

Events are written to an append-only EventLog once an operation has fully
succeeded. Observers subscribe with a callback; a failing observer is logged
and never undoes the operation that produced the event.
"""

from dataclasses import dataclass, fields
from typing import Callable, Iterator, List, Optional, Type, TypeVar

from tipstake.crypto import bytes_to_hex
from tipstake.utils.logger import get_logger

logger = get_logger("events")


@dataclass(frozen=True)
class Event:
    """Base event. Subclasses add their own fields."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        """JSON-friendly form: addresses as hex, amounts as decimal strings."""
        data = {"event": self.name}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bytes):
                data[f.name] = bytes_to_hex(value)
            elif isinstance(value, int) and f.name != "timestamp":
                data[f.name] = str(value)
            else:
                data[f.name] = value
        return data


@dataclass(frozen=True)
class Staked(Event):
    user: bytes
    amount: int
    timestamp: int


@dataclass(frozen=True)
class Unstaked(Event):
    user: bytes
    amount: int
    rewards: int
    penalty: int
    timestamp: int


@dataclass(frozen=True)
class RewardsClaimed(Event):
    user: bytes
    amount: int
    timestamp: int


@dataclass(frozen=True)
class EmergencyWithdraw(Event):
    to: bytes
    amount: int
    timestamp: int


@dataclass(frozen=True)
class Paused(Event):
    account: bytes


@dataclass(frozen=True)
class Unpaused(Event):
    account: bytes


EVENT_TYPES = {
    cls.__name__: cls
    for cls in (Staked, Unstaked, RewardsClaimed, EmergencyWithdraw, Paused, Unpaused)
}


def event_from_dict(data: dict) -> Event:
    """Inverse of Event.to_dict()."""
    cls = EVENT_TYPES[data["event"]]
    kwargs = {}
    for f in fields(cls):
        value = data[f.name]
        if isinstance(value, str) and value.startswith("0x"):
            kwargs[f.name] = bytes.fromhex(value[2:])
        else:
            kwargs[f.name] = int(value)
    return cls(**kwargs)


E = TypeVar("E", bound=Event)

Subscriber = Callable[[Event], None]


class EventLog:
    """
    Append-only event log with subscriber callbacks.

    Usage:
        log = EventLog()
        log.subscribe(lambda event: print(event.name))
    """

    def __init__(self):
        self._events: List[Event] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers.remove(callback)

    def append(self, event: Event) -> None:
        self._events.append(event)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Event subscriber failed on {event.name}")

    def extend_silently(self, events: List[Event]) -> None:
        """Restore history without notifying subscribers (storage reload)."""
        self._events.extend(events)

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, event_type)]

    def last(self, event_type: Optional[Type[E]] = None) -> Optional[Event]:
        events = self.of_type(event_type) if event_type else self._events
        return events[-1] if events else None

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
