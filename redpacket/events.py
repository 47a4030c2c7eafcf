"""
Append-only event log.

Events are the engine's only output channel besides return values. They are
appended after the operation that produced them has committed, in commit
order. Consumers read them by position, the same way an indexer scans chain
logs from its last scanned block.
"""
import threading
from dataclasses import asdict, dataclass
from typing import List, Optional

from eth_utils import encode_hex


@dataclass(frozen=True)
class Event:
    event_name = 'Event'

    def to_dict(self):
        data = {}
        for key, value in asdict(self).items():
            data[key] = encode_hex(value) if isinstance(value, bytes) else value
        return {"event": self.event_name, "args": data}


@dataclass(frozen=True)
class CreationSuccess(Event):
    event_name = 'CreationSuccess'

    total: int
    id: bytes
    name: str
    message: str
    creator: str
    creation_time: int
    token_address: str
    number: int
    ifrandom: bool
    duration: int
    hash_lock: bytes


@dataclass(frozen=True)
class ClaimSuccess(Event):
    event_name = 'ClaimSuccess'

    id: bytes
    claimer: str
    claimed_value: int
    token_address: str
    lock: bytes


@dataclass(frozen=True)
class RefundSuccess(Event):
    event_name = 'RefundSuccess'

    id: bytes
    token_address: str
    remaining_balance: int


@dataclass(frozen=True)
class DistributorCreated(Event):
    event_name = 'DistributorCreated'

    total_tokens: int
    id: bytes
    name: str
    message: str
    token_address: str
    number: int
    duration: int
    creator: str
    creation_time: int


@dataclass(frozen=True)
class Claimed(Event):
    event_name = 'Claimed'

    id: bytes
    index: int
    account: str
    amount: int


class EventLog:
    def __init__(self):
        self._events: List[Event] = []
        self._mutex = threading.Lock()

    def emit(self, event: Event) -> int:
        """Append ``event`` and return its position in the log."""
        with self._mutex:
            self._events.append(event)
            return len(self._events) - 1

    def get_logs(self, from_index: int = 0, to_index: Optional[int] = None, name: Optional[str] = None) -> List[Event]:
        with self._mutex:
            logs = self._events[from_index:to_index]
        if name is not None:
            logs = [event for event in logs if event.event_name == name]
        return logs

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self.get_logs())
