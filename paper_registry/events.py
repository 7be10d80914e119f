from pydantic import BaseModel, Field
from typing import Callable, Iterable, List, Literal, Optional
import logging
import threading
import uuid

logger = logging.getLogger(__name__)


class Event(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: str
    record_identity: str


class Published(Event):
    kind: Literal["Published"] = "Published"
    authors: List[str]
    price: int


class Purchased(Event):
    kind: Literal["Purchased"] = "Purchased"
    buyer: str
    amount: int


class RoyaltyDistributed(Event):
    kind: Literal["RoyaltyDistributed"] = "RoyaltyDistributed"
    buyer: str
    amount: int
    platform_fee: int
    author_share: int
    per_author_amount: int


class SettlementIntent(Event):
    kind: Literal["SettlementIntent"] = "SettlementIntent"
    recipient: str
    amount: int


class EventLog:
    """只追加的事件日志，可注册订阅者"""

    def __init__(self):
        self._events: List[Event] = []
        self._subscribers: List[Callable[[Event], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Event], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, event: Event) -> None:
        self.emit_all([event])

    def emit_all(self, events: Iterable[Event]) -> None:
        """按顺序一次性写入一组事件"""
        events = list(events)
        with self._lock:
            self._events.extend(events)
        for event in events:
            logger.debug("Event %s for %s", event.kind, event.record_identity)
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception:
                    # 状态已提交，订阅者失败不影响调用方
                    logger.exception("Subscriber failed on %s for %s", event.kind, event.record_identity)

    def list(self, kind: Optional[str] = None) -> List[Event]:
        with self._lock:
            if kind is None:
                return list(self._events)
            return [e for e in self._events if e.kind == kind]

    def __len__(self) -> int:
        return len(self._events)
