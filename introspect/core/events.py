"""
In-process event bus.

Publishers never wait on subscriber side effects failing: a subscriber that
raises is logged and the remaining subscribers still run.
"""
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, DefaultDict, List, Type, Union

# Set up logging
logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class DiagnosticResultAvailable:
    """Raised after a diagnostic review transition commits."""
    diagnostic_id: str
    subject_id: str
    submitted_by_id: str
    result: str
    review_status: str
    reviewed_by_id: str


class EventBus:
    """Maps event types to subscriber callables (sync or async)."""

    def __init__(self):
        self._subscribers: DefaultDict[Type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: Type, handler: Handler) -> None:
        if handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)

    def subscribers(self, event_type: Type) -> List[Handler]:
        return list(self._subscribers[event_type])

    async def publish(self, event: Any) -> None:
        """
        Deliver an event to every subscriber of its type.

        Args:
            event: Event instance
        """
        for handler in self.subscribers(type(event)):
            try:
                outcome = handler(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Subscriber {getattr(handler, '__name__', handler)} failed on {type(event).__name__}: {str(e)}")


event_bus = EventBus()
