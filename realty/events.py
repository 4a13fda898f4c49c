# realty/events.py
"""In-process event bus for side effects that must not block a request.

Listeners run on a small thread pool. A failing listener is logged and
otherwise ignored; the publisher never sees its outcome.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from .cache import STATISTICS, NamedCache
from .utils import env_int, logger


@dataclass(frozen=True)
class InquiryCreated:
    inquiry_id: str
    property_id: str
    property_title: Optional[str]
    agent_id: Optional[str]
    agent_email: Optional[str]
    contact_name: str
    contact_email: str
    message: str


class EventBus:

    def __init__(self, max_workers: Optional[int] = None):
        self._listeners: Dict[Type, List[Callable]] = {}
        self._executor = ThreadPoolExecutor(max_workers=max_workers or env_int("EVENT_WORKERS", 4),
                                            thread_name_prefix="event")

    def subscribe(self, event_type: Type, listener: Callable) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def publish(self, event) -> List[Future]:
        """Schedule every listener for `event`; returns their futures.

        Never raises: once the bus is shut down the event is logged and dropped.
        """
        futures = []
        for listener in self._listeners.get(type(event), []):
            try:
                futures.append(self._executor.submit(self._deliver, listener, event))
            except RuntimeError as e:
                logger.warning("Dropping %s for %s: %s", type(event).__name__,
                               getattr(listener, "__name__", listener), e)
        return futures

    @staticmethod
    def _deliver(listener: Callable, event) -> bool:
        try:
            listener(event)
            return True
        except Exception as e:
            logger.exception("Event listener %s failed for %s: %s",
                             getattr(listener, "__name__", listener), type(event).__name__, e)
            return False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _preview(message: str, limit: int = 50) -> str:
    return message if len(message) <= limit else message[:limit] + "..."


def notify_agent(event: InquiryCreated) -> None:
    logger.info("EVENT: Sending notification to agent %s about new inquiry for property '%s'",
                event.agent_email, event.property_title)
    logger.info("Inquiry details - From: %s (%s) - Message: %s",
                event.contact_name, event.contact_email, _preview(event.message))


def welcome_inquirer(event: InquiryCreated) -> None:
    logger.info("EVENT: Sending welcome email to %s for inquiry about property '%s'",
                event.contact_email, event.property_title)


def statistics_listener(cache: NamedCache) -> Callable[[InquiryCreated], None]:
    def update_inquiry_statistics(event: InquiryCreated) -> None:
        logger.info("EVENT: Updating statistics - new inquiry for property %s (agent %s)",
                    event.property_id, event.agent_id)
        cache.invalidate(STATISTICS)
    return update_inquiry_statistics


def register_inquiry_listeners(bus: EventBus, cache: NamedCache) -> None:
    bus.subscribe(InquiryCreated, notify_agent)
    bus.subscribe(InquiryCreated, welcome_inquirer)
    bus.subscribe(InquiryCreated, statistics_listener(cache))
