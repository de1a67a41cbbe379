"""In-process event bus connecting ingestion, matchers and consumers."""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple, Union

from .events import EventType, Payload, PAYLOAD_TYPES

logger = logging.getLogger(__name__)

Handler = Callable[[Payload], None]


@dataclass(frozen=True)
class Subscription:
    """Token returned by ``subscribe`` and accepted by ``unsubscribe``."""
    
    topic: EventType
    subscription_id: int


class EventBus:
    """
    Synchronous publish/subscribe channel scoped to one process.
    
    Handlers for a topic run in subscription order and to completion before
    ``publish`` returns. A handler that raises is logged and skipped; the
    remaining handlers still receive the event. Handlers added while an event
    is being delivered only see later events.
    
    The bus is created once and injected into every component that needs it.
    
    Example:
        bus = EventBus()
        token = bus.subscribe(EventType.MATCH_FOUND, on_match)
        bus.publish(EventType.MATCH_FOUND, MatchFoundEvent(...))
        bus.unsubscribe(token)
    """
    
    def __init__(self):
        self._handlers: Dict[EventType, List[Tuple[int, Handler]]] = {
            topic: [] for topic in EventType
        }
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
    
    def subscribe(self, topic: Union[EventType, str], handler: Handler) -> Subscription:
        """
        Register a handler for a topic.
        
        Args:
            topic: Topic to listen on (enum member or its string value)
            handler: Callable invoked with the topic's payload
            
        Returns:
            Subscription token for ``unsubscribe``
            
        Raises:
            ValueError: If the topic is unknown
        """
        topic = EventType(topic)
        with self._lock:
            subscription_id = next(self._ids)
            self._handlers[topic].append((subscription_id, handler))
        
        logger.debug(f"Subscribed #{subscription_id} to {topic.value}")
        return Subscription(topic=topic, subscription_id=subscription_id)
    
    def unsubscribe(self, token: Subscription) -> bool:
        """
        Remove a previously registered handler.
        
        Returns:
            True if the handler was registered, False otherwise
        """
        with self._lock:
            handlers = self._handlers[token.topic]
            for i, (subscription_id, _) in enumerate(handlers):
                if subscription_id == token.subscription_id:
                    del handlers[i]
                    return True
        return False
    
    def publish(self, topic: Union[EventType, str], payload: Payload) -> int:
        """
        Deliver a payload to every current subscriber of a topic.
        
        Args:
            topic: Topic to publish on
            payload: Payload instance matching the topic
            
        Returns:
            Number of handlers that completed without raising
            
        Raises:
            ValueError: If the topic is unknown
            TypeError: If the payload type does not belong to the topic
        """
        topic = EventType(topic)
        expected = PAYLOAD_TYPES[topic]
        if not isinstance(payload, expected):
            raise TypeError(
                f"{topic.value} expects {expected.__name__}, "
                f"got {type(payload).__name__}"
            )
        
        # Snapshot so handlers added during delivery wait for the next event
        with self._lock:
            handlers = list(self._handlers[topic])
        
        delivered = 0
        for subscription_id, handler in handlers:
            try:
                handler(payload)
                delivered += 1
            except Exception as e:
                name = getattr(handler, "__qualname__", repr(handler))
                logger.error(
                    f"Handler #{subscription_id} ({name}) failed on {topic.value}: {e}",
                    exc_info=True,
                )
        
        return delivered
    
    def subscriber_count(self, topic: Union[EventType, str]) -> int:
        """Number of handlers currently registered for a topic."""
        with self._lock:
            return len(self._handlers[EventType(topic)])
