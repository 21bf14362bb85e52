"""
In-process publish/subscribe used for realtime change events and
auth events of the hosted store.

Topics are plain strings, e.g. "subscriptions:user_id=eq.<uuid>".
Listeners run synchronously in the publisher's thread; a failing
listener is logged and does not affect the others or the publisher.
"""
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


def subscriptions_topic(user_id: str) -> str:
    return f"subscriptions:user_id=eq.{user_id}"


def auth_topic(user_id: str) -> str:
    return f"auth:user_id=eq.{user_id}"


class ChannelHandle:
    """Registration of one listener; `unsubscribe()` may be called any number of times."""

    def __init__(self, feed: "ChangeFeed", topic: str, callback: Callable[..., Any]):
        self._feed = feed
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> bool:
        """Returns True only for the call that actually removed the listener."""
        return self._feed._remove(self)


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[ChannelHandle]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Callable[..., Any]) -> ChannelHandle:
        handle = ChannelHandle(self, topic, callback)
        with self._lock:
            self._listeners[topic].append(handle)
        return handle

    def _remove(self, handle: ChannelHandle) -> bool:
        with self._lock:
            if not handle.active:
                return False
            handle.active = False
            listeners = self._listeners.get(handle.topic, [])
            if handle in listeners:
                listeners.remove(handle)
            if not listeners:
                self._listeners.pop(handle.topic, None)
            return True

    def publish(self, topic: str, *args) -> int:
        """Deliver to every current listener of `topic`. Returns deliveries made."""
        with self._lock:
            targets = list(self._listeners.get(topic, []))

        delivered = 0
        for handle in targets:
            if not handle.active:
                continue
            try:
                handle.callback(*args)
                delivered += 1
            except Exception:
                logger.exception("Listener failed on topic %s", topic)
        return delivered

    def listener_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, []))
