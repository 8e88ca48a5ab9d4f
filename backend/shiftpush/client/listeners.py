"""Subscribe/unsubscribe registry for notification events."""
import inspect
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class Subscription:
    """Handle returned by ``ListenerRegistry.subscribe``.

    Calling it (or ``remove()``) detaches the handler. Safe to call more
    than once.
    """

    def __init__(self, registry: "ListenerRegistry", handler: Handler):
        self._registry = registry
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def remove(self):
        if not self._active:
            return
        self._active = False
        self._registry._discard(self)

    __call__ = remove


class ListenerRegistry:
    """Delivers events to subscribed handlers in subscription order."""

    def __init__(self, name: str):
        self.name = name
        self._subscriptions: List[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: Handler) -> Subscription:
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        return subscription

    def _discard(self, subscription: Subscription):
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def clear(self):
        for subscription in list(self._subscriptions):
            subscription.remove()

    async def emit(self, event: Any) -> int:
        """Deliver an event; returns how many handlers ran without error.

        A failing handler is logged and does not stop delivery to the others.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            try:
                result = subscription._handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(f"{self.name} listener failed")
        return delivered
