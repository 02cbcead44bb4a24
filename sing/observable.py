"""Fan-out of emitted items to bounded, lossy subscriber queues."""

import queue
import threading
from typing import Any

_POLL_INTERVAL = 0.05


class Subscriber:
    """A bounded queue of items plus a done event; items that do not fit are dropped."""

    def __init__(self, size: int) -> None:
        self._buffer: queue.Queue = queue.Queue(maxsize=max(size, 1))
        self._done = threading.Event()

    def emit(self, item: Any) -> None:
        """Queue ``item`` unless closed or full."""
        if self._done.is_set():
            return
        try:
            self._buffer.put_nowait(item)
        except queue.Full:
            pass

    def close(self) -> None:
        """Mark the subscriber done; raise ``ValueError`` if already closed."""
        if self._done.is_set():
            raise ValueError("subscriber already closed")
        self._done.set()

    def subscription(self) -> tuple[queue.Queue, threading.Event]:
        """Return the item queue and the event set when the subscriber closes."""
        return self._buffer, self._done


class Observer:
    """Forwards everything emitted into one subscriber to every listener."""

    def __init__(self, subscriber: Subscriber, listener_buffer_size: int) -> None:
        self._subscriber = subscriber
        self._listener_size = listener_buffer_size
        self._listeners: dict[queue.Queue, Subscriber] = {}
        self._lock = threading.Lock()
        self._done = False
        self._thread = threading.Thread(target=self._process, daemon=True)
        self._thread.start()

    def _process(self) -> None:
        buffer, done = self._subscriber.subscription()
        while not done.is_set():
            try:
                item = buffer.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            with self._lock:
                for listener in self._listeners.values():
                    listener.emit(item)
        with self._lock:
            for listener in self._listeners.values():
                try:
                    listener.close()
                except ValueError:
                    pass

    def subscribe(self) -> tuple[queue.Queue, threading.Event]:
        """Add a listener and return its queue and done event."""
        with self._lock:
            if self._done:
                raise ValueError("observer already closed")
            listener = Subscriber(self._listener_size)
            subscription, done = listener.subscription()
            self._listeners[subscription] = listener
            return subscription, done

    def unsubscribe(self, subscription: queue.Queue) -> None:
        """Remove and close the listener owning ``subscription``, if any."""
        with self._lock:
            listener = self._listeners.pop(subscription, None)
        if listener is not None:
            try:
                listener.close()
            except ValueError:
                pass

    def emit(self, item: Any) -> None:
        """Send ``item`` to every listener."""
        self._subscriber.emit(item)

    def close(self) -> None:
        """Stop forwarding; raise ``ValueError`` if already closed."""
        with self._lock:
            if self._done:
                raise ValueError("observer already closed")
            self._subscriber.close()
            self._done = True