"""FIFO buffer for client messages that arrive before the upstream leg is open."""

import logging
from collections import deque
from collections.abc import Awaitable, Callable

from app.services.live_relay.channel import Frame

logger = logging.getLogger(__name__)


class PendingMessageQueue:
    """Buffers raw payloads until the upstream leg reaches OPEN.

    ``drain()`` runs exactly once. It forwards every buffered payload in
    insertion order; payloads enqueued while draining (the send callback may
    yield to the event loop) are forwarded in the same pass, so nothing sent
    later can overtake an earlier buffered payload. Once drained the queue
    stops buffering for good and callers forward directly.

    Usage::

        queue = PendingMessageQueue()
        if queue.buffering:
            queue.enqueue(frame)
        ...
        await queue.drain(upstream.send)
    """

    def __init__(self) -> None:
        self._items: deque[Frame] = deque()
        self._drained = False
        self.failures: list[Exception] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def buffering(self) -> bool:
        """True until drain() has completed."""
        return not self._drained

    def enqueue(self, payload: Frame) -> None:
        """Append a payload to the tail of the queue.

        Raises:
            RuntimeError: If the queue has already been drained.
        """
        if self._drained:
            raise RuntimeError("PendingMessageQueue already drained; forward directly")
        self._items.append(payload)

    async def drain(self, send: Callable[[Frame], Awaitable[None]]) -> int:
        """Forward all buffered payloads in FIFO order, then stop buffering.

        A failure for one payload is recorded in ``failures`` and draining
        continues with the next one.

        Returns:
            Number of payloads forwarded successfully.

        Raises:
            RuntimeError: If called a second time.
        """
        if self._drained:
            raise RuntimeError("PendingMessageQueue can only be drained once")

        if self._items:
            logger.info("Draining %d pending message(s)", len(self._items))

        delivered = 0
        while self._items:
            payload = self._items.popleft()
            try:
                await send(payload)
                delivered += 1
            except Exception as exc:
                logger.error("Failed to forward pending message: %s", exc)
                self.failures.append(exc)

        self._drained = True
        return delivered
