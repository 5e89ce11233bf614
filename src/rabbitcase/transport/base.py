"""Transport interface.

This is the (small) contract every session backend follows. Producers and
consumers only ever talk to a :class:`Session`, never to the broker client
library directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..config import QueueSpec


DEFAULT_EXCHANGE = ""


@dataclass(frozen=True)
class Delivery:
    """A message handed to a consumer, plus the metadata needed to settle it."""

    body: bytes
    delivery_tag: int
    exchange: str = DEFAULT_EXCHANGE
    routing_key: str = ""
    queue: str = ""
    redelivered: bool = False
    content_type: Optional[str] = None


class Session(ABC):
    """One connection and one channel, owned by a single component.

    Every method may raise :class:`rabbitcase.errors.ConnectionError` if the
    broker is unreachable or the connection is lost.
    """

    @abstractmethod
    def open(self) -> None:
        """Establish the connection and channel."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the channel and connection. Unsettled deliveries
        return to their queues."""

    @abstractmethod
    def declare(self, spec: QueueSpec) -> str:
        """Declare the queue if absent and return its name. Raises
        :class:`rabbitcase.errors.DeclarationConflictError` if the queue
        exists with different parameters."""

    @abstractmethod
    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        content_type: Optional[str] = None,
        persistent: bool = False,
    ) -> None:
        """Send *body* to *exchange*; the empty exchange routes directly to
        the queue named by *routing_key*."""

    @abstractmethod
    def qos(self, prefetch_count: int) -> None:
        """Limit the number of unsettled deliveries held by this session."""

    @abstractmethod
    def receive(self, queue: str, timeout: Optional[float] = None) -> Optional[Delivery]:
        """Return the next delivery from *queue*, or None if nothing
        arrived within *timeout* seconds. The first call starts consuming
        with explicit acknowledgement."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop consuming. Deliveries received but not yet handed out are
        returned to the broker."""

    @abstractmethod
    def ack(self, delivery_tag: int) -> None:
        """Acknowledge exactly one delivery (``multiple=False``)."""

    @abstractmethod
    def nack(self, delivery_tag: int, requeue: bool) -> None:
        """Reject exactly one delivery, optionally returning it to its
        queue."""

    @property
    def is_open(self) -> bool:
        """Whether the session is currently connected."""
        return False
