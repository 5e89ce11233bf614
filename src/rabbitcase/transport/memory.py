"""In-process broker with AMQP queue semantics.

This backend lets producers and consumers in the same Python process talk to
each other without a RabbitMQ server: queues are declared with the same
conflict rules, only the default exchange routes, delivery tags are
per-session, and unsettled deliveries return to the head of their queue
with the redelivered flag set.
"""

from __future__ import annotations

import collections
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Tuple

from ..config import BrokerConfig, QueueSpec
from ..errors import ConnectionError, DeclarationConflictError, MessagingError
from . import base


logger = logging.getLogger(__name__)


@dataclass
class _Message:
    body: bytes
    exchange: str
    routing_key: str
    content_type: Optional[str] = None
    persistent: bool = False
    redelivered: bool = False


class _Queue:
    def __init__(self, spec: QueueSpec, owner: Optional[base.Session]):
        self.spec = spec
        self.owner = owner
        self.consumers = 0
        self.messages: Deque[_Message] = collections.deque()


class Broker:
    """Queues and their messages, shared by any number of sessions.

    Setting *available* to False makes new sessions fail to open, the way
    an unreachable RabbitMQ server would.
    """

    def __init__(self):
        self.available = True
        self._condition = threading.Condition()
        self._queues: Dict[str, _Queue] = {}

    def declare(self, spec: QueueSpec, owner: base.Session) -> str:
        with self._condition:
            queue = self._queues.get(spec.name)
            if queue is None:
                exclusive_owner = owner if spec.exclusive else None
                self._queues[spec.name] = _Queue(spec, exclusive_owner)
                logger.debug("queue %r created", spec.name)
                return spec.name

            if queue.owner is not None and queue.owner is not owner:
                raise DeclarationConflictError(
                    "RESOURCE_LOCKED - queue is exclusive to another connection", queue=spec.name
                )

            if not queue.spec.matches(spec):
                raise DeclarationConflictError(
                    f"PRECONDITION_FAILED - inequivalent arguments for queue {spec.name!r}",
                    queue=spec.name,
                )

            return spec.name

    def exists(self, name: str) -> bool:
        with self._condition:
            return name in self._queues

    def depth(self, name: str) -> int:
        """Number of messages ready for delivery in queue *name*."""
        with self._condition:
            return len(self._queues[name].messages)

    def publish(self, exchange: str, routing_key: str, message: _Message) -> None:
        if exchange != base.DEFAULT_EXCHANGE:
            raise MessagingError(f"NOT_FOUND - no exchange {exchange!r}", queue=routing_key)

        with self._condition:
            queue = self._queues.get(routing_key)
            if queue is None:
                # Unroutable messages are dropped, as with a non-mandatory publish.
                logger.debug("dropping unroutable message for %r", routing_key)
                return
            queue.messages.append(message)
            self._condition.notify_all()

    def take(self, name: str, timeout: Optional[float]) -> Optional[_Message]:
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._condition:
            while True:
                queue = self._queues.get(name)
                if queue is None:
                    raise MessagingError(f"NOT_FOUND - no queue {name!r}", queue=name)
                if queue.messages:
                    return queue.messages.popleft()

                if deadline is None:
                    self._condition.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._condition.wait(remaining)

    def wait(self, timeout: Optional[float]) -> None:
        """Block until the broker state changes, or *timeout* expires."""
        with self._condition:
            self._condition.wait(timeout)

    def requeue(self, name: str, messages) -> None:
        """Return *messages* to the head of queue *name*, in order."""
        with self._condition:
            queue = self._queues.get(name)
            if queue is None:
                return
            for message in reversed(list(messages)):
                message.redelivered = True
                queue.messages.appendleft(message)
            self._condition.notify_all()

    def attach(self, name: str) -> None:
        with self._condition:
            queue = self._queues.get(name)
            if queue is None:
                raise MessagingError(f"NOT_FOUND - no queue {name!r}", queue=name)
            queue.consumers += 1

    def detach(self, name: str) -> None:
        with self._condition:
            queue = self._queues.get(name)
            if queue is None:
                return
            queue.consumers -= 1
            if queue.spec.auto_delete and queue.consumers <= 0:
                del self._queues[name]
                logger.debug("auto-delete queue %r removed", name)

    def release(self, owner: base.Session) -> None:
        """Delete every exclusive queue belonging to *owner*."""
        with self._condition:
            for name, queue in list(self._queues.items()):
                if queue.owner is owner:
                    del self._queues[name]
                    logger.debug("exclusive queue %r removed", name)


class Session(base.Session):
    """Session against an in-process :class:`Broker`."""

    def __init__(self, broker: Broker, config: Optional[BrokerConfig] = None):
        self.broker = broker
        self.config = config

        self._open = False
        self._prefetch = 0
        self._consuming: Optional[str] = None
        self._tags = itertools.count(1)
        self._unacked: Dict[int, Tuple[str, _Message]] = {}
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def unacked(self) -> int:
        """Number of deliveries handed out and not yet settled."""
        with self._lock:
            return len(self._unacked)

    def open(self) -> None:
        if self._open:
            return
        if not self.broker.available:
            raise ConnectionError("in-process broker is unavailable")
        self._open = True

    def close(self) -> None:
        if not self._open:
            return

        self.cancel()

        with self._lock:
            unacked = sorted(self._unacked.items())
            self._unacked.clear()

        by_queue: Dict[str, list] = collections.defaultdict(list)
        for _tag, (queue, message) in unacked:
            by_queue[queue].append(message)

        for queue, messages in by_queue.items():
            self.broker.requeue(queue, messages)

        self.broker.release(self)
        self._open = False

    def _require_open(self) -> None:
        if not self._open:
            raise ConnectionError("session is not open")

    def declare(self, spec: QueueSpec) -> str:
        self._require_open()
        return self.broker.declare(spec, self)

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        content_type: Optional[str] = None,
        persistent: bool = False,
    ) -> None:
        self._require_open()
        message = _Message(
            body=bytes(body),
            exchange=exchange,
            routing_key=routing_key,
            content_type=content_type,
            persistent=persistent,
        )
        self.broker.publish(exchange, routing_key, message)

    def qos(self, prefetch_count: int) -> None:
        self._require_open()
        self._prefetch = prefetch_count

    def receive(self, queue: str, timeout: Optional[float] = None) -> Optional[base.Delivery]:
        self._require_open()

        if self._consuming is None:
            self.broker.attach(queue)
            self._consuming = queue

        if self._prefetch and self.unacked >= self._prefetch:
            # The broker withholds further deliveries until one is settled.
            self.broker.wait(timeout)
            return None

        message = self.broker.take(queue, timeout)
        if message is None:
            return None

        with self._lock:
            tag = next(self._tags)
            self._unacked[tag] = (queue, message)

        return base.Delivery(
            body=message.body,
            delivery_tag=tag,
            exchange=message.exchange,
            routing_key=message.routing_key,
            queue=queue,
            redelivered=message.redelivered,
            content_type=message.content_type,
        )

    def cancel(self) -> None:
        queue = self._consuming
        if queue is None:
            return
        self._consuming = None
        self.broker.detach(queue)

    def _settle(self, delivery_tag: int) -> Tuple[str, _Message]:
        self._require_open()
        with self._lock:
            try:
                return self._unacked.pop(delivery_tag)
            except KeyError:
                raise MessagingError(
                    f"PRECONDITION_FAILED - unknown delivery tag {delivery_tag}"
                ) from None

    def ack(self, delivery_tag: int) -> None:
        self._settle(delivery_tag)

    def nack(self, delivery_tag: int, requeue: bool) -> None:
        queue, message = self._settle(delivery_tag)
        if requeue:
            self.broker.requeue(queue, [message])


_broker = Broker()
_broker_lock = threading.Lock()


def broker() -> Broker:
    """Return the process-wide default :class:`Broker`."""
    with _broker_lock:
        return _broker


def reset() -> Broker:
    """Discard every queue by replacing the default :class:`Broker`."""
    global _broker
    with _broker_lock:
        _broker = Broker()
        return _broker
