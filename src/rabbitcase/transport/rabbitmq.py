"""RabbitMQ session backed by a pika blocking connection."""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, Optional

import pika
import pika.exceptions

from ..config import BrokerConfig, QueueSpec
from ..errors import ConnectionError, DeclarationConflictError, MessagingError
from . import base


logger = logging.getLogger(__name__)

# AMQP reply codes for a refused queue.declare.
_RESOURCE_LOCKED = 405
_PRECONDITION_FAILED = 406


@contextlib.contextmanager
def _translated(queue: Optional[str] = None) -> Iterator[None]:
    """Re-raise pika exceptions as rabbitcase exceptions."""

    try:
        yield
    except pika.exceptions.AMQPConnectionError as e:
        raise ConnectionError(f"broker connection failed: {e!r}", queue=queue) from e
    except pika.exceptions.ChannelClosedByBroker as e:
        if e.reply_code in (_RESOURCE_LOCKED, _PRECONDITION_FAILED):
            raise DeclarationConflictError(e.reply_text, queue=queue) from e
        raise MessagingError(f"channel closed by broker: {e.reply_code} {e.reply_text}", queue=queue) from e
    except pika.exceptions.AMQPError as e:
        raise MessagingError(f"AMQP error: {e!r}", queue=queue) from e


class Session(base.Session):
    """Session over a single :class:`pika.BlockingConnection` and channel."""

    def __init__(self, config: BrokerConfig):
        self.config = config

        self._connection = None
        self._channel = None
        self._consuming = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None and self._connection.is_open

    def open(self) -> None:
        if self.is_open:
            return

        config = self.config
        logger.debug("connecting to %s:%d vhost %r", config.host, config.port, config.virtual_host)

        with _translated():
            self._connection = pika.BlockingConnection(config.parameters())
            self._channel = self._connection.channel()

    def close(self) -> None:
        connection = self._connection
        self._connection = None
        self._channel = None
        self._consuming = None

        if connection is None or not connection.is_open:
            return

        logger.debug("closing connection to %s:%d", self.config.host, self.config.port)
        with _translated():
            connection.close()

    def _require_channel(self):
        if self._channel is None or not self._channel.is_open:
            if not self.is_open:
                raise ConnectionError(
                    f"not connected to AMQP broker at {self.config.host}:{self.config.port}"
                )
            # The broker closes the channel on a refused declaration.
            with _translated():
                self._channel = self._connection.channel()
        return self._channel

    def declare(self, spec: QueueSpec) -> str:
        channel = self._require_channel()
        logger.debug("declaring queue %r", spec.name)

        with _translated(spec.name):
            result = channel.queue_declare(
                queue=spec.name,
                durable=spec.durable,
                exclusive=spec.exclusive,
                auto_delete=spec.auto_delete,
                arguments=dict(spec.arguments),
            )
        return result.method.queue

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        content_type: Optional[str] = None,
        persistent: bool = False,
    ) -> None:
        channel = self._require_channel()

        if persistent:
            delivery_mode = pika.DeliveryMode.Persistent.value
        else:
            delivery_mode = pika.DeliveryMode.Transient.value

        properties = pika.BasicProperties(content_type=content_type, delivery_mode=delivery_mode)

        with _translated(routing_key):
            channel.basic_publish(
                exchange=exchange,
                routing_key=routing_key,
                body=body,
                properties=properties,
            )

    def qos(self, prefetch_count: int) -> None:
        channel = self._require_channel()
        with _translated():
            channel.basic_qos(prefetch_count=prefetch_count)

    def receive(self, queue: str, timeout: Optional[float] = None) -> Optional[base.Delivery]:
        channel = self._require_channel()

        if self._consuming is None:
            self._consuming = channel.consume(queue, auto_ack=False, inactivity_timeout=timeout)

        with _translated(queue):
            method, properties, body = next(self._consuming)

        if method is None:
            return None

        return base.Delivery(
            body=body,
            delivery_tag=method.delivery_tag,
            exchange=method.exchange,
            routing_key=method.routing_key,
            queue=queue,
            redelivered=bool(method.redelivered),
            content_type=properties.content_type,
        )

    def cancel(self) -> None:
        if self._consuming is None:
            return

        self._consuming = None
        if self._channel is None or not self._channel.is_open:
            return

        with _translated():
            requeued = self._channel.cancel()
        logger.debug("consumer cancelled, %d pending message(s) requeued", requeued)

    def ack(self, delivery_tag: int) -> None:
        channel = self._require_channel()
        with _translated():
            channel.basic_ack(delivery_tag=delivery_tag, multiple=False)

    def nack(self, delivery_tag: int, requeue: bool) -> None:
        channel = self._require_channel()
        with _translated():
            channel.basic_nack(delivery_tag=delivery_tag, multiple=False, requeue=requeue)
