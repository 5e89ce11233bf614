"""Transport layer implementations."""

from __future__ import annotations

from typing import Optional

from ..config import BrokerConfig
from .base import DEFAULT_EXCHANGE, Delivery, Session


def session(config: Optional[BrokerConfig] = None) -> Session:
    """Return an unopened :class:`Session` for the backend named by
    *config.transport*; 'rabbitmq' uses pika, 'memory' the in-process
    broker."""

    if config is None:
        config = BrokerConfig.from_environment()

    backend = config.transport

    if backend == "rabbitmq":
        from . import rabbitmq
        return rabbitmq.Session(config)

    if backend == "memory":
        from . import memory
        return memory.Session(memory.broker(), config)

    raise ValueError(f"unknown transport backend: {backend!r}")
