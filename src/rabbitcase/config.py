""" Connection and queue declaration parameters. Nothing here is global:
    a :class:`BrokerConfig` is built once, either explicitly or from the
    environment, and handed to each producer or consumer that needs it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import pika


_ENVIRONMENT_PREFIX = 'RABBITCASE_'

default_host = 'localhost'
default_port = 5672
default_username = 'guest'
default_password = 'guest'
default_virtual_host = '/'
default_transport = 'rabbitmq'


@dataclass(frozen=True)
class BrokerConfig:
    """ Everything needed to reach a broker. The *transport* selects the
        session backend; see :func:`rabbitcase.transport.session`.
    """

    host: str = default_host
    port: int = default_port
    username: str = default_username
    password: str = default_password
    virtual_host: str = default_virtual_host
    heartbeat: int = 600
    blocked_connection_timeout: float = 300
    connection_attempts: int = 1
    transport: str = default_transport

    @classmethod
    def from_environment(cls, environ: Optional[Dict[str, str]] = None) -> BrokerConfig:
        """ Build a configuration from RABBITCASE_AMQP_* variables, falling
            back to the defaults for anything unset.
        """

        if environ is None:
            environ = os.environ

        def lookup(name, default):
            return environ.get(_ENVIRONMENT_PREFIX + name, default)

        return cls(
            host=lookup('AMQP_HOST', default_host),
            port=int(lookup('AMQP_PORT', default_port)),
            username=lookup('AMQP_USER', default_username),
            password=lookup('AMQP_PASSWORD', default_password),
            virtual_host=lookup('AMQP_VHOST', default_virtual_host),
            transport=lookup('TRANSPORT', default_transport),
        )

    def override(self, **changes: Any) -> BrokerConfig:
        """ Return a copy with every non-None keyword applied.
        """

        changes = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **changes)

    def parameters(self) -> pika.ConnectionParameters:
        credentials = pika.PlainCredentials(self.username, self.password)
        return pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            virtual_host=self.virtual_host,
            credentials=credentials,
            heartbeat=self.heartbeat,
            blocked_connection_timeout=self.blocked_connection_timeout,
            connection_attempts=self.connection_attempts,
        )


@dataclass(frozen=True)
class QueueSpec:
    """ Declaration parameters for a single queue. Declaring the same
        specification twice is a no-op; declaring a different specification
        for an existing queue name is refused by the broker.
    """

    name: str
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError('queue name cannot be empty')

    def matches(self, other: QueueSpec) -> bool:
        """ True if *other* could redeclare this queue without conflict.
        """

        return (
            self.durable == other.durable
            and self.exclusive == other.exclusive
            and self.auto_delete == other.auto_delete
            and dict(self.arguments) == dict(other.arguments)
        )



def add_arguments(parser):
    """ Add the broker connection options shared by the command-line
        programs to an :class:`argparse.ArgumentParser`.
    """

    group = parser.add_argument_group('broker')
    group.add_argument('--host', help='broker host name (default: $RABBITCASE_AMQP_HOST or localhost)')
    group.add_argument('--port', type=int, help='broker port (default: 5672)')
    group.add_argument('--user', dest='username', help='user name (default: guest)')
    group.add_argument('--password', help='password (default: guest)')
    group.add_argument('--vhost', dest='virtual_host', help="virtual host (default: '/')")
    group.add_argument('--transport', choices=('rabbitmq', 'memory'), help='session backend (default: rabbitmq)')
    group.add_argument('--durable', action='store_true', help='declare the queue as durable')
    parser.add_argument('-v', '--verbose', action='store_true', help='log at DEBUG level')


def from_arguments(arguments, environ=None):
    """ Combine the environment with parsed command-line *arguments*; the
        command line wins wherever both are set.
    """

    config = BrokerConfig.from_environment(environ)

    return config.override(
        host=arguments.host,
        port=arguments.port,
        username=arguments.username,
        password=arguments.password,
        virtual_host=arguments.virtual_host,
        transport=arguments.transport,
    )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
