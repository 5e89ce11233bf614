""" Exercise the pika-backed session against a mocked connection. No
    broker is required.
"""

from unittest import mock

import pika
import pika.exceptions
import pytest

from rabbitcase import transport
from rabbitcase.config import BrokerConfig, QueueSpec
from rabbitcase.errors import ConnectionError, DeclarationConflictError, MessagingError
from rabbitcase.transport import rabbitmq


@pytest.fixture
def connection():

    connection = mock.MagicMock(name='BlockingConnection')
    connection.is_open = True
    connection.channel.return_value.is_open = True

    with mock.patch('pika.BlockingConnection', return_value=connection) as factory:
        connection.factory = factory
        yield connection


@pytest.fixture
def session(connection):

    session = rabbitmq.Session(BrokerConfig(host='mq', virtual_host='markets'))
    session.open()
    yield session


def test_backend_selection():

    assert isinstance(transport.session(BrokerConfig()), rabbitmq.Session)

    with pytest.raises(ValueError):
        transport.session(BrokerConfig(transport='carrier-pigeon'))


def test_open(connection, session):

    parameters = connection.factory.call_args.args[0]

    assert parameters.host == 'mq'
    assert parameters.virtual_host == 'markets'
    assert session.is_open

    session.open()
    assert connection.factory.call_count == 1


def test_declare(connection, session):

    channel = connection.channel.return_value
    channel.queue_declare.return_value.method.queue = 'q1'

    assert session.declare(QueueSpec('q1', durable=True, arguments={'x-max-length': 5})) == 'q1'

    channel.queue_declare.assert_called_once_with(
        queue='q1',
        durable=True,
        exclusive=False,
        auto_delete=False,
        arguments={'x-max-length': 5},
    )


@pytest.mark.parametrize('reply_code', [405, 406])
def test_declare_conflict(connection, session, reply_code):

    channel = connection.channel.return_value
    refusal = pika.exceptions.ChannelClosedByBroker(reply_code, 'inequivalent arg')
    channel.queue_declare.side_effect = refusal

    with pytest.raises(DeclarationConflictError) as caught:
        session.declare(QueueSpec('q1', durable=True))

    assert caught.value.queue == 'q1'
    assert caught.value.__cause__ is refusal


def test_declare_reopens_closed_channel(connection, session):

    first = connection.channel.return_value
    first.is_open = False

    second = mock.MagicMock(name='channel')
    second.is_open = True
    second.queue_declare.return_value.method.queue = 'q1'
    connection.channel.return_value = second

    session.declare(QueueSpec('q1'))
    second.queue_declare.assert_called_once()


def test_other_channel_error(connection, session):

    channel = connection.channel.return_value
    channel.queue_declare.side_effect = pika.exceptions.ChannelClosedByBroker(404, 'NOT_FOUND')

    with pytest.raises(MessagingError) as caught:
        session.declare(QueueSpec('q1'))

    assert not isinstance(caught.value, DeclarationConflictError)


def test_publish(connection, session):

    channel = connection.channel.return_value
    session.publish('', 'q1', b'{"id":1}', content_type='application/json', persistent=True)

    kwargs = channel.basic_publish.call_args.kwargs

    assert kwargs['exchange'] == ''
    assert kwargs['routing_key'] == 'q1'
    assert kwargs['body'] == b'{"id":1}'
    assert kwargs['properties'].content_type == 'application/json'
    assert kwargs['properties'].delivery_mode == pika.DeliveryMode.Persistent.value


def test_publish_connection_lost(connection, session):

    channel = connection.channel.return_value
    channel.basic_publish.side_effect = pika.exceptions.StreamLostError('reset by peer')

    with pytest.raises(ConnectionError) as caught:
        session.publish('', 'q1', b'body')

    assert caught.value.queue == 'q1'


def test_not_connected():

    session = rabbitmq.Session(BrokerConfig())

    with pytest.raises(ConnectionError):
        session.publish('', 'q1', b'body')


def test_receive(connection, session):

    channel = connection.channel.return_value

    method = mock.Mock(delivery_tag=7, exchange='', routing_key='q1', redelivered=False)
    properties = pika.BasicProperties(content_type='application/json')
    channel.consume.return_value = iter([(method, properties, b'{}'), (None, None, None)])

    delivery = session.receive('q1', timeout=0.5)

    channel.consume.assert_called_once_with('q1', auto_ack=False, inactivity_timeout=0.5)
    assert delivery.body == b'{}'
    assert delivery.delivery_tag == 7
    assert delivery.queue == 'q1'
    assert delivery.content_type == 'application/json'

    assert session.receive('q1', timeout=0.5) is None
    assert channel.consume.call_count == 1


def test_settle_one_at_a_time(connection, session):

    channel = connection.channel.return_value

    session.qos(1)
    session.ack(3)
    session.nack(4, requeue=True)

    channel.basic_qos.assert_called_once_with(prefetch_count=1)
    channel.basic_ack.assert_called_once_with(delivery_tag=3, multiple=False)
    channel.basic_nack.assert_called_once_with(delivery_tag=4, multiple=False, requeue=True)


def test_cancel_and_close(connection, session):

    channel = connection.channel.return_value
    channel.cancel.return_value = 0
    channel.consume.return_value = iter([(None, None, None)])

    session.cancel()
    channel.cancel.assert_not_called()

    session.receive('q1', timeout=0.1)
    session.cancel()
    channel.cancel.assert_called_once_with()

    session.close()
    connection.close.assert_called_once_with()
    assert not session.is_open


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
