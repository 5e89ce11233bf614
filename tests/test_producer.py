from unittest import mock

import pika.exceptions
import pytest

import rabbitcase
from rabbitcase import producer
from rabbitcase import records
from rabbitcase.config import BrokerConfig, QueueSpec
from rabbitcase.errors import ConnectionError, DeclarationConflictError, SerializationError
from rabbitcase.transport import memory


def drain(broker, queue):

    session = memory.Session(broker)
    session.open()

    bodies = list()
    while True:
        delivery = session.receive(queue, timeout=0.01)
        if delivery is None:
            break
        bodies.append(delivery)
        session.ack(delivery.delivery_tag)

    session.close()
    return bodies


def test_publish(broker, settings):

    rabbitcase.publish('q1', {'id': 1, 'value': 'X'}, settings)

    deliveries = drain(broker, 'q1')

    assert len(deliveries) == 1
    assert records.decode(deliveries[0].body) == {'id': 1, 'value': 'X'}
    assert deliveries[0].routing_key == 'q1'
    assert deliveries[0].exchange == ''
    assert deliveries[0].content_type == 'application/json'


def test_publish_declares_queue(broker, settings):

    assert not broker.exists('fresh')
    rabbitcase.publish('fresh', {'id': 2}, settings)
    assert broker.depth('fresh') == 1


def test_publish_durable(broker, settings):

    rabbitcase.publish(QueueSpec('kept', durable=True), {'id': 3}, settings)
    assert broker.depth('kept') == 1


def test_declaration_conflict(broker, settings):

    existing = memory.Session(broker)
    existing.open()
    existing.declare(QueueSpec('q1', durable=False))

    with pytest.raises(DeclarationConflictError):
        rabbitcase.publish(QueueSpec('q1', durable=True), {'id': 1, 'value': 'X'}, settings)

    assert broker.depth('q1') == 0


def test_serialization_error_sends_nothing():

    session = mock.create_autospec(memory.Session, instance=True)

    with pytest.raises(SerializationError):
        rabbitcase.publish('q1', object(), session=session)

    session.open.assert_not_called()
    session.publish.assert_not_called()
    session.close.assert_called_once_with()


def test_empty_queue_name(settings):

    with pytest.raises(ValueError):
        rabbitcase.publish('', {'id': 1}, settings)


def test_unreachable_memory_broker(broker, settings):

    broker.available = False

    with pytest.raises(ConnectionError):
        rabbitcase.publish('q1', {'id': 1}, settings)


def test_unreachable_rabbitmq():

    failure = pika.exceptions.AMQPConnectionError('connection refused')

    with mock.patch('pika.BlockingConnection', side_effect=failure):
        with pytest.raises(ConnectionError) as caught:
            rabbitcase.publish('q1', {'id': 1}, BrokerConfig(host='192.0.2.1'))

    # Also an instance of the builtin, for callers that only know that one.
    assert isinstance(caught.value, OSError)
    assert caught.value.__cause__ is failure


def test_producer_declares_once(broker, settings):

    with producer.Producer(settings) as p:
        p.publish('q1', {'id': 1})
        p.publish('q1', {'id': 2})
        p.publish(QueueSpec('q2'), {'id': 3})

        assert sorted(p._declared) == ['q1', 'q2']

    assert broker.depth('q1') == 2
    assert broker.depth('q2') == 1


def test_producer_redeclares_after_close(broker, settings):

    spec = QueueSpec('private', exclusive=True)
    p = producer.Producer(settings)

    p.publish(spec, {'id': 1})
    assert broker.depth('private') == 1

    # Closing the session removes the exclusive queue; the next publish
    # reconnects and has to declare it again, or the message is dropped.

    p.close()
    assert not broker.exists('private')
    assert p._declared == {}

    p.publish(spec, {'id': 2})
    assert broker.depth('private') == 1
    assert p._declared == {'private': spec}

    p.close()


def test_main(broker, capsys):

    status = producer.main(['--transport', 'memory', '--queue', 'signals', '--linger', '0'])
    assert status == 0

    output = capsys.readouterr().out
    assert 'EXAMPLE 1 : WORK QUEUE : PRODUCER' in output
    assert 'Signal' in output
    assert 'signals' in output

    deliveries = drain(broker, 'signals')
    assert len(deliveries) == 1
    assert isinstance(records.decode(deliveries[0].body, records.Signal), records.Signal)


def test_main_failure(broker):

    broker.available = False

    status = producer.main(['--transport', 'memory', '--linger', '0'])
    assert status == 1


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
