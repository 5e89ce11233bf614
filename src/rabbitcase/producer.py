""" Publish domain records to a named queue. The :func:`publish` function
    is the one-shot form: connect, declare, send, disconnect. A
    :class:`Producer` keeps its session open across several publishes.

    Run as a program this module is the work-queue producer example: it
    publishes one fake record and exits.
"""

import argparse
import logging
import sys
import time

from . import config
from . import display
from . import records
from . import transport
from .config import QueueSpec
from .errors import MessagingError


logger = logging.getLogger(__name__)


class Producer:
    """ Publisher bound to one session. The session is opened lazily on the
        first :func:`publish`; use the producer as a context manager, or call
        :func:`close`, to release it.

        *settings* is a :class:`rabbitcase.config.BrokerConfig`; if omitted
        it is read from the environment. A pre-built *session* may be
        supplied instead, in which case *settings* is ignored.
    """

    def __init__(self, settings=None, session=None):

        if session is None:
            session = transport.session(settings)

        self.session = session
        self._declared = dict()


    def __enter__(self):
        return self


    def __exit__(self, *args):
        self.close()


    def close(self):

        # A later publish reopens the session, which may reach a broker that
        # no longer has the queues declared here.
        self._declared.clear()
        self.session.close()


    def declare(self, spec):
        """ Declare the queue described by *spec*. A given specification is
            only sent to the broker once while the session stays open.
        """

        if self._declared.get(spec.name) == spec:
            return spec.name

        self.session.open()
        name = self.session.declare(spec)
        self._declared[spec.name] = spec
        return name


    def publish(self, queue, record):
        """ Publish *record* to *queue*, which is either a queue name or a
            :class:`rabbitcase.config.QueueSpec`. A bare name is declared with
            default parameters: transient, shared, not auto-deleted.

            The record is encoded before any broker contact, so an encoding
            failure never opens a connection. Nothing is sent if the queue
            declaration is refused.
        """

        if isinstance(queue, QueueSpec):
            spec = queue
        else:
            spec = QueueSpec(queue)

        body = records.encode(record)

        self.declare(spec)
        self.session.publish(
            transport.DEFAULT_EXCHANGE,
            spec.name,
            body,
            content_type=records.content_type,
            persistent=spec.durable,
        )

        logger.debug('published %d bytes to %r', len(body), spec.name)


# end of class Producer



def publish(queue, record, settings=None, session=None):
    """ Publish a single *record* to *queue* and disconnect. Raises
        :class:`rabbitcase.errors.SerializationError`,
        :class:`rabbitcase.errors.ConnectionError`, or
        :class:`rabbitcase.errors.DeclarationConflictError` on failure.
    """

    with Producer(settings, session) as producer:
        producer.publish(queue, record)



def main(argv=None):

    parser = argparse.ArgumentParser(description='Publish one generated record to a queue, then exit.')
    parser.add_argument('--queue', default='example2_signals_queue', help='destination queue name')
    parser.add_argument('--kind', choices=('trade', 'signal'), default='signal', help='kind of record to generate')
    parser.add_argument('--linger', type=float, default=3.0, help='seconds to wait before exiting')
    config.add_arguments(parser)

    arguments = parser.parse_args(argv)

    if arguments.verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    settings = config.from_arguments(arguments)
    spec = QueueSpec(arguments.queue, durable=arguments.durable)

    print('\nEXAMPLE 1 : WORK QUEUE : PRODUCER')

    record = records.Transmitter().transmit(arguments.kind)

    try:
        publish(spec, record, settings)
    except MessagingError as e:
        logger.error('publish failed: %s', e)
        return 1

    info = display.DisplayInfo.of(record)
    info.exchange(transport.DEFAULT_EXCHANGE)
    info.queue(spec.name)
    info.routing_key(spec.name)
    info.virtual_host(settings.virtual_host)
    info.display('cyan')

    if arguments.linger > 0:
        time.sleep(arguments.linger)

    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
