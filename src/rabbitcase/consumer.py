""" Subscribe to a queue and settle each delivery individually. The
    :class:`Consumer` runs a pull loop on the calling thread: receive one
    delivery, decode it, hand it to the handler, ack or nack it, repeat.
    Exactly one delivery is in flight at any time.

    Run as a program this module is the one-way messaging consumer example:
    it displays every trade it receives and acknowledges it.
"""

import argparse
import enum
import logging
import signal
import sys
import threading
from typing import Any

from . import config
from . import display
from . import records
from . import transport
from .config import QueueSpec
from .errors import HandlerError, MessagingError, SerializationError


logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    """ A handler's verdict on one delivery.
    """

    ACK = 'ack'
    NACK = 'nack'
    REQUEUE = 'requeue'


class Consumer:
    """ Receive loop for a single queue. The *handler* is invoked as
        ``handler(record, delivery)`` for each delivery whose body decodes
        as *type* (see :func:`rabbitcase.records.decode`); it returns an
        :class:`Outcome`, where None is equivalent to :attr:`Outcome.ACK`.

        A delivery that fails to decode is never shown to the handler; it
        is rejected without requeue. A delivery whose handler raises is
        rejected, and requeued only if *requeue_failed* is set and the
        broker has not already redelivered it once. A return value that is
        not an Outcome is treated as a rejection without requeue. Every such
        failure is logged and passed to *on_error*, if provided, and the loop
        carries on with the next delivery; an exception raised by *on_error*
        itself is logged and does not stop the loop.

        The loop runs until :func:`cancel` is called, or until the optional
        *cancel* event is set. Cancellation is observed between deliveries,
        at least every *poll_interval* seconds; a delivery being handled
        always runs to completion.
    """

    prefetch = 1

    def __init__(self, queue, handler, settings=None, session=None,
                 type=Any, requeue_failed=True, on_error=None,
                 poll_interval=0.5, cancel=None):

        if isinstance(queue, QueueSpec):
            spec = queue
        else:
            spec = QueueSpec(queue)

        if session is None:
            session = transport.session(settings)

        if cancel is None:
            cancel = threading.Event()

        self.spec = spec
        self.handler = handler
        self.session = session
        self.type = type
        self.requeue_failed = requeue_failed
        self.on_error = on_error
        self.poll_interval = poll_interval

        self._cancelled = cancel


    @property
    def cancelled(self):
        return self._cancelled.is_set()


    def cancel(self):
        """ Stop the loop before its next receive.
        """

        self._cancelled.set()


    def run(self):
        """ Connect, declare the queue, and process deliveries until
            cancelled. Connection failures and declaration conflicts are
            raised to the caller; per-message failures are not.
        """

        session = self.session
        session.open()

        try:
            queue = session.declare(self.spec)
            session.qos(self.prefetch)

            while not self.cancelled:
                delivery = session.receive(queue, self.poll_interval)
                if delivery is None:
                    continue
                self.handle(delivery)

            logger.info('consumer on %r cancelled', queue)

        finally:
            self._shutdown()


    def _shutdown(self):

        try:
            self.session.cancel()
        finally:
            self.session.close()


    def handle(self, delivery):
        """ Decode, dispatch and settle a single *delivery*. Returns the
            :class:`Outcome` that was applied.
        """

        session = self.session
        tag = delivery.delivery_tag

        try:
            record = records.decode(delivery.body, self.type)
        except SerializationError as e:
            e.queue = delivery.queue
            e.delivery_tag = tag
            logger.error('rejecting undecodable message: %s', e)
            session.nack(tag, requeue=False)
            self._report(e)
            return Outcome.NACK

        try:
            outcome = self.handler(record, delivery)
        except Exception as e:
            requeue = self.requeue_failed and not delivery.redelivered
            error = HandlerError('handler raised ' + type(e).__name__ + ': ' + str(e), e,
                                 queue=delivery.queue, delivery_tag=tag)
            logger.error('%s; requeue=%s', error, requeue, exc_info=e)

            session.nack(tag, requeue=requeue)
            self._report(error)

            if requeue:
                return Outcome.REQUEUE
            return Outcome.NACK

        if outcome is None:
            outcome = Outcome.ACK

        if outcome is Outcome.ACK:
            session.ack(tag)
        elif outcome is Outcome.NACK:
            session.nack(tag, requeue=False)
        elif outcome is Outcome.REQUEUE:
            session.nack(tag, requeue=True)
        else:
            # An unknown verdict is a rejection, the same as a handler failure
            # that is not requeued.
            cause = TypeError('handler returned ' + repr(outcome) + ', expected an Outcome')
            error = HandlerError(str(cause), cause, queue=delivery.queue, delivery_tag=tag)
            logger.error('%s', error)

            session.nack(tag, requeue=False)
            self._report(error)
            return Outcome.NACK

        return outcome


    def _report(self, error):

        if self.on_error is None:
            return

        try:
            self.on_error(error)
        except Exception:
            logger.exception('error callback failed while reporting: %s', error)


# end of class Consumer



def subscribe(queue, handler, settings=None, **kwargs):
    """ Consume from *queue* until cancelled; see :class:`Consumer` for the
        handler contract and the keyword arguments.
    """

    consumer = Consumer(queue, handler, settings, **kwargs)
    consumer.run()



def _display_handler(vhost):

    def handler(record, delivery):
        info = display.DisplayInfo.of(record)
        info.exchange(delivery.exchange)
        info.queue(delivery.queue)
        info.routing_key(delivery.routing_key)
        info.virtual_host(vhost)
        info.delivery_tag(delivery.delivery_tag)
        info.display('yellow')
        return Outcome.ACK

    return handler



def main(argv=None):

    parser = argparse.ArgumentParser(description='Display and acknowledge every record delivered to a queue.')
    parser.add_argument('--queue', default='example1_trades_queue', help='queue to consume from')
    parser.add_argument('--kind', choices=tuple(records.kinds), default='trade', help='expected record kind')
    parser.add_argument('--no-requeue', action='store_true', help='never requeue a message whose handler failed')
    config.add_arguments(parser)

    arguments = parser.parse_args(argv)

    if arguments.verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    settings = config.from_arguments(arguments)
    spec = QueueSpec(arguments.queue, durable=arguments.durable)

    print('\nEXAMPLE 1 : ONE-WAY MESSAGING : CONSUMER')

    consumer = Consumer(
        spec,
        _display_handler(settings.virtual_host),
        settings,
        type=records.kinds[arguments.kind],
        requeue_failed=not arguments.no_requeue,
    )

    def interrupted(signum, frame):
        consumer.cancel()

    signal.signal(signal.SIGINT, interrupted)
    signal.signal(signal.SIGTERM, interrupted)

    try:
        consumer.run()
    except MessagingError as e:
        logger.error('consumer stopped: %s', e)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
