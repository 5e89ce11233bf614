import threading

import pytest

import rabbitcase
from rabbitcase.transport import memory


@pytest.fixture
def broker():
    """ A fresh in-process broker, installed as the default for the memory
        transport.
    """

    return memory.reset()


@pytest.fixture
def settings(broker):
    return rabbitcase.BrokerConfig(transport='memory')


@pytest.fixture
def run_consumer():
    """ Start a consumer's loop on a background thread. On teardown the
        consumer is cancelled and the thread joined, so a failing test can
        never leave the loop running.
    """

    started = list()

    def start(consumer):
        thread = threading.Thread(target=consumer.run, daemon=True)
        thread.start()
        started.append((consumer, thread))
        return thread

    yield start

    for consumer, thread in started:
        consumer.cancel()
        thread.join(timeout=5)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
