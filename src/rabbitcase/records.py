""" Domain records exchanged between the producer and the consumer, and
    the JSON encoding both sides agree on. The encoding is handled by
    msgspec; typed decoding validates the fields of the target record.
"""

import itertools
import random
import time as timemodule
from typing import Any

import msgspec

from .errors import SerializationError


content_type = 'application/json'

_encoder = msgspec.json.Encoder()
_decoders = dict()


class Trade(msgspec.Struct, frozen=True):
    """ An executed trade: *quantity* units of *symbol* at *price*.
    """

    id: int
    symbol: str
    side: str
    quantity: float
    price: float
    time: float


class Signal(msgspec.Struct, frozen=True):
    """ A trading signal for *symbol*. The *direction* is 'long', 'short'
        or 'flat'; *strength* is normalized to [0, 1].
    """

    id: int
    symbol: str
    direction: str
    strength: float
    time: float


kinds = {
    'trade': Trade,
    'signal': Signal,
    'any': Any,
}


def encode(record):
    """ Return the JSON encoding of *record* as bytes. Any msgspec Struct,
        or any JSON-compatible Python value, is acceptable; anything else
        raises :class:`SerializationError`.
    """

    try:
        return _encoder.encode(record)
    except (TypeError, ValueError, OverflowError) as e:
        raise SerializationError('cannot encode ' + type(record).__name__ + ': ' + str(e)) from e



def decode(payload, type=Any):
    """ Decode a JSON *payload*. If *type* is a record class the result is
        an instance of that class, otherwise it is built from plain Python
        containers. Malformed or mismatched payloads raise
        :class:`SerializationError`.
    """

    try:
        decoder = _decoders[type]
    except KeyError:
        decoder = msgspec.json.Decoder(type)
        _decoders[type] = decoder

    try:
        return decoder.decode(payload)
    except msgspec.DecodeError as e:
        raise SerializationError('cannot decode payload: ' + str(e)) from e



class Transmitter:
    """ Generate plausible fake records for the example programs. Passing a
        seeded :class:`random.Random` as *rng* makes the output repeatable.
    """

    symbols = ('AAPL', 'MSFT', 'NVDA', 'AMZN', 'GOOG', 'TSLA')

    def __init__(self, rng=None):

        if rng is None:
            rng = random.Random()

        self.rng = rng
        self._ids = itertools.count(1)


    def trade(self):

        rng = self.rng

        return Trade(
            id=next(self._ids),
            symbol=rng.choice(self.symbols),
            side=rng.choice(('buy', 'sell')),
            quantity=float(rng.randint(1, 500)),
            price=round(rng.uniform(10.0, 1000.0), 2),
            time=timemodule.time(),
        )


    def signal(self):

        rng = self.rng

        return Signal(
            id=next(self._ids),
            symbol=rng.choice(self.symbols),
            direction=rng.choice(('long', 'short', 'flat')),
            strength=round(rng.random(), 4),
            time=timemodule.time(),
        )


    def transmit(self, kind):
        """ Return one fake record of the named *kind*, either 'trade' or
            'signal'.
        """

        if kind == 'trade':
            return self.trade()
        if kind == 'signal':
            return self.signal()

        raise ValueError('unknown record kind: ' + repr(kind))


# end of class Transmitter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
