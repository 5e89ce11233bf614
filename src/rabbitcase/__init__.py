""" One-way messaging against a RabbitMQ broker: a producer that publishes
    domain records to a named queue, and a consumer that receives, displays
    and individually acknowledges them.
"""

# Submodules used by multiple other components.

from . import errors
from . import config
from . import records
from . import transport
from . import display

# Primary public-facing interfaces.

from .config import BrokerConfig, QueueSpec
from .consumer import Consumer, Outcome, subscribe
from .producer import Producer, publish

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
