""" Client layer for RabbitMQ: a blocking broker session for topology,
    publishing, and consuming, plus a dispatcher that runs every configured
    queue consumer for a connection on a single channel.
"""

# Utility components.

from . import json
from . import errors

# Configuration and the consumer registry it carries.

from . import registry
from . import config
from . import topology
from . import handlers

# Primary public-facing interfaces.

from . import session
from . import dispatch
connect = session.connect

from .config import Configuration, ConnectionConfig
from .dispatch import DispatchOrchestrator
from .errors import (
    DispatchError,
    ConfigurationError,
    PayloadError,
    BrokerError,
    ProtocolError,
    ConnectionLossError,
    HandlerError,
)
from .handlers import Handler
from .message import Message
from .registry import ConsumerBinding, ConsumerRegistry
from .session import BrokerSession

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
