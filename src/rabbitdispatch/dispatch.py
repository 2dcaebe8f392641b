"""Multi-consumer dispatch.

The :class:`DispatchOrchestrator` takes the consumer bindings configured
for one named connection, registers all of them on a single
:class:`rabbitdispatch.session.BrokerSession`, and runs the blocking
receive loop. Deliveries for every queue on that connection are handled
one at a time, in the order the broker presents them.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from . import handlers
from . import topology
from .config import Configuration, ConnectionConfig
from .errors import BrokerError, ConfigurationError, HandlerError
from .message import Message
from .registry import ConsumerBinding
from .session import BrokerSession, translate


logger = logging.getLogger(__name__)


def deliver(binding: ConsumerBinding, handler) -> Callable:
    """Return the pika consumer callback for *binding*: wrap each delivery
    in a :class:`Message`, pass it to *handler*, and acknowledge it if the
    handler left it unsettled. A failing handler leaves the delivery
    unacknowledged and raises :class:`HandlerError`."""

    def callback(channel, method, properties, body) -> None:
        message = Message(channel, method, properties, body,
                          queue=binding.queue, auto_ack=binding.no_ack)

        try:
            handler.handle(message)
        except Exception as e:
            raise HandlerError(
                f"handler for queue '{binding.queue}' failed on delivery "
                f"{message.delivery_tag}: {e}",
                queue=binding.queue,
                delivery_tag=message.delivery_tag,
            ) from e

        # The handler may have closed the channel; the broker requeues
        # anything left unacknowledged when that happens.
        if not message.settled and channel.is_open:
            with translate(f"acknowledge delivery {message.delivery_tag} from '{binding.queue}'"):
                message.ack()

    return callback


def discard(session: BrokerSession) -> None:
    """Close *session* while another exception is in flight, logging a
    failure to close instead of letting it replace that exception."""

    try:
        session.close()
    except BrokerError as e:
        logger.warning("closing the session failed: %s", e)


class DispatchOrchestrator:
    """Run the consumers configured for a connection.

    *configuration* is a :class:`rabbitdispatch.config.Configuration`.
    *session_factory* builds the session from a
    :class:`rabbitdispatch.config.ConnectionConfig`; it defaults to
    :class:`BrokerSession` and is the seam tests use to avoid a broker.
    """

    def __init__(self, configuration: Configuration,
                 session_factory: Callable[[ConnectionConfig], BrokerSession] = BrokerSession):
        self.configuration = configuration
        self.session_factory = session_factory

    def select(self, connection: str, queue: Optional[str] = None
               ) -> Tuple[ConnectionConfig, List[Tuple[ConsumerBinding, type]]]:
        """Resolve the connection and the bindings to activate on it, along
        with each binding's handler class. Nothing here touches the network;
        every failure is a :class:`ConfigurationError`."""

        connection_config = self.configuration.connection(connection)
        bindings = self.configuration.consumers.select(connection, queue)

        if not bindings:
            if queue is not None:
                raise ConfigurationError(
                    f"Consumer for queue '{queue}' on connection '{connection}' not found")
            raise ConfigurationError(f"No consumers found for connection '{connection}'")

        selected = [(binding, handlers.resolve(binding.handler)) for binding in bindings]
        return connection_config, selected

    def prepare(self, connection: str, queue: Optional[str] = None) -> BrokerSession:
        """Build the session and register every selected consumer on it.
        The returned session is ready for :func:`BrokerSession.start_consuming`."""

        connection_config, selected = self.select(connection, queue)
        session = self.session_factory(connection_config)

        try:
            for binding, handler_class in selected:
                handler = handlers.instantiate(handler_class)
                logger.info("Consuming messages from queue '%s'", binding.queue)
                session.consume(
                    binding.queue,
                    deliver(binding, handler),
                    topology.ConsumeOptions.from_binding(binding),
                )
        except BaseException:
            discard(session)
            raise

        return session

    def run(self, connection: str, queue: Optional[str] = None) -> None:
        """Register the consumers and block in the receive loop until the
        session's channel closes."""

        session = self.prepare(connection, queue)

        try:
            session.start_consuming()
        except BaseException:
            discard(session)
            raise

        session.close()
