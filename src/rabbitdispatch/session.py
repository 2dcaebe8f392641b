"""Blocking broker session: one connection and one channel.

All broker traffic in rabbitdispatch goes through a :class:`BrokerSession`.
Construction performs the handshake, so an instance is always connected
until it is closed, by the caller or by the broker.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Callable, List, Optional

import pika
import pika.exceptions

from . import config
from . import json
from . import topology
from .errors import ConnectionLossError, ProtocolError


logger = logging.getLogger(__name__)


def _describe(exception: Exception) -> str:
    reply_code = getattr(exception, 'reply_code', None)
    reply_text = getattr(exception, 'reply_text', None)

    if reply_code is not None:
        return f'{reply_code} {reply_text}'

    return str(exception) or exception.__class__.__name__


@contextlib.contextmanager
def translate(action: str):
    """Re-raise pika failures from the enclosed broker call as
    :class:`ProtocolError` or :class:`ConnectionLossError`."""

    try:
        yield
    except pika.exceptions.AMQPChannelError as e:
        raise ProtocolError(
            f'{action}: {_describe(e)}',
            reply_code=getattr(e, 'reply_code', None),
            reply_text=getattr(e, 'reply_text', None),
        ) from e
    except pika.exceptions.AMQPConnectionError as e:
        raise ConnectionLossError(f'{action}: {_describe(e)}') from e
    except (TypeError, ValueError) as e:
        # pika validates argument types before anything goes on the wire.
        raise ProtocolError(f'{action}: {e}') from e


def _unsupported(action: str, options) -> None:
    if options.no_wait:
        logger.debug('%s: no_wait requested, the blocking channel waits for the reply regardless', action)
    if options.ticket is not None:
        logger.debug('%s: access ticket %r ignored', action, options.ticket)


class BrokerSession:
    """Own a :class:`pika.BlockingConnection` and a single channel on it,
    and expose topology, publish, and consume operations. The declare,
    bind, publish, and consume methods return the session so calls can be
    chained::

        session.declare_exchange('orders', 'topic') \\
               .declare_queue('Orders') \\
               .bind_queue('Orders', 'orders', 'order.*')

    A session is not thread safe.
    """

    poll_interval = 1.0

    def __init__(self, connection_config: config.ConnectionConfig):
        self.config = connection_config
        self.connection = None
        self.channel = None
        self.consumer_tags: List[str] = []
        self.last_queue: Optional[str] = None

        try:
            self.connection = pika.BlockingConnection(connection_config.parameters())
            self.channel = self.connection.channel()
        except (pika.exceptions.AMQPError, OSError) as e:
            self._abandon()
            raise ConnectionLossError(
                f'cannot connect to {connection_config.host}:{connection_config.port}: {_describe(e)}'
            ) from e

        logger.debug('connected to %s:%s%s', connection_config.host,
                     connection_config.port, connection_config.virtual_host)

    def __enter__(self) -> 'BrokerSession':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'open' if self.is_open else 'closed'
        return f'<BrokerSession {self.config.host}:{self.config.port} {state}>'

    @property
    def is_open(self) -> bool:
        """Whether both the connection and the channel are open."""
        if self.connection is None or self.channel is None:
            return False
        return self.connection.is_open and self.channel.is_open

    # --- topology ---
    def declare_exchange(self, name: str, exchange_type: str = topology.DIRECT,
                         options: Optional[topology.ExchangeOptions] = None,
                         **flags) -> 'BrokerSession':
        """Declare the exchange *name*. With ``passive=True`` the exchange is
        only checked for existence, and the call fails if it is absent."""

        exchange_type = topology.validate_exchange_type(exchange_type)
        options = topology.merge(topology.ExchangeOptions, options, **flags)
        action = f"declare exchange '{name}'"
        _unsupported(action, options)

        logger.debug('%s (%s, %r)', action, exchange_type, options)
        with translate(action):
            self.channel.exchange_declare(
                exchange=name,
                exchange_type=exchange_type,
                passive=options.passive,
                durable=options.durable,
                auto_delete=options.auto_delete,
                internal=options.internal,
                arguments=options.arguments or None,
            )

        return self

    def declare_queue(self, queue: str,
                      options: Optional[topology.QueueOptions] = None,
                      **flags) -> 'BrokerSession':
        """Declare *queue*. An empty name asks the broker to generate one;
        the name actually declared is kept in :attr:`last_queue`."""

        options = topology.merge(topology.QueueOptions, options, **flags)
        action = f"declare queue '{queue}'"
        _unsupported(action, options)

        logger.debug('%s (%r)', action, options)
        with translate(action):
            frame = self.channel.queue_declare(
                queue=queue,
                passive=options.passive,
                durable=options.durable,
                exclusive=options.exclusive,
                auto_delete=options.auto_delete,
                arguments=options.arguments or None,
            )

        self.last_queue = frame.method.queue
        return self

    def bind_queue(self, queue: str, exchange: str, routing_key: Optional[str] = None,
                   options: Optional[topology.BindOptions] = None,
                   **flags) -> 'BrokerSession':
        options = topology.merge(topology.BindOptions, options, **flags)
        routing_key = routing_key or ''
        action = f"bind queue '{queue}' to '{exchange}'"
        _unsupported(action, options)

        logger.debug('%s with routing key %r', action, routing_key)
        with translate(action):
            self.channel.queue_bind(
                queue=queue,
                exchange=exchange,
                routing_key=routing_key,
                arguments=options.arguments or None,
            )

        return self

    def qos(self, prefetch_count: int = 0, prefetch_size: int = 0,
            global_qos: bool = False) -> 'BrokerSession':
        with translate('basic.qos'):
            self.channel.basic_qos(
                prefetch_size=prefetch_size,
                prefetch_count=prefetch_count,
                global_qos=global_qos,
            )

        return self

    # --- messages ---
    def publish(self, exchange: str, routing_key: str, payload: Any) -> 'BrokerSession':
        """Encode *payload* as JSON and hand it to the broker. Nothing is
        returned about routing: unroutable messages are dropped silently by
        the broker. A payload that cannot be encoded raises
        :class:`PayloadError` before anything is sent."""

        body = json.dumps(payload)
        properties = pika.BasicProperties(content_type=json.content_type)

        logger.debug("publish %d bytes to '%s' with routing key %r", len(body), exchange, routing_key)
        with translate(f"publish to '{exchange}'"):
            self.channel.basic_publish(
                exchange=exchange,
                routing_key=routing_key,
                body=body,
                properties=properties,
            )

        return self

    def consume(self, queue: str, callback: Callable,
                options: Optional[topology.ConsumeOptions] = None,
                **flags) -> 'BrokerSession':
        """Register *callback* for every delivery on *queue*. The callback
        receives pika's ``(channel, method, properties, body)`` arguments.
        Deliveries are only dispatched from :func:`start_consuming`."""

        options = topology.merge(topology.ConsumeOptions, options, **flags)
        action = f"consume queue '{queue}'"
        _unsupported(action, options)

        with translate(action):
            consumer_tag = self.channel.basic_consume(
                queue=queue,
                on_message_callback=callback,
                auto_ack=options.no_ack,
                exclusive=options.exclusive,
                consumer_tag=options.consumer_tag,
                arguments=options.arguments or None,
            )

        logger.debug('%s registered as %s', action, consumer_tag)
        self.consumer_tags.append(consumer_tag)
        return self

    def start_consuming(self) -> None:
        """Dispatch deliveries to the registered callbacks for as long as
        the channel stays open. Returns once the channel or the connection
        closes; exceptions raised by callbacks propagate."""

        logger.info('Starting to consume messages...')

        try:
            while self.is_open:
                self.connection.process_data_events(time_limit=self.poll_interval)
        except pika.exceptions.ChannelClosed as e:
            logger.warning('channel closed: %s', _describe(e))
        except pika.exceptions.AMQPConnectionError as e:
            logger.warning('connection to %s:%s lost: %s', self.config.host,
                           self.config.port, _describe(e))

        logger.info('Stopped consuming messages')

    # --- lifecycle ---
    def close(self) -> None:
        """Close the channel, then the connection. Safe to call repeatedly."""

        if self.channel is not None and self.channel.is_open:
            with translate('close channel'):
                self.channel.close()

        if self.connection is not None and self.connection.is_open:
            with translate('close connection'):
                self.connection.close()

    def _abandon(self) -> None:
        """Drop a half-built connection after a failed handshake."""

        if self.connection is not None and self.connection.is_open:
            with contextlib.suppress(pika.exceptions.AMQPError):
                self.connection.close()

        self.connection = None
        self.channel = None


def connect(name: str = 'default', configuration: Optional[config.Configuration] = None) -> BrokerSession:
    """Return a new :class:`BrokerSession` for the connection *name*, loading
    the configuration from its default location if none is provided."""

    if configuration is None:
        configuration = config.load()

    return BrokerSession(configuration.connection(name))
