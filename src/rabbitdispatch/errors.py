"""Exceptions raised by rabbitdispatch.

Configuration problems are detected before any broker traffic; broker
problems carry whatever the broker said about them.
"""

from __future__ import annotations

from typing import Optional


class DispatchError(Exception):
    """Base class for all rabbitdispatch errors."""


class ConfigurationError(DispatchError):
    """A connection, consumer, or handler named in the configuration
    does not exist or cannot be used."""


class PayloadError(DispatchError):
    """A value handed to publish cannot be encoded as a JSON message body."""


class BrokerError(DispatchError):
    """Base class for errors originating with the broker connection."""


class ProtocolError(BrokerError):
    """The broker rejected a declare, bind, consume, or publish request."""

    def __init__(self, message: str, reply_code: Optional[int] = None,
                 reply_text: Optional[str] = None):
        super().__init__(message)
        self.reply_code = reply_code
        self.reply_text = reply_text


class ConnectionLossError(BrokerError):
    """The connection to the broker could not be established or maintained."""


class HandlerError(DispatchError):
    """A registered handler raised while processing a delivery."""

    def __init__(self, message: str, queue: Optional[str] = None,
                 delivery_tag: Optional[int] = None):
        super().__init__(message)
        self.queue = queue
        self.delivery_tag = delivery_tag
