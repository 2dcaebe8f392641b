"""Option records for topology and consume requests.

Each record names the AMQP flags for one kind of request, with the
defaults a durable production topology wants. Records are immutable;
use :func:`merge` (or :func:`dataclasses.replace`) to derive variants.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


DIRECT = 'direct'
TOPIC = 'topic'
FANOUT = 'fanout'
HEADERS = 'headers'

EXCHANGE_TYPES = frozenset((DIRECT, TOPIC, FANOUT, HEADERS))


@dataclass(frozen=True)
class ExchangeOptions:
    passive: bool = False
    durable: bool = True
    auto_delete: bool = False
    internal: bool = False
    no_wait: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)
    ticket: Optional[int] = None


@dataclass(frozen=True)
class QueueOptions:
    passive: bool = False
    durable: bool = True
    exclusive: bool = False
    auto_delete: bool = False
    no_wait: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)
    ticket: Optional[int] = None


@dataclass(frozen=True)
class BindOptions:
    no_wait: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)
    ticket: Optional[int] = None


@dataclass(frozen=True)
class ConsumeOptions:
    """Per-consumer flags. The no-local flag is not represented: it is
    always false on the wire."""

    consumer_tag: Optional[str] = None
    no_ack: bool = False
    exclusive: bool = False
    no_wait: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)
    ticket: Optional[int] = None

    @classmethod
    def from_binding(cls, binding) -> 'ConsumeOptions':
        return cls(
            consumer_tag=binding.consumer_tag,
            no_ack=binding.no_ack,
            exclusive=binding.exclusive,
            no_wait=binding.no_wait,
            arguments=dict(binding.arguments),
            ticket=binding.ticket,
        )


def merge(record_type, options=None, **flags):
    """Return an instance of *record_type*, starting from *options* (or the
    defaults) with any keyword *flags* applied on top. Unknown flag names
    raise :class:`TypeError`.
    """

    if options is None:
        options = record_type()
    elif not isinstance(options, record_type):
        raise TypeError('expected %s, got %r' % (record_type.__name__, options))

    if flags:
        options = dataclasses.replace(options, **flags)

    return options


def validate_exchange_type(exchange_type: str) -> str:
    exchange_type = str(exchange_type).lower()

    if exchange_type not in EXCHANGE_TYPES:
        raise ValueError('invalid exchange type: ' + repr(exchange_type))

    return exchange_type
