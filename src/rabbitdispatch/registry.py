""" Consumer bindings and the registry that holds them. A binding ties one
    queue on one named connection to one handler; the registry is the
    complete, ordered list of bindings known to the process.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import ConfigurationError


# The single-character AMQP field type codes some clients use to tag table
# values. pika infers field types from the Python type of each value, so a
# typed pair such as ['I', 3] is reduced to the bare value.

_field_types = frozenset('tbBuUIiLlfdDsSATFVx')

# Accepted spellings for each binding field in configuration blocks.

_aliases = {
    'connection': ('connection',),
    'queue': ('queue',),
    'handler': ('handler',),
    'consumer_tag': ('consumer_tag', 'consumerTag'),
    'no_ack': ('no_ack', 'noAck'),
    'exclusive': ('exclusive',),
    'no_wait': ('no_wait', 'nowait', 'noWait'),
    'arguments': ('arguments',),
    'ticket': ('ticket',),
}


def table(arguments):
    """ Return a plain dictionary suitable for use as an AMQP argument table,
        unwrapping any typed ``[code, value]`` pairs.
    """

    if arguments is None:
        return dict()

    try:
        items = arguments.items()
    except AttributeError:
        raise ConfigurationError('arguments must be a mapping, not ' + repr(arguments))

    result = dict()

    for key,value in items:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            code = value[0]
            if isinstance(code, str) and code in _field_types:
                value = value[1]

        result[str(key)] = value

    return result



def flag(name, value):
    """ Return the boolean *value* of the consumer flag *name*. Only JSON
        booleans and the integers 0 and 1 are accepted; a string such as
        "false" is an error rather than a true value.
    """

    if isinstance(value, bool):
        return value

    if isinstance(value, int) and value in (0, 1):
        return bool(value)

    raise ConfigurationError(repr(name) + ' must be true or false, not ' + repr(value))



@dataclass(frozen=True)
class ConsumerBinding:
    """ A declarative (connection, queue, handler) record, plus the optional
        per-consumer protocol flags forwarded to ``basic.consume``. The
        *handler* may be a class, the name of a class registered with
        :func:`rabbitdispatch.handlers.register`, or a dotted import path.
    """

    connection: str
    queue: str
    handler: Any
    consumer_tag: Optional[str] = None
    no_ack: bool = False
    exclusive: bool = False
    no_wait: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)
    ticket: Optional[int] = None


    @classmethod
    def from_dict(cls, block):
        """ Build a binding from a configuration block. The connection name
            defaults to 'default'; the queue and handler are required.
        """

        if not isinstance(block, Mapping):
            raise ConfigurationError('consumer block must be a JSON object, not ' + repr(block))

        values = dict()

        for name,spellings in _aliases.items():
            for spelling in spellings:
                try:
                    values[name] = block[spelling]
                except KeyError:
                    continue
                else:
                    break

        for required in ('queue', 'handler'):
            if not values.get(required):
                raise ConfigurationError('consumer block is missing ' + repr(required) + ': ' + repr(block))

        values.setdefault('connection', 'default')

        for name in ('connection', 'queue', 'consumer_tag'):
            value = values.get(name)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(repr(name) + ' must be a string in consumer block ' + repr(block))

        values['arguments'] = table(values.get('arguments'))

        for name in ('no_ack', 'exclusive', 'no_wait'):
            if name in values:
                values[name] = flag(name, values[name])

        ticket = values.get('ticket')
        if ticket is not None:
            try:
                values['ticket'] = int(ticket)
            except (TypeError, ValueError):
                raise ConfigurationError('ticket must be an integer, not ' + repr(ticket)) from None

        return cls(**values)


# end of class ConsumerBinding



class ConsumerRegistry:
    """ The ordered set of all :class:`ConsumerBinding` instances for this
        process. Selection by connection, and optionally by queue, preserves
        registry order.
    """

    def __init__(self, bindings=()):

        checked = list()

        for binding in bindings:
            if isinstance(binding, ConsumerBinding):
                pass
            else:
                binding = ConsumerBinding.from_dict(binding)

            checked.append(binding)

        self._bindings = tuple(checked)


    def __iter__(self):
        return iter(self._bindings)


    def __len__(self):
        return len(self._bindings)


    def __repr__(self):
        return 'ConsumerRegistry(%r)' % (list(self._bindings),)


    def connections(self):
        """ Return the distinct connection names referenced by the registry,
            in the order they first appear.
        """

        names = dict()
        for binding in self._bindings:
            names[binding.connection] = True

        return tuple(names.keys())


    def queues(self, connection):
        return tuple(binding.queue for binding in self.select(connection))


    def select(self, connection, queue=None):
        """ Return the bindings for *connection*, narrowed to *queue* if one
            is specified. An empty list is a valid result; it is up to the
            caller to decide whether that is an error.
        """

        selected = list()

        for binding in self._bindings:
            if binding.connection != connection:
                continue
            if queue is not None and binding.queue != queue:
                continue
            selected.append(binding)

        return selected


# end of class ConsumerRegistry


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
