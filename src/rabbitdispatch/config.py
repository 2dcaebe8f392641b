""" Configuration handling for rabbitdispatch. The configuration is a single
    JSON document with two sections: a mapping of connection names to broker
    endpoints, and a list of consumer bindings::

        {
            "connections": {
                "default": {"host": "127.0.0.1", "port": 5672,
                            "username": "guest", "password": "guest",
                            "vhost": "/"}
            },
            "consumers": [
                {"connection": "default", "queue": "Orders",
                 "handler": "myapp.consumers:OrderConsumer"}
            ]
        }

    String values in connection blocks are subject to environment variable
    expansion, so ``"password": "$RABBITMQ_PASS"`` works as expected.
"""

import os
from dataclasses import dataclass

import pika

from . import json
from .errors import ConfigurationError
from .registry import ConsumerRegistry


_environment_defaults = (
    ('host', 'HOST', '127.0.0.1'),
    ('port', 'PORT', '5672'),
    ('username', 'USER', 'guest'),
    ('password', 'PASS', 'guest'),
    ('virtual_host', 'VHOST', '/'),
)


@dataclass(frozen=True)
class ConnectionConfig:
    """ One broker endpoint. Instances are immutable; a
        :class:`rabbitdispatch.session.BrokerSession` is built from exactly
        one of these.
    """

    host: str = '127.0.0.1'
    port: int = 5672
    username: str = 'guest'
    password: str = 'guest'
    virtual_host: str = '/'
    heartbeat: int = 600
    blocked_connection_timeout: float = 300


    def __repr__(self):
        # Keep the password out of log messages.
        return 'ConnectionConfig(host=%r, port=%r, username=%r, virtual_host=%r)' % (
            self.host, self.port, self.username, self.virtual_host)


    @classmethod
    def from_dict(cls, block):
        """ Build a :class:`ConnectionConfig` from a configuration block.
            The block uses the same keys as the dataclass fields, except
            that 'vhost' is accepted as an alias for 'virtual_host'.
        """

        if not isinstance(block, dict):
            raise ConfigurationError('connection block must be a JSON object, not ' + repr(block))

        values = dict()

        for key,value in block.items():
            if key == 'vhost':
                key = 'virtual_host'
            if isinstance(value, str):
                value = os.path.expandvars(value)
            values[key] = value

        known = cls.__dataclass_fields__
        unknown = set(values) - set(known)
        if unknown:
            raise ConfigurationError('unknown connection settings: ' + ', '.join(sorted(unknown)))

        try:
            if 'port' in values:
                values['port'] = int(values['port'])
            if 'heartbeat' in values:
                values['heartbeat'] = int(values['heartbeat'])
            if 'blocked_connection_timeout' in values:
                values['blocked_connection_timeout'] = float(values['blocked_connection_timeout'])
        except (TypeError, ValueError):
            raise ConfigurationError('invalid numeric connection setting in ' + repr(block))

        return cls(**values)


    @classmethod
    def from_environment(cls, prefix='RABBITMQ'):
        """ Build a :class:`ConnectionConfig` from environment variables:
            ``RABBITMQ_HOST``, ``RABBITMQ_PORT``, ``RABBITMQ_USER``,
            ``RABBITMQ_PASS``, and ``RABBITMQ_VHOST`` for the default
            *prefix*. Unset variables fall back to a local guest login.
        """

        block = dict()

        for key,suffix,default in _environment_defaults:
            block[key] = os.environ.get(prefix + '_' + suffix, default)

        return cls.from_dict(block)


    def parameters(self):
        """ Return the :class:`pika.ConnectionParameters` for this endpoint.
        """

        credentials = pika.PlainCredentials(self.username, self.password)

        return pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            virtual_host=self.virtual_host,
            credentials=credentials,
            heartbeat=self.heartbeat,
            blocked_connection_timeout=self.blocked_connection_timeout,
        )


# end of class ConnectionConfig



class Configuration:
    """ The full configuration for a process: named connections, and the
        :class:`rabbitdispatch.registry.ConsumerRegistry` of all consumer
        bindings. To first order an instance acts like a dictionary of
        connections.
    """

    def __init__(self, connections=None, consumers=None):

        self.connections = dict()

        if connections:
            for name,connection in connections.items():
                if isinstance(connection, ConnectionConfig):
                    pass
                else:
                    connection = ConnectionConfig.from_dict(connection)
                self.connections[name] = connection

        if isinstance(consumers, ConsumerRegistry):
            self.consumers = consumers
        else:
            self.consumers = ConsumerRegistry(consumers or ())


    def __contains__(self, name):
        return name in self.connections


    def __getitem__(self, name):
        return self.connection(name)


    def connection(self, name):
        """ Return the :class:`ConnectionConfig` for the connection *name*.
            A :class:`ConfigurationError` is raised if there is no such
            connection.
        """

        try:
            return self.connections[name]
        except KeyError:
            raise ConfigurationError("Connection '%s' not found" % (name,)) from None


    @classmethod
    def from_dict(cls, document):

        if not isinstance(document, dict):
            raise ConfigurationError('configuration must be a JSON object')

        connections = document.get('connections') or dict()
        consumers = document.get('consumers') or list()

        if not isinstance(connections, dict):
            raise ConfigurationError("'connections' must be a JSON object")
        if not isinstance(consumers, list):
            raise ConfigurationError("'consumers' must be a JSON array")

        return cls(connections, consumers)


# end of class Configuration



def directory():
    """ Return the directory holding configuration files:
        ``$RABBITDISPATCH_HOME`` if set, otherwise ``~/.rabbitdispatch``.
    """

    try:
        return os.environ['RABBITDISPATCH_HOME']
    except KeyError:
        return os.path.join(os.path.expanduser('~'), '.rabbitdispatch')



def default_filename():
    """ Return the configuration file that :func:`load` reads when it is not
        given one explicitly: ``$RABBITDISPATCH_CONFIG`` if set, otherwise
        ``config.json`` in the :func:`directory`.
    """

    try:
        return os.environ['RABBITDISPATCH_CONFIG']
    except KeyError:
        return os.path.join(directory(), 'config.json')



def load(filename=None):
    """ Load and return a :class:`Configuration`. A missing file is not an
        error; the result then contains only the default connection. If
        the file does not define a 'default' connection one is built from
        the ``RABBITMQ_*`` environment variables.
    """

    if filename is None:
        filename = default_filename()

    try:
        with open(filename, 'rb') as reader:
            raw_json = reader.read()
    except FileNotFoundError:
        document = dict()
    else:
        try:
            document = json.loads(raw_json)
        except json.DecodeError as e:
            raise ConfigurationError('cannot parse %s: %s' % (filename, e)) from e

    configuration = Configuration.from_dict(document)

    if 'default' in configuration:
        pass
    else:
        configuration.connections['default'] = ConnectionConfig.from_environment()

    return configuration


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
