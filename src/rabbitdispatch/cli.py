""" Command line entry point, installed as ``rabbitdispatch``::

        rabbitdispatch consume default
        rabbitdispatch consume default Orders
        rabbitdispatch publish orders order.created '{"id": 42}'

    ``consume`` runs every consumer configured for the named connection (or
    only the one for the named queue) until the channel closes. The exit
    status is 1 if the configuration rules out starting at all, 2 if the
    broker or a handler fails once running.
"""

import argparse
import logging
import sys

from . import config
from . import json
from .dispatch import DispatchOrchestrator
from .errors import ConfigurationError, DispatchError
from .session import BrokerSession


logger = logging.getLogger('rabbitdispatch')

SUCCESS = 0
FAILURE = 1
BROKER_FAILURE = 2


def parser():

    parser = argparse.ArgumentParser(
        prog='rabbitdispatch',
        description='Run RabbitMQ consumers and publish messages',
    )
    parser.add_argument(
        '--config',
        help='Path to the JSON configuration file (default: $RABBITDISPATCH_CONFIG or ~/.rabbitdispatch/config.json)',
        default=None,
    )
    parser.add_argument(
        '-v', '--verbose',
        help='Enable debug logging',
        action='store_true',
    )

    commands = parser.add_subparsers(dest='command', required=True)

    consume = commands.add_parser('consume', help='Consume messages from the configured queues')
    consume.add_argument('connection', help='Name of the configured connection')
    consume.add_argument('queue', nargs='?', default=None, help='Only consume from this queue')

    publish = commands.add_parser('publish', help='Publish one JSON message')
    publish.add_argument('exchange', help="Exchange name ('' for the default exchange)")
    publish.add_argument('routing_key', help='Routing key')
    publish.add_argument('payload', help='JSON document to publish')
    publish.add_argument(
        '-c', '--connection',
        help='Name of the configured connection (default: default)',
        default='default',
    )

    return parser



def consume(configuration, arguments):

    orchestrator = DispatchOrchestrator(configuration)
    orchestrator.run(arguments.connection, arguments.queue)
    return SUCCESS



def publish(configuration, arguments):

    try:
        payload = json.loads(arguments.payload)
    except json.DecodeError as e:
        raise ConfigurationError('payload is not valid JSON: %s' % (e,)) from e

    connection = configuration.connection(arguments.connection)

    with BrokerSession(connection) as session:
        session.publish(arguments.exchange, arguments.routing_key, payload)

    logger.info("Published to '%s' with routing key '%s'", arguments.exchange, arguments.routing_key)
    return SUCCESS


commands = {
    'consume': consume,
    'publish': publish,
}



def main(argv=None):

    arguments = parser().parse_args(argv)

    level = logging.DEBUG if arguments.verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        configuration = config.load(arguments.config)
        return commands[arguments.command](configuration, arguments)
    except ConfigurationError as e:
        logger.error(str(e))
        return FAILURE
    except DispatchError as e:
        logger.critical(str(e), exc_info=True)
        return BROKER_FAILURE



if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
