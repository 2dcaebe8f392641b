import json

import pika.exceptions
import pytest

from rabbitdispatch import cli

import unithandlers


@pytest.fixture
def config_file(tmp_path):

    document = {
        'connections': {
            'default': {'host': 'localhost', 'port': 5672, 'username': 'guest',
                        'password': 'guest', 'vhost': '/'},
        },
        'consumers': [
            {'connection': 'default', 'queue': 'Orders', 'handler': 'unithandlers:Recorder'},
            {'connection': 'default', 'queue': 'Emails', 'handler': 'unithandlers:Failing'},
        ],
    }

    filename = tmp_path / 'config.json'
    filename.write_text(json.dumps(document))
    return str(filename)


def test_consume(broker, config_file):

    broker.deliver('Orders', b'{"id": 3}')
    status = cli.main(['--config', config_file, 'consume', 'default', 'Orders'])

    assert status == cli.SUCCESS
    assert unithandlers.Recorder.received == [('Orders', {'id': 3})]
    assert [call['queue'] for call in broker.channel.named('basic_consume')] == ['Orders']


def test_consume_unknown_connection(broker, config_file, caplog):

    status = cli.main(['--config', config_file, 'consume', 'missing'])

    assert status == cli.FAILURE
    assert "Connection 'missing' not found" in caplog.text
    assert broker.connections == []


def test_consume_unknown_queue(broker, config_file, caplog):

    status = cli.main(['--config', config_file, 'consume', 'default', 'Audit'])

    assert status == cli.FAILURE
    assert "Consumer for queue 'Audit' on connection 'default' not found" in caplog.text
    assert broker.connections == []


def test_consume_handler_failure(broker, config_file):

    broker.deliver('Emails', b'{}')
    status = cli.main(['--config', config_file, 'consume', 'default'])

    assert status == cli.BROKER_FAILURE


def test_consume_broker_unreachable(broker, config_file):

    broker.refuse = pika.exceptions.AMQPConnectionError('Connection refused')
    status = cli.main(['--config', config_file, 'consume', 'default'])

    assert status == cli.BROKER_FAILURE


def test_publish(broker, config_file):

    status = cli.main(['--config', config_file, 'publish', 'orders', 'order.created', '{"id": 9}'])

    assert status == cli.SUCCESS

    published = broker.channel.named('basic_publish')
    assert len(published) == 1
    assert published[0]['exchange'] == 'orders'
    assert json.loads(published[0]['body']) == {'id': 9}
    assert broker.connections[0].is_open is False


def test_publish_invalid_payload(broker, config_file):

    status = cli.main(['--config', config_file, 'publish', 'orders', 'order.created', '{not json'])

    assert status == cli.FAILURE
    assert broker.connections == []


def write_config(tmp_path, consumers):

    document = {
        'connections': {'default': {'host': 'localhost'}},
        'consumers': consumers,
    }

    filename = tmp_path / 'malformed.json'
    filename.write_text(json.dumps(document))
    return str(filename)


def test_consume_malformed_consumers(broker, tmp_path, caplog):

    malformed = (
        ['Orders'],
        [{'queue': 'Orders', 'handler': 'unithandlers:Recorder', 'ticket': 'abc'}],
        [{'queue': 'Orders', 'handler': 'unithandlers:Recorder', 'noAck': 'false'}],
    )

    for consumers in malformed:
        status = cli.main(['--config', write_config(tmp_path, consumers), 'consume', 'default'])
        assert status == cli.FAILURE

    assert broker.connections == []
    assert 'ticket must be an integer' in caplog.text


def test_missing_arguments():

    with pytest.raises(SystemExit):
        cli.main(['consume'])


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
