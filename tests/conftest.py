""" Shared fixtures. The broker is simulated in-process: pika's
    BlockingConnection is replaced by a fake that records every channel
    call and replays queued deliveries to the registered consumers.
"""

import itertools
import types

import pika
import pika.exceptions
import pytest

import rabbitdispatch
import unithandlers


class FakeChannel:

    def __init__(self, connection):

        self.connection = connection
        self.broker = connection.broker
        self.is_open = True
        self.calls = list()
        self.consumers = dict()
        self.delivery_tags = itertools.count(1)
        self.generated_tags = itertools.count(1)


    def _call(self, name, **kwargs):

        self.calls.append((name, kwargs))

        try:
            failure = self.broker.failures[name]
        except KeyError:
            pass
        else:
            raise failure


    def named(self, name):
        return [kwargs for called,kwargs in self.calls if called == name]


    def exchange_declare(self, **kwargs):
        self._call('exchange_declare', **kwargs)


    def queue_declare(self, **kwargs):
        self._call('queue_declare', **kwargs)
        queue = kwargs['queue'] or 'amq.gen-test'
        return types.SimpleNamespace(method=types.SimpleNamespace(queue=queue))


    def queue_bind(self, **kwargs):
        self._call('queue_bind', **kwargs)


    def basic_qos(self, **kwargs):
        self._call('basic_qos', **kwargs)


    def basic_publish(self, **kwargs):
        self._call('basic_publish', **kwargs)


    def basic_consume(self, **kwargs):
        self._call('basic_consume', **kwargs)

        tag = kwargs.get('consumer_tag')
        if tag is None:
            tag = 'ctag1.%d' % (next(self.generated_tags))

        if tag in self.consumers:
            raise pika.exceptions.DuplicateConsumerTag(tag)

        self.consumers[tag] = (kwargs['queue'], kwargs['on_message_callback'])
        return tag


    def basic_ack(self, **kwargs):
        self._call('basic_ack', **kwargs)


    def basic_nack(self, **kwargs):
        self._call('basic_nack', **kwargs)


    def basic_reject(self, **kwargs):
        self._call('basic_reject', **kwargs)


    def close(self):
        self._call('close')
        self.is_open = False


    def dispatch(self, queue, body):

        for tag,(consumer_queue,callback) in self.consumers.items():
            if consumer_queue == queue:
                break
        else:
            raise AssertionError('no consumer registered for ' + repr(queue))

        method = types.SimpleNamespace(
            consumer_tag=tag,
            delivery_tag=next(self.delivery_tags),
            exchange='',
            routing_key=queue,
            redelivered=False,
        )
        properties = pika.BasicProperties(content_type='application/json')
        callback(self, method, properties, body)


# end of class FakeChannel



class FakeConnection:

    def __init__(self, broker, parameters):

        self.broker = broker
        self.parameters = parameters
        self.is_open = True
        self.polls = 0
        self._channel = None


    def channel(self):
        self._channel = FakeChannel(self)
        return self._channel


    def process_data_events(self, time_limit=0):

        self.polls += 1

        if self.broker.deliveries:
            queue, body = self.broker.deliveries.pop(0)
            self._channel.dispatch(queue, body)
            return

        # Nothing left to deliver: the broker goes away.

        if self.broker.idle == 'lose-connection':
            self.is_open = False
            raise pika.exceptions.StreamLostError('Transport indicated EOF')

        self._channel.is_open = False


    def close(self):
        self.is_open = False


# end of class FakeConnection



class FakeBroker:

    def __init__(self):

        self.connections = list()
        self.deliveries = list()
        self.failures = dict()
        self.idle = 'close-channel'
        self.refuse = None


    def __call__(self, parameters):

        if self.refuse is not None:
            raise self.refuse

        connection = FakeConnection(self, parameters)
        self.connections.append(connection)
        return connection


    @property
    def channel(self):
        return self.connections[-1]._channel


    def deliver(self, queue, body=b'{}'):
        self.deliveries.append((queue, body))


# end of class FakeBroker



@pytest.fixture
def broker(monkeypatch):

    fake = FakeBroker()
    monkeypatch.setattr(pika, 'BlockingConnection', fake)
    unithandlers.Recorder.received = list()
    yield fake



@pytest.fixture
def configuration():

    document = dict()
    document['connections'] = dict()
    document['connections']['default'] = {
        'host': 'localhost',
        'port': 5672,
        'username': 'guest',
        'password': 'guest',
        'vhost': '/',
    }
    document['connections']['another'] = {
        'host': 'broker.example.com',
        'port': '5673',
        'username': 'user',
        'password': 'secret',
        'vhost': 'orders',
    }
    document['consumers'] = [
        {'connection': 'default', 'queue': 'Orders', 'handler': 'unithandlers:Recorder'},
        {'connection': 'default', 'queue': 'Emails', 'handler': 'unithandlers.Recorder'},
        {'connection': 'another', 'queue': 'EmailQueue', 'handler': unithandlers.Recorder,
         'consumerTag': 'email_consumer_tag', 'noAck': True, 'exclusive': True,
         'nowait': True, 'arguments': {'x-retries': ['I', 3]}, 'ticket': 42},
    ]

    return rabbitdispatch.Configuration.from_dict(document)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
