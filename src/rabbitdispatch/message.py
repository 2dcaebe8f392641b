""" A thin wrapper around one AMQP delivery, as handed to
    :func:`rabbitdispatch.handlers.Handler.handle`.
"""

from . import json


class Message:
    """ The :class:`Message` bundles the pieces pika hands to a consumer
        callback: the *channel* the delivery arrived on, the ``Basic.Deliver``
        *method* frame, the *properties*, and the raw *body*. The *queue* is
        the queue the consumer was registered against.

        If *auto_ack* is True the broker considered the message delivered the
        moment it was sent, and the message is already settled; otherwise the
        handler may settle it with :func:`ack`, :func:`nack`, or
        :func:`reject`. A message can only be settled once.

        :ivar body: The raw message body, as bytes.
        :ivar settled: True once the message has been acknowledged or
            rejected.
    """

    def __init__(self, channel, method, properties, body, queue=None, auto_ack=False):

        self.channel = channel
        self.method = method
        self.properties = properties
        self.body = body
        self.queue = queue
        self.settled = bool(auto_ack)


    def __repr__(self):
        return 'Message(queue=%r, delivery_tag=%r, routing_key=%r, body=%r)' % (
            self.queue, self.delivery_tag, self.routing_key, self.body)


    @property
    def content_type(self):
        return getattr(self.properties, 'content_type', None)


    @property
    def consumer_tag(self):
        return self.method.consumer_tag


    @property
    def delivery_tag(self):
        return self.method.delivery_tag


    @property
    def exchange(self):
        return self.method.exchange


    @property
    def redelivered(self):
        return self.method.redelivered


    @property
    def routing_key(self):
        return self.method.routing_key


    def json(self):
        """ Decode the body as JSON and return the result.
        """

        return json.loads(self.body)


    def ack(self):
        self._settle()
        self.channel.basic_ack(delivery_tag=self.delivery_tag)


    def nack(self, requeue=True):
        self._settle()
        self.channel.basic_nack(delivery_tag=self.delivery_tag, requeue=requeue)


    def reject(self, requeue=True):
        self._settle()
        self.channel.basic_reject(delivery_tag=self.delivery_tag, requeue=requeue)


    def _settle(self):

        if self.settled:
            raise RuntimeError('message %r is already settled' % (self.delivery_tag,))

        self.settled = True


# end of class Message


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
