""" Message handlers. A handler is any class whose instances expose a
    ``handle(message)`` method; subclassing :class:`Handler` is the
    conventional way to get one. Consumer bindings refer to handlers either
    directly by class, by a name registered with :func:`register`, or by an
    import path such as ``myapp.consumers:OrderConsumer``.
"""

import importlib
from abc import ABC, abstractmethod

from .errors import ConfigurationError


registered = dict()


class Handler(ABC):
    """ Base class for message handlers. The :func:`handle` method is invoked
        once per delivered :class:`rabbitdispatch.message.Message`; it runs
        on the consuming thread, and every other queue on the same session
        waits for it to return.
    """

    @abstractmethod
    def handle(self, message):
        """ Process a single *message*. If the consumer is not in no-ack
            mode and this method returns without settling the message, it
            will be acknowledged automatically.
        """


# end of class Handler



def register(name=None):
    """ Class decorator to make a handler class available by *name*, which
        defaults to the name of the class itself::

            @rabbitdispatch.handlers.register()
            class OrderConsumer(rabbitdispatch.Handler):
                def handle(self, message):
                    ...
    """

    def decorator(cls):
        key = name or cls.__name__
        _check(cls, key)
        registered[key] = cls
        return cls

    return decorator



def resolve(reference):
    """ Return the handler class identified by *reference*. A
        :class:`ConfigurationError` is raised if the reference cannot be
        resolved, or if it does not resolve to something with a callable
        ``handle`` attribute.
    """

    if isinstance(reference, type):
        _check(reference, reference)
        return reference

    if not isinstance(reference, str) or reference == '':
        raise ConfigurationError('invalid handler reference: ' + repr(reference))

    try:
        return registered[reference]
    except KeyError:
        pass

    # Accept both 'package.module:Class' and 'package.module.Class'.

    if ':' in reference:
        module_name, attribute = reference.split(':', 1)
    elif '.' in reference:
        module_name, attribute = reference.rsplit('.', 1)
    else:
        raise ConfigurationError("handler '%s' is not registered" % (reference,))

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError("cannot import handler module '%s': %s" % (module_name, e)) from e

    try:
        cls = getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError("handler '%s' not found in module '%s'" % (attribute, module_name)) from None

    _check(cls, reference)
    return cls



def instantiate(reference):
    """ Resolve *reference* and return a new instance of the handler class.
        Constructors are called with no arguments.
    """

    cls = resolve(reference)

    try:
        return cls()
    except Exception as e:
        raise ConfigurationError('cannot instantiate handler %s: %s' % (_name(cls), e)) from e



def _check(cls, reference):

    handle = getattr(cls, 'handle', None)

    if callable(handle):
        pass
    else:
        raise ConfigurationError('handler %s does not define handle()' % (_name(reference),))

    if getattr(handle, '__isabstractmethod__', False):
        raise ConfigurationError('handler %s does not implement handle()' % (_name(reference),))



def _name(thing):
    try:
        return thing.__module__ + '.' + thing.__qualname__
    except AttributeError:
        return repr(thing)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
