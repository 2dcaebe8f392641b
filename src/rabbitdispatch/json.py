""" JSON encoding for message bodies and configuration files.

    :func:`dumps` always returns UTF-8 bytes, ready to go out as an AMQP
    message body. The fastest installed encoder gets the first attempt; any
    value it refuses, such as an integer wider than 64 bits or a dictionary
    with non-string keys, is handed to the standard library encoder instead.
    That one turns integer keys into strings, the way :func:`json.dumps`
    always has. A value no encoder can represent raises
    :class:`rabbitdispatch.errors.PayloadError`.
"""

import json as standard

from .errors import PayloadError

# orjson is a declared dependency; msgspec is picked up when the 'fast'
# extra is installed.

msgspec = None
orjson = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass


content_type = 'application/json'


def standard_dumps(value):
    encoded = standard.dumps(value, ensure_ascii=False, allow_nan=False, separators=(',', ':'))
    return encoded.encode('utf-8')


if msgspec is not None:
    DecodeError = (ValueError, msgspec.DecodeError)
    refused = (TypeError, OverflowError, msgspec.EncodeError)
    fast_dumps = msgspec.json.Encoder().encode
    loads = msgspec.json.Decoder().decode
elif orjson is not None:
    # orjson.JSONEncodeError is a TypeError.
    DecodeError = ValueError
    refused = (TypeError, OverflowError)
    fast_dumps = orjson.dumps
    loads = orjson.loads
else:
    DecodeError = ValueError
    refused = ()
    fast_dumps = None
    loads = standard.loads


def dumps(value):
    """ Return *value* encoded as JSON, as UTF-8 bytes.
    """

    if fast_dumps is not None:
        try:
            return fast_dumps(value)
        except refused:
            pass

    try:
        return standard_dumps(value)
    except (TypeError, ValueError, RecursionError) as e:
        raise PayloadError('cannot encode %s as JSON: %s' % (type(value).__name__, e)) from e


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
