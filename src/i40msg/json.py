''' Wrapper module to select the most performant available library to handle
    the equivalent of :func:`json.loads` and :func:`json.dumps`. Whichever
    library is selected, :func:`dumps` always returns compact bytes, and any
    decoding failure is an instance of one of the exception classes in
    :data:`errors`.
'''

# The business about conditionally importing the libraries is intended to
# avoid importing less efficient libraries if they are not available. orjson
# is a declared dependency; msgspec is picked up when it is installed.

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


# The msgspec 'encode' operation returns bytes, as does orjson.dumps. To
# maintain alignment all 'dumps' methods need to do so as well. The
# separators are set so that the output matches the compact output of
# the other two libraries.

def json_dumps(*args, **kwargs):
    kwargs.setdefault('separators', (',', ':'))
    kwargs.setdefault('ensure_ascii', False)
    return json.dumps(*args, **kwargs).encode()

if msgspec is not None:
    encoder = msgspec.json.Encoder()
    decoder = msgspec.json.Decoder()
    dumps = encoder.encode
    loads = decoder.decode
    errors = (ValueError, msgspec.DecodeError)
elif orjson is not None:
    dumps = orjson.dumps
    loads = orjson.loads
    errors = (ValueError, orjson.JSONDecodeError)
else:
    dumps = json_dumps
    loads = json.loads
    errors = (ValueError,)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
