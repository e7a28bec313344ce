""" Client configuration. Settings are read from a JSON file in the
    configuration directory, if one exists, and can be overridden piecemeal
    with ``I40MSG_*`` environment variables; see :func:`load`.
"""

import logging
import os

from . import json

logger = logging.getLogger(__name__)


default_ports = {
    'loopback': None,
    'zmq': 10139,
    'rabbitmq': 5672,
}

overrides = (
    ('I40MSG_TRANSPORT', 'transport'),
    ('I40MSG_HOST', 'host'),
    ('I40MSG_PORT', 'port'),
    ('I40MSG_TOPIC', 'topic'),
    ('I40MSG_CLIENT_ID', 'client_id'),
    ('I40MSG_USERNAME', 'username'),
    ('I40MSG_PASSWORD', 'password'),
)


class Configuration(dict):
    """ A dictionary of client settings, pre-populated with defaults. The
        port defaults according to the selected transport, unless one was
        specified explicitly.
    """

    defaults = {
        'transport': 'zmq',
        'host': 'localhost',
        'port': None,
        'topic': 'i40/messages',
        'client_id': None,
        'username': None,
        'password': None,
    }

    def __init__(self, *args, **kwargs):

        dict.__init__(self, self.defaults)
        self.update(*args, **kwargs)


    @property
    def port(self):
        port = self['port']
        if port is None:
            port = default_ports.get(self['transport'])
        else:
            port = int(port)

        return port


# end of class Configuration



def directory(default=None):
    """ Return the directory location where configuration files are read
        from. This defaults to ``$HOME/.i40msg``, but can be overridden by
        calling this method with an absolute path, or by setting the
        ``I40MSG_HOME`` environment variable. Note that changes to the
        environment variable will be ignored unless it is set prior to the
        first invocation of this method.
    """

    if default is not None:
        default = str(default)
        default = os.path.expandvars(default)

        if os.path.isabs(default):
            pass
        else:
            raise ValueError('the default directory must be an absolute path')

        os.environ['I40MSG_HOME'] = default
        directory.found = default


    found = directory.found

    if found is not None:
        return found

    try:
        found = os.environ['I40MSG_HOME']
    except KeyError:
        pass
    else:
        directory.found = found
        return found

    try:
        home = os.environ['HOME']
    except KeyError:
        raise RuntimeError('I40MSG_HOME and HOME environment variables not set, cannot determine configuration directory')

    found = os.path.join(home, '.i40msg')

    directory.found = found
    return found

directory.found = None



def load(name='client'):
    """ Return a :class:`Configuration` built from ``<directory>/<name>.json``,
        if that file exists, with any ``I40MSG_*`` environment variables
        applied on top. A file that exists but does not contain a JSON
        object is an error.
    """

    filename = os.path.join(directory(), name + '.json')
    configuration = Configuration()

    try:
        with open(filename, 'rb') as reader:
            raw_json = reader.read()
    except FileNotFoundError:
        logger.debug('no configuration file at %s', filename)
    else:
        try:
            contents = json.loads(raw_json)
        except json.errors as e:
            raise ValueError('invalid JSON in ' + filename) from e

        if not isinstance(contents, dict):
            raise ValueError('configuration in ' + filename + ' is not a JSON object')

        configuration.update(contents)

    for variable, key in overrides:
        try:
            value = os.environ[variable]
        except KeyError:
            continue

        configuration[key] = value

    return configuration


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
