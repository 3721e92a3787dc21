# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Configuration for the authentication middleware.

Every key has a default in ``DEFAULT_CONFIG``; ``make_config`` merges
the caller's values over it one key at a time (the ``messages`` mapping
is merged one message at a time too) and validates the result.
"""
import datetime


class ConfigError(ValueError):
    """The middleware was configured or wired up incorrectly."""


def _constant_message(text):
    def message(req):
        return text
    return message


DEFAULT_CONFIG = {
    'login_path': '/login',
    'logout_path': '/logout',
    # seconds
    'timeout': 30 * 60,
    'messages': {
        'login_success': _constant_message('Welcome'),
        'login_failure': _constant_message('Incorrect credentials'),
        'logout': _constant_message('Bye'),
        },
    }


def make_config(**overrides):
    """
    Returns a new configuration dict with ``overrides`` applied over
    ``DEFAULT_CONFIG``.

    ``timeout`` may be a number of seconds or a ``datetime.timedelta``.
    A message may be a function taking the ``AuthRequest`` or a plain
    string.  ``ConfigError`` is raised for unknown keys, unknown
    messages, non-positive timeouts and messages that are neither.
    """
    unknown = set(overrides) - set(DEFAULT_CONFIG)
    if unknown:
        raise ConfigError(
            'Unknown configuration keys: %s' % ', '.join(sorted(unknown)))
    config = dict(DEFAULT_CONFIG)
    messages = dict(DEFAULT_CONFIG['messages'])
    overridden = overrides.pop('messages', None) or {}
    if not isinstance(overridden, dict):
        raise ConfigError('messages must be a dict, not %r' % (overridden,))
    for name, message in overridden.items():
        if name not in messages:
            raise ConfigError('Unknown message: %r' % name)
        if isinstance(message, str):
            message = _constant_message(message)
        elif not callable(message):
            raise ConfigError(
                'Message %r must be a string or a callable, not %r'
                % (name, message))
        messages[name] = message
    config.update(overrides)
    config['messages'] = messages

    timeout = config['timeout']
    if isinstance(timeout, datetime.timedelta):
        timeout = timeout.total_seconds()
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ConfigError('timeout must be a number of seconds, not %r'
                          % (timeout,))
    if timeout <= 0:
        raise ConfigError('timeout must be positive, not %r' % (timeout,))
    config['timeout'] = timeout

    for key in ('login_path', 'logout_path'):
        if not isinstance(config[key], str) or not config[key].startswith('/'):
            raise ConfigError('%s must be an absolute path, not %r'
                              % (key, config[key]))
    return config
