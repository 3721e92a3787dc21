# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Session authentication middleware

Put this middleware inside ``sessionauth.session.SessionMiddleware``
(or anything else that puts a session factory at
``environ['sessionauth.session.factory']``).  For every request it
decides who the user is, makes that user available as
``sessionauth.user`` (and ``environ['sessionauth.user']``) while the
application runs, and then writes the login state back into the
session:

``logged_in_user``
    the authenticated account, after a login or on an active session
``last_request_time``
    the time of the request, for logins and active sessions
``remember_session``
    true if the session should not time out
``flash_message``
    a message for the user after a login attempt or a logout

A value of None is never written.  On logins, logouts and active
sessions the first three keys are replaced as a whole, so a failed
login, a logout or an expired session leaves no ``logged_in_user``
behind.  Other session keys are never touched.  This is the one place
the session is not simply merged with the non-None values: the login
state is dropped first, as a framework that replaces the whole session
with the response's would do, because otherwise the previous
``logged_in_user`` would survive a logout.

A login is a POST of ``username`` and ``password`` (and optionally
``remember_me``) to the login path.  Any request to the logout path
logs out.  A request can also authenticate alone with ``uid`` and
``key`` query parameters, which never changes the session.

>>> from sessionauth.auth.directory import DictAccountDirectory
>>> from sessionauth.session import SessionMiddleware
>>> directory = DictAccountDirectory({'david': 'snowy'})
>>> def application(environ, start_response):
...     start_response('200 OK', [('Content-Type', 'text/plain')])
...     return [repr(sessionauth.user).encode('utf-8')]
>>> app = SessionMiddleware(AuthSessionMiddleware(application, directory))
"""
import logging

from paste.deploy.converters import asint
from paste.deploy.util import lookup_object

import sessionauth
from sessionauth.auth import attributes
from sessionauth.auth import classify
from sessionauth.auth.config import ConfigError, make_config
from sessionauth.auth.trace import Trace
from sessionauth.registry import Registry
from sessionauth.request import AuthRequest

__all__ = ['AuthSessionMiddleware', 'update_session', 'end_login']

AUTH_TYPES = {
    classify.LOGIN: 'form',
    classify.ACTIVE_SESSION: 'session',
    classify.PER_REQUEST: 'key',
    }

# The session state is owned by these classifications; the keys they
# derive replace whatever the session held before.
OWNED_CLASSIFICATIONS = (classify.LOGIN, classify.LOGOUT,
                         classify.ACTIVE_SESSION)
LOGIN_STATE = ('logged_in_user', 'last_request_time', 'remember_session')


def update_session(session, attrs):
    """
    Updates the session with the supplied attributes; an attribute
    whose value is None is not set.
    """
    for key, value in attrs.items():
        if value is not None:
            session[key] = value
    return session


def end_login(session, keys):
    """Removes the given keys from the session, if present"""
    for key in keys:
        session.pop(key, None)
    return session


class AuthSessionMiddleware(object):

    """
    Parameters:

        ``application``

            The application called for every request.  It can assume
            ``sessionauth.user`` is bound; it is the directory's
            anonymous account if nobody authenticated.

        ``directory``

            An ``AccountDirectory`` used to find accounts and check
            passwords.

        ``clock``

            A function returning the current time in seconds; defaults
            to ``time.time``.

        ``logger``

            The logger for one line per request; defaults to the
            ``sessionauth`` logger.

        ``**config``

            Overrides for ``login_path``, ``logout_path``, ``timeout``
            (seconds) and ``messages``; see ``sessionauth.auth.config``.
    """

    session_key = 'sessionauth.session.factory'
    registry_key = 'sessionauth.registry'
    request_class = AuthRequest

    def __init__(self, application, directory, clock=None, logger=None,
                 **config):
        self.application = application
        self.directory = directory
        self.clock = clock
        self.logger = logger or logging.getLogger('sessionauth')
        self.config = make_config(**config)

    def __call__(self, environ, start_response):
        if self.session_key not in environ:
            raise ConfigError(
                "No session found in environ[%r]; wrap the application "
                "in sessionauth.session.SessionMiddleware"
                % self.session_key)
        session = environ[self.session_key]()
        req = self.request_class.from_environ(environ, session)
        trace = Trace(req, self.directory, self.config, self.clock)

        remember = attributes.remember_session(trace)
        time_of_request = attributes.time_of_this_request(trace)
        logged_in_user = trace.logged_in_user()
        message = attributes.flash_message(trace)
        user = attributes.current_user(trace)

        classification = trace.classification
        environ['sessionauth.user'] = user
        environ['sessionauth.classification'] = classification
        username = self.username(user)
        if username and classification in AUTH_TYPES:
            environ['REMOTE_USER'] = username
            environ['AUTH_TYPE'] = AUTH_TYPES[classification]
        self.write_log(req, classification, logged_in_user, username)

        reg = environ.setdefault(self.registry_key, Registry())
        reg.prepare()
        reg.register(sessionauth.user, user)
        try:
            app_iter = self.application(environ, start_response)
        finally:
            reg.cleanup()

        keys = req.session_keys()
        if classification in OWNED_CLASSIFICATIONS:
            end_login(session, [keys[name] for name in LOGIN_STATE])
        update_session(session, {
            keys['remember_session']: remember,
            keys['last_request_time']: time_of_request,
            keys['logged_in_user']: logged_in_user,
            keys['flash_message']: message,
            })
        return app_iter

    def username(self, user):
        """The directory's name for the user, if it knows one"""
        get_username = getattr(self.directory, 'username', None)
        if get_username is None:
            return None
        return get_username(user)

    def write_log(self, req, classification, logged_in_user, username):
        self.logger.debug('%s %s classified as %s (user %s)',
                          req.method, req.path, classification,
                          username or '-')
        if classification == classify.LOGIN:
            if logged_in_user is not None:
                self.logger.info('Login succeeded for %r', req.username)
            else:
                self.logger.info('Login failed for %r', req.username)
        elif classification == classify.LOGOUT:
            self.logger.info('Logout from %s', req.path)


def make_auth_middleware(app, global_conf, directory, login_path=None,
                         logout_path=None, timeout=None, **messages):
    """
    Paste Deploy entry point::

        [filter:auth]
        use = egg:SessionAuth#auth
        directory = myapp.accounts:directory
        login_path = /account/login
        timeout = 3600
        login_success_message = Hello again

    ``directory`` is a ``module:name`` import string naming an
    ``AccountDirectory``, or a class or function returning one.
    ``timeout`` is in seconds.  Messages are given as ``NAME_message``
    options with plain text.
    """
    if isinstance(directory, str):
        directory = lookup_object(directory)
        if (isinstance(directory, type)
                or not hasattr(directory, 'find_login_account')):
            directory = directory()
    config = {}
    if login_path:
        config['login_path'] = login_path
    if logout_path:
        config['logout_path'] = logout_path
    if timeout is not None:
        config['timeout'] = asint(timeout)
    message_config = {}
    for name, value in messages.items():
        if not name.endswith('_message'):
            raise ConfigError('Unknown option for the auth middleware: %r'
                              % name)
        message_config[name[:-len('_message')]] = value
    if message_config:
        config['messages'] = message_config
    return AuthSessionMiddleware(app, directory, **config)
