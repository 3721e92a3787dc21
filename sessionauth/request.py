# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
This module maps a WSGI request onto the fields the authentication
middleware looks at.

   * get_cookies(environ)
   * parse_querystring(environ)
   * parse_formvars(environ)
   * AuthRequest.from_environ(environ, session)

"""
import io
from http.cookies import SimpleCookie
from urllib.parse import parse_qsl

__all__ = ['get_cookies', 'parse_querystring', 'parse_formvars',
           'AuthRequest']

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'


def get_cookies(environ):
    """
    Gets a cookie object (which is a dictionary-like object) from the
    request environment; caches this value in case get_cookies is
    called again for the same request.
    """
    header = environ.get('HTTP_COOKIE', '')
    if 'sessionauth.cookies' in environ:
        cookies, check_header = environ['sessionauth.cookies']
        if check_header == header:
            return cookies
    cookies = SimpleCookie()
    cookies.load(header)
    environ['sessionauth.cookies'] = (cookies, header)
    return cookies


def parse_querystring(environ):
    """
    Parses a query string into a list like ``[(name, value)]``.
    Caches this value in case parse_querystring is called again
    for the same request.
    """
    source = environ.get('QUERY_STRING', '')
    if not source:
        return []
    if 'sessionauth.parsed_querystring' in environ:
        parsed, check_source = environ['sessionauth.parsed_querystring']
        if check_source == source:
            return parsed
    parsed = parse_qsl(source, keep_blank_values=True)
    environ['sessionauth.parsed_querystring'] = (parsed, source)
    return parsed


def parse_formvars(environ):
    """Parses an urlencoded POST body, returning a dictionary.

    Keys that appear more than once keep their last value.  Other
    content types (and non-POST requests) give an empty dictionary.

    The body is buffered and ``wsgi.input`` is replaced with the
    buffer, so the application can still read the body itself.
    """
    if environ.get('REQUEST_METHOD', 'GET') != 'POST':
        return {}
    content_type = environ.get('CONTENT_TYPE', '')
    if content_type.split(';', 1)[0].strip().lower() != FORM_CONTENT_TYPE:
        return {}
    if 'sessionauth.parsed_formvars' in environ:
        parsed, check_input = environ['sessionauth.parsed_formvars']
        if check_input is environ['wsgi.input']:
            return parsed
    try:
        length = int(environ.get('CONTENT_LENGTH') or 0)
    except ValueError:
        length = 0
    body = environ['wsgi.input'].read(length) if length > 0 else b''
    environ['wsgi.input'] = io.BytesIO(body)
    parsed = dict(parse_qsl(body.decode('latin-1'), keep_blank_values=True,
                            encoding='utf-8', errors='replace'))
    environ['sessionauth.parsed_formvars'] = (parsed, environ['wsgi.input'])
    return parsed


def _truthy(value):
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in ('', '0', 'false', 'off', 'no')
    return bool(value)


class AuthRequest(object):
    """
    Read-only view of the parts of a request that decide who is
    making it.

    Session values (``last_request_time``, ``logged_in_user``,
    ``remember_session``) are copied out of the session dict when the
    view is built, so later writes to the session do not change it.
    The names used in the session, the login form and the query string
    are class attributes; subclass to rename them.
    """

    session_last_request_time = 'last_request_time'
    session_logged_in_user = 'logged_in_user'
    session_remember = 'remember_session'
    session_flash_message = 'flash_message'

    form_username = 'username'
    form_password = 'password'
    form_remember_me = 'remember_me'

    query_uid = 'uid'
    query_key = 'key'

    def __init__(self, path='', method='GET', last_request_time=None,
                 logged_in_user=None, remember_session=None, username=None,
                 password=None, remember_me=False, uid=None, key=None):
        values = dict(
            path=path, method=method.upper(),
            last_request_time=last_request_time,
            logged_in_user=logged_in_user,
            remember_session=remember_session,
            username=username, password=password,
            remember_me=_truthy(remember_me),
            uid=uid, key=key)
        self.__dict__.update(values)

    @classmethod
    def from_environ(cls, environ, session=None):
        session = session or {}
        formvars = parse_formvars(environ)
        queryvars = dict(parse_querystring(environ))
        return cls(
            path=environ.get('SCRIPT_NAME', '') + environ.get('PATH_INFO', ''),
            method=environ.get('REQUEST_METHOD', 'GET'),
            last_request_time=session.get(cls.session_last_request_time),
            logged_in_user=session.get(cls.session_logged_in_user),
            remember_session=session.get(cls.session_remember),
            username=formvars.get(cls.form_username),
            password=formvars.get(cls.form_password),
            remember_me=formvars.get(cls.form_remember_me),
            uid=queryvars.get(cls.query_uid),
            key=queryvars.get(cls.query_key))

    def session_keys(self):
        """Maps output attribute names to the session keys they are
        stored under"""
        return {
            'logged_in_user': self.session_logged_in_user,
            'last_request_time': self.session_last_request_time,
            'remember_session': self.session_remember,
            'flash_message': self.session_flash_message,
            }

    def __setattr__(self, attr, value):
        raise AttributeError('%s is read-only' % self.__class__.__name__)

    def __delattr__(self, attr):
        raise AttributeError('%s is read-only' % self.__class__.__name__)

    def __repr__(self):
        # never show secrets
        return '<%s %s %s>' % (self.__class__.__name__, self.method,
                               self.path)
