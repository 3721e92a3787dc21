# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Routines for testing WSGI applications, and account directories.

``TestApp`` runs an application in-process, keeping cookies between
requests like a browser::

    app = TestApp(SessionMiddleware(AuthSessionMiddleware(myapp, directory)))
    res = app.post('/login', {'username': 'david', 'password': 'snowy'})
    res = app.get('/private')
    assert 'david' in res

``RecordingDirectory`` wraps an ``AccountDirectory`` and records every
call made to it.
"""
import time
from http.cookies import SimpleCookie
from urllib.parse import urlencode

from sessionauth import wsgilib
from sessionauth.util import UNSET

__all__ = ['TestApp', 'TestResponse', 'AppError', 'RecordingDirectory']


class AppError(Exception):
    pass


class TestApp(object):

    # for py.test
    __test__ = False

    def __init__(self, app, extra_environ=None):
        self.app = app
        self.extra_environ = extra_environ or {}
        self.reset()

    def reset(self):
        self.cookies = {}

    def make_environ(self, extra_environ=None):
        environ = dict(self.extra_environ)
        environ.update(extra_environ or {})
        return environ

    def get(self, url, params=None, headers=None, extra_environ=None,
            status=None, expect_errors=False):
        # Hide from py.test:
        __tracebackhide__ = True
        if params:
            if not isinstance(params, str):
                params = urlencode(params)
            if '?' in url:
                url += '&'
            else:
                url += '?'
            url += params
        environ = self.make_environ(extra_environ)
        self._set_headers(environ, headers)
        return self.do_request(url, environ, status, expect_errors)

    def post(self, url, params=None, headers=None, extra_environ=None,
             status=None, expect_errors=False):
        __tracebackhide__ = True
        environ = self.make_environ(extra_environ)
        if params is None:
            params = ''
        if not isinstance(params, str):
            params = urlencode(params)
        body = params.encode('utf-8')
        environ['REQUEST_METHOD'] = 'POST'
        environ['CONTENT_TYPE'] = 'application/x-www-form-urlencoded'
        environ['wsgi.input'] = body
        self._set_headers(environ, headers)
        return self.do_request(url, environ, status, expect_errors)

    def _set_headers(self, environ, headers):
        for header, value in (headers or {}).items():
            environ['HTTP_%s' % header.replace('-', '_').upper()] = value

    def do_request(self, url, environ, status, expect_errors):
        __tracebackhide__ = True
        if self.cookies:
            c = SimpleCookie()
            for name, value in self.cookies.items():
                c[name] = value
            environ['HTTP_COOKIE'] = '; '.join(
                '%s=%s' % (name, morsel.coded_value)
                for name, morsel in c.items())
        captured = {}

        def capture(environ, start_response):
            captured['environ'] = environ
            return self.app(environ, start_response)

        start_time = time.time()
        raw_res = wsgilib.raw_interactive(capture, url, environ)
        res = TestResponse(self, *raw_res, total_time=time.time() - start_time)
        res.environ = captured['environ']
        if not expect_errors:
            self.check_status(status, res, url)
            self.check_errors(res)
        for header in res.all_headers('set-cookie'):
            c = SimpleCookie(header)
            for key, morsel in c.items():
                self.cookies[key] = morsel.value
        return res

    def check_status(self, status, res, url):
        __tracebackhide__ = True
        if status == '*':
            return
        if status is None:
            if res.status == 200 or (
                res.status >= 300 and res.status < 400):
                return
            raise AppError(
                "Bad response: %s (not 200 OK or 3xx redirect for %s)"
                % (res.full_status, url))
        if status != res.status:
            raise AppError(
                "Bad response: %s (not %s)" % (res.full_status, status))

    def check_errors(self, res):
        if res.errors:
            raise AppError(
                "Application had errors logged:\n%s" % res.errors)


class TestResponse(object):

    # for py.test
    __test__ = False

    def __init__(self, test_app, status, headers, body, errors,
                 total_time=None):
        self.test_app = test_app
        self.status = wsgilib.parse_status(status)
        self.full_status = status
        self.headers = headers
        self.body = body
        self.errors = errors
        self.time = total_time
        self.environ = None

    @property
    def text(self):
        return self.body.decode('utf-8')

    def header(self, name, default=UNSET):
        """
        Returns the named header; an error if there is not exactly one
        matching header (unless you give a default -- always an error
        if there is more than one header)
        """
        found = None
        for cur_name, value in self.headers:
            if cur_name.lower() == name.lower():
                assert not found, (
                    "Ambiguous header: %s matches %r and %r"
                    % (name, found, value))
                found = value
        if found is None:
            if default is UNSET:
                raise KeyError(
                    "No header found: %r (from %s)"
                    % (name, ', '.join([n for n, v in self.headers])))
            return default
        return found

    def all_headers(self, name):
        """
        Gets all headers, returns as a list
        """
        return [value for cur_name, value in self.headers
                if cur_name.lower() == name.lower()]

    @property
    def session(self):
        """The session dict the request used, if there was one"""
        factory = (self.environ or {}).get('sessionauth.session.factory')
        if factory is None:
            return None
        return factory()

    def __contains__(self, s):
        if isinstance(s, str):
            return s in self.text
        return s in self.body

    def __repr__(self):
        return '<Response %s %r>' % (self.full_status, self.body[:20])


class RecordingDirectory(object):
    """
    Wraps an account directory, recording each call as a
    ``(method_name, args)`` tuple in ``calls``.
    """

    recorded = ('is_account', 'anonymous', 'find_login_account',
                'find_active_account', 'verify_password', 'username')

    def __init__(self, directory):
        self.directory = directory
        self.calls = []

    def __getattr__(self, attr):
        value = getattr(self.directory, attr)
        if attr not in self.recorded:
            return value

        def recorder(*args):
            self.calls.append((attr, args))
            return value(*args)
        return recorder

    def count(self, method_name):
        return len([c for c in self.calls if c[0] == method_name])

    def reset(self):
        self.calls = []
