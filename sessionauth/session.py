# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php

"""
Creates a session object; then in your application, use::

    environ['sessionauth.session.factory']()

This will return a dictionary.  The contents of this dictionary will
be saved when the request is completed (when the response iterable is
closed).  The session is created when you first fetch the dictionary,
and a cookie holding its id is sent in that case.

Two stores are provided: ``FileSession`` pickles each session to a
file in a directory, and ``MemorySession`` keeps sessions in a
process-wide dictionary (useful for a single process and for tests).
An empty session is removed from its store.

By default ``FileSession`` keeps its files in a ``sessionauth-UID``
directory under the system temporary directory, readable only by the
user running the application.  Anyone who can write to the session
directory can log in as any user, so a configured
``session_file_path`` must be private too.

@@: There is no locking across processes, so concurrent requests for
the same session may overwrite each other's changes.
"""

import os
import pickle
import secrets
import stat
import tempfile
import threading
from http.cookies import SimpleCookie

from paste.deploy.converters import asbool

from sessionauth import wsgilib
from sessionauth.auth.config import ConfigError
from sessionauth.request import get_cookies

__all__ = ['SessionMiddleware', 'SessionFactory', 'FileSession',
           'MemorySession', 'default_session_file_path',
           'make_session_middleware']


class SessionMiddleware(object):

    environ_key = 'sessionauth.session.factory'

    def __init__(self, application, **factory_kw):
        self.application = application
        self.factory_kw = factory_kw

    def __call__(self, environ, start_response):
        session_factory = SessionFactory(environ, **self.factory_kw)
        environ[self.environ_key] = session_factory

        def session_start_response(status, headers, exc_info=None):
            if session_factory.created:
                headers.append(session_factory.set_cookie_header())
            return start_response(status, headers, exc_info)

        try:
            app_iter = self.application(environ, session_start_response)
        except Exception:
            # Nothing from a failed request is saved
            session_factory.discard()
            raise
        if session_factory.used:
            return wsgilib.add_close(app_iter, session_factory.close)
        return app_iter


class SessionFactory(object):

    def __init__(self, environ, cookie_name='_SID_', session_class=None,
                 secure=False, **session_class_kw):
        self.created = False
        self.used = False
        self.environ = environ
        self.cookie_name = cookie_name
        self.secure = secure
        self.session = None
        self.session_class = session_class or FileSession
        self.session_class_kw = session_class_kw

    def __call__(self):
        self.used = True
        if self.session is not None:
            return self.session.data()
        cookies = get_cookies(self.environ)
        session = None
        if self.cookie_name in cookies:
            self.sid = cookies[self.cookie_name].value
            try:
                session = self.session_class(self.sid, create=False,
                                             **self.session_class_kw)
            except KeyError:
                # Invalid or expired SID
                pass
        if session is None:
            self.created = True
            self.sid = self.make_sid()
            session = self.session_class(self.sid, create=True,
                                         **self.session_class_kw)
        self.session = session
        return session.data()

    def make_sid(self):
        return secrets.token_hex(16)

    def set_cookie_header(self):
        c = SimpleCookie()
        c[self.cookie_name] = self.sid
        c[self.cookie_name]['path'] = '/'
        c[self.cookie_name]['httponly'] = True
        if self.secure:
            c[self.cookie_name]['secure'] = True
        name, value = str(c).split(': ', 1)
        return (name, value)

    def close(self):
        if self.session is not None:
            self.session.close()

    def discard(self):
        self.session = None


def default_session_file_path():
    """
    Returns (creating it if needed) a directory for session files that
    only the current user can access
    """
    path = os.path.join(tempfile.gettempdir(),
                        'sessionauth-%d' % os.getuid())
    os.makedirs(path, mode=0o700, exist_ok=True)
    st = os.lstat(path)
    if (not stat.S_ISDIR(st.st_mode) or st.st_uid != os.getuid()
            or st.st_mode & 0o077):
        raise ConfigError(
            'Session directory %s is not private to this user' % path)
    return path


def _valid_sid(sid):
    return bool(sid) and all(c in '0123456789abcdef' for c in sid)


class FileSession(object):

    def __init__(self, sid, create=False, session_file_path=None):
        if not _valid_sid(sid):
            raise KeyError(sid)
        self.session_file_path = (session_file_path
                                  or default_session_file_path())
        self.sid = sid
        if not create:
            if not os.path.exists(self.filename()):
                raise KeyError(sid)
        self._data = None

    def filename(self):
        return os.path.join(self.session_file_path, self.sid)

    def data(self):
        if self._data is not None:
            return self._data
        if os.path.exists(self.filename()):
            with open(self.filename(), 'rb') as f:
                self._data = pickle.load(f)
        else:
            self._data = {}
        return self._data

    def close(self):
        if self._data is None:
            return
        filename = self.filename()
        if not self._data:
            if os.path.exists(filename):
                os.unlink(filename)
            return
        tmp = filename + '.tmp'
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            pickle.dump(self._data, f)
        os.replace(tmp, filename)


class MemorySession(object):

    sessions = {}
    lock = threading.Lock()

    def __init__(self, sid, create=False, sessions=None):
        if sessions is not None:
            self.sessions = sessions
        self.sid = sid
        with self.lock:
            if not create and sid not in self.sessions:
                raise KeyError(sid)
            # Work on a copy so an unfinished request leaves the store alone
            self._data = dict(self.sessions.get(sid, {}))

    def data(self):
        return self._data

    def close(self):
        with self.lock:
            if self._data:
                self.sessions[self.sid] = dict(self._data)
            else:
                self.sessions.pop(self.sid, None)


def make_session_middleware(app, global_conf, cookie_name='_SID_',
                            store='file', session_file_path=None,
                            secure=False):
    """
    Paste Deploy entry point::

        [filter:session]
        use = egg:SessionAuth#session
        store = file
        session_file_path = %(here)s/sessions
        secure = true
    """
    kw = dict(cookie_name=cookie_name, secure=asbool(secure))
    if store == 'file':
        kw['session_class'] = FileSession
        kw['session_file_path'] = (session_file_path
                                   or global_conf.get('session_file_path'))
    elif store == 'memory':
        kw['session_class'] = MemorySession
    else:
        raise ConfigError('Unknown session store: %r' % store)
    return SessionMiddleware(app, **kw)
