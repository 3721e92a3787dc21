# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Helpers for running WSGI applications and wrapping their responses.
"""
import io

__all__ = ['add_close', 'raw_interactive', 'parse_status']


class add_close(object):
    """
    An iterable that iterates over app_iter, then calls
    close_func.
    """

    def __init__(self, app_iterable, close_func):
        self.app_iterable = app_iterable
        self.app_iter = iter(app_iterable)
        self.close_func = close_func
        self._closed = False

    def __iter__(self):
        return self

    def __next__(self):
        return next(self.app_iter)

    def close(self):
        self._closed = True
        try:
            if hasattr(self.app_iterable, 'close'):
                self.app_iterable.close()
        finally:
            self.close_func()


def parse_status(status):
    """Returns the integer code of a ``'200 OK'`` style status"""
    return int(status.split(None, 1)[0])


def raw_interactive(application, path='', environ=None):
    """
    Runs the application in a fake environment built from ``path`` and
    the ``environ`` overrides.  A bytes ``wsgi.input`` is the request
    body.

    Returns ``(status, headers, body, errors)`` where ``body`` is bytes
    and ``errors`` is whatever was written to ``wsgi.errors``.
    """
    errors = io.StringIO()
    path_info, _, query = str(path).partition('?')
    full_environ = {
        'REQUEST_METHOD': 'GET',
        'SCRIPT_NAME': '',
        'PATH_INFO': path_info,
        'QUERY_STRING': query,
        'SERVER_NAME': 'localhost',
        'SERVER_PORT': '80',
        'SERVER_PROTOCOL': 'HTTP/1.0',
        'wsgi.version': (1, 0),
        'wsgi.url_scheme': 'http',
        'wsgi.input': b'',
        'wsgi.errors': errors,
        'wsgi.multithread': False,
        'wsgi.multiprocess': False,
        'wsgi.run_once': False,
        }
    full_environ.update(environ or {})
    body = full_environ['wsgi.input']
    if isinstance(body, bytes):
        full_environ['wsgi.input'] = io.BytesIO(body)
        full_environ['CONTENT_LENGTH'] = str(len(body))
    response = {}
    output = []

    def start_response(status, headers, exc_info=None):
        if exc_info:
            if output:
                raise exc_info[1].with_traceback(exc_info[2])
        elif response:
            raise AssertionError("start_response called twice")
        response['status'] = status
        response['headers'] = headers
        return output.append

    app_iter = application(full_environ, start_response)
    try:
        for chunk in app_iter:
            if not isinstance(chunk, bytes):
                raise ValueError(
                    "The app_iter response can only contain bytes; got: %r"
                    % (chunk,))
            if not response:
                raise AssertionError("Content sent without headers")
            output.append(chunk)
    finally:
        if hasattr(app_iter, 'close'):
            app_iter.close()
    return (response['status'], response['headers'], b''.join(output),
            errors.getvalue())
