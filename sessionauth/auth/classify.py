# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Sorts a request into exactly one of five classifications.

The predicates are checked in order of precedence and each one
excludes the ones before it, so at most one of ``is_login``,
``is_logout``, ``is_active_session`` and ``is_per_request`` is true;
``is_bad_request`` is true when none of them are.  Every predicate
takes a ``Trace`` and looks only at ``trace.request`` (and, for the
structural account check, ``trace.directory``).
"""

__all__ = ['LOGIN', 'LOGOUT', 'ACTIVE_SESSION', 'PER_REQUEST',
           'BAD_REQUEST', 'classify', 'is_login', 'is_logout',
           'is_active_session', 'is_per_request', 'is_bad_request']

LOGIN = 'login'
LOGOUT = 'logout'
ACTIVE_SESSION = 'active_session'
PER_REQUEST = 'per_request'
BAD_REQUEST = 'bad_request'


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_login(trace):
    req = trace.request
    return (req.method == 'POST'
            and req.path == trace.config['login_path']
            and isinstance(req.username, str)
            and isinstance(req.password, str))


def is_logout(trace):
    return (not is_login(trace)
            and trace.request.path == trace.config['logout_path'])


def is_active_session(trace):
    """
    The session carries a timestamp and something shaped like an
    account.  Whether that account really exists is decided later,
    when the session is authenticated.
    """
    req = trace.request
    return (not is_login(trace)
            and not is_logout(trace)
            and _is_number(req.last_request_time)
            and bool(trace.directory.is_account(req.logged_in_user)))


def is_per_request(trace):
    req = trace.request
    return (not (is_login(trace)
                 or is_logout(trace)
                 or is_active_session(trace))
            and isinstance(req.uid, str)
            and isinstance(req.key, str))


def is_bad_request(trace):
    return not (is_login(trace)
                or is_logout(trace)
                or is_active_session(trace)
                or is_per_request(trace))


def classify(trace):
    """Returns the classification constant for the request"""
    if is_login(trace):
        return LOGIN
    if is_logout(trace):
        return LOGOUT
    if is_active_session(trace):
        return ACTIVE_SESSION
    if is_per_request(trace):
        return PER_REQUEST
    return BAD_REQUEST
