# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Derives the user for the application and the values written back
into the session.

Every function takes a ``Trace`` and reads the cached classification
and authentication result from it, so calling them in any order, or
more than once, gives the same answers without asking the directory
again.  ``None`` means "leave the session key alone".
"""
from sessionauth.auth.classify import (
    LOGIN, LOGOUT, ACTIVE_SESSION, PER_REQUEST)

__all__ = ['current_user', 'time_of_this_request', 'remember_session',
           'flash_message', 'session_attributes']


def current_user(trace):
    """The user the application sees; never None"""
    anonymous = trace.directory.anonymous()
    classification = trace.classification
    if classification in (LOGIN, ACTIVE_SESSION):
        user = trace.logged_in_user()
    elif classification == PER_REQUEST:
        user = trace.request_user()
    else:
        user = None
    if user is None:
        return anonymous
    return user


def time_of_this_request(trace):
    """
    Logins and sessions touch the timestamp even when authentication
    fails.
    """
    if trace.classification in (LOGIN, ACTIVE_SESSION):
        return trace.now()
    return None


def remember_session(trace):
    classification = trace.classification
    if classification == ACTIVE_SESSION:
        # Carried over even if the session did not authenticate
        return trace.request.remember_session
    if classification == LOGIN:
        if trace.logged_in_user() is not None and trace.request.remember_me:
            return True
        return None
    return None


def flash_message(trace):
    messages = trace.config['messages']
    classification = trace.classification
    if classification == LOGIN:
        if trace.logged_in_user() is not None:
            return messages['login_success'](trace.request)
        return messages['login_failure'](trace.request)
    if classification == LOGOUT:
        return messages['logout'](trace.request)
    return None


def session_attributes(trace):
    """
    The four session outputs, keyed by attribute name.
    ``logged_in_user`` is the authenticated account itself, so it is
    None (and left alone) when authentication failed.
    """
    return {
        'remember_session': remember_session(trace),
        'last_request_time': time_of_this_request(trace),
        'logged_in_user': trace.logged_in_user(),
        'flash_message': flash_message(trace),
        }
