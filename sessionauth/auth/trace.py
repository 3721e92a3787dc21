# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
The evaluation state of a single request.

A ``Trace`` carries the inputs of one evaluation (request view,
account directory, configuration and clock) and caches what is
expensive or must not change once seen: the current time, the
classification, and the authenticated user.  Each cache is filled at
most once; a failed authentication caches ``None`` and is not retried.
A Trace belongs to one request and is dropped when it finishes.
"""
import time

from sessionauth.auth import classify
from sessionauth.util import UNSET

__all__ = ['Trace', 'check_login', 'check_session', 'check_request']


def check_authentication(trace, identifier, authenticator):
    account = trace.directory.find_login_account(identifier)
    if account is None:
        return None
    return authenticator(trace, account)


def _login_authenticator(trace, account):
    if trace.directory.verify_password(account, trace.request.password):
        return account
    return None


def _session_authenticator(trace, account):
    req = trace.request
    if req.remember_session is True:
        return account
    elapsed = trace.now() - req.last_request_time
    if elapsed <= trace.config['timeout']:
        return account
    return None


def check_login(trace):
    """The account for the submitted username and password, or None"""
    return check_authentication(trace, trace.request.username,
                                _login_authenticator)


def check_session(trace):
    """
    The account named by the session, or None if it no longer exists
    or the session has expired.  Sessions that asked to be remembered
    do not expire.
    """
    return check_authentication(trace, trace.request.logged_in_user,
                                _session_authenticator)


def check_request(trace):
    """The account for the uid and key of a single request, or None"""
    req = trace.request
    directory = trace.directory
    account = directory.find_active_account(req.uid)
    if account is None:
        return None
    if directory.verify_password(req.uid, req.key):
        return account
    return None


class Trace(object):

    def __init__(self, request, directory, config, clock=None):
        self.request = request
        self.directory = directory
        self.config = config
        self.clock = clock or time.time
        self._now = UNSET
        self._classification = UNSET
        self._logged_in_user = UNSET
        self._request_user = UNSET

    def now(self):
        """The time of this request, read from the clock once"""
        if self._now is UNSET:
            self._now = self.clock()
        return self._now

    @property
    def classification(self):
        if self._classification is UNSET:
            self._classification = classify.classify(self)
        return self._classification

    def logged_in_user(self):
        """
        The account authenticated by a login or an active session, or
        None.  Other classifications never authenticate this way.
        """
        if self._logged_in_user is UNSET:
            if self.classification == classify.LOGIN:
                self._logged_in_user = check_login(self)
            elif self.classification == classify.ACTIVE_SESSION:
                self._logged_in_user = check_session(self)
            else:
                self._logged_in_user = None
        return self._logged_in_user

    def request_user(self):
        """The account authenticated by per-request credentials, or None"""
        if self._request_user is UNSET:
            if self.classification == classify.PER_REQUEST:
                self._request_user = check_request(self)
            else:
                self._request_user = None
        return self._request_user
