# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Account directories

The authentication middleware never looks inside an account; it only
hands accounts and identifiers back to an ``AccountDirectory``.  Any
backing store can be used by subclassing it.  ``DictAccountDirectory``
keeps accounts in memory:

>>> directory = DictAccountDirectory()
>>> david = directory.add_account('david', 'snowy')
>>> directory.verify_password('david', 'snowy')
True
>>> directory.find_login_account(david) == david
True
>>> directory.find_login_account('mallory') is None
True
"""
import hashlib
import hmac
import os
import threading

from sessionauth.auth.config import ConfigError

__all__ = ['AccountDirectory', 'Account', 'ANONYMOUS',
           'DictAccountDirectory', 'hash_password', 'check_password',
           'make_directory']

HASH_NAME = 'sha256'
HASH_ITERATIONS = 100000


def hash_password(password, salt=None, iterations=HASH_ITERATIONS):
    """Returns ``'pbkdf2_sha256$iterations$salt$hash'`` for password"""
    if salt is None:
        salt = os.urandom(16).hex()
    digest = hashlib.pbkdf2_hmac(HASH_NAME, password.encode('utf-8'),
                                 salt.encode('ascii'), iterations)
    return 'pbkdf2_%s$%d$%s$%s' % (HASH_NAME, iterations, salt, digest.hex())


def check_password(password, hashed):
    try:
        algorithm, iterations, salt, _ = hashed.split('$')
        iterations = int(iterations)
    except (AttributeError, ValueError):
        return False
    if algorithm != 'pbkdf2_%s' % HASH_NAME:
        return False
    candidate = hash_password(password, salt, iterations)
    return hmac.compare_digest(candidate.encode('ascii'),
                               hashed.encode('ascii'))


class AccountDirectory(object):

    """
    This is the basic framework for an account directory.

    Identifiers passed to the lookup methods are either a username
    string or an account-shaped value (typically one read back out of
    a session), from which the directory extracts the username itself.
    """

    def is_account(self, value):
        """True if value has the shape of an account.

        This does not mean the account exists.
        """
        raise NotImplementedError

    def anonymous(self):
        """Returns the account used when nobody is authenticated"""
        raise NotImplementedError

    def find_login_account(self, identifier):
        """Returns an account that may log in, or None"""
        raise NotImplementedError

    def find_active_account(self, identifier):
        """Returns an account usable for per-request credentials, or None"""
        raise NotImplementedError

    def verify_password(self, identifier, password):
        raise NotImplementedError

    def username(self, account):
        """Returns the name put in ``REMOTE_USER`` for account, if any"""
        return None


class Account(object):
    """
    An account record.  ``login`` accounts may log in with the form and
    keep a session; accounts that are only ``active`` (machines, API
    clients) can still authenticate single requests with a key.
    """

    def __init__(self, username, password_hash, login=True, active=True):
        self.username = username
        self.password_hash = password_hash
        self.login = login
        self.active = active

    def __eq__(self, other):
        if not isinstance(other, Account):
            return NotImplemented
        return (self.username, self.password_hash, self.login,
                self.active) == (other.username, other.password_hash,
                                 other.login, other.active)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self.__class__, self.username))

    def __repr__(self):
        return '<Account %s>' % self.username


class AnonymousAccount(object):

    username = None

    def __eq__(self, other):
        return isinstance(other, AnonymousAccount)

    def __ne__(self, other):
        return not isinstance(other, AnonymousAccount)

    def __hash__(self):
        return hash(AnonymousAccount)

    def __repr__(self):
        return '<Anonymous>'

ANONYMOUS = AnonymousAccount()


class DictAccountDirectory(AccountDirectory):
    """
    Keeps accounts in a dictionary keyed by username.

    Lookups may run from many threads at once; ``add_account`` and
    ``remove_account`` take a lock so they can happen while the
    application is serving.
    """

    account_class = Account

    def __init__(self, accounts=None):
        self.lock = threading.Lock()
        self.accounts = {}
        for username, password in (accounts or {}).items():
            self.add_account(username, password)

    def add_account(self, username, password, login=True, active=True):
        account = self.account_class(username, hash_password(password),
                                     login=login, active=active)
        with self.lock:
            self.accounts[username] = account
        return account

    def remove_account(self, username):
        with self.lock:
            self.accounts.pop(username, None)

    def _lookup(self, identifier):
        if isinstance(identifier, str):
            username = identifier
        elif self.is_account(identifier):
            username = identifier.username
        else:
            return None
        return self.accounts.get(username)

    def is_account(self, value):
        return isinstance(value, Account)

    def anonymous(self):
        return ANONYMOUS

    def find_login_account(self, identifier):
        account = self._lookup(identifier)
        if account is not None and account.active and account.login:
            return account
        return None

    def find_active_account(self, identifier):
        account = self._lookup(identifier)
        if account is not None and account.active:
            return account
        return None

    def verify_password(self, identifier, password):
        account = self._lookup(identifier)
        if account is None or not isinstance(password, str):
            return False
        return check_password(password, account.password_hash)

    def username(self, account):
        if self.is_account(account):
            return account.username
        return None


def make_directory(global_conf, **local_conf):
    """
    Builds a ``DictAccountDirectory`` from ini options.  Each
    ``user.NAME = PASSWORD`` option adds a login account; each
    ``client.NAME = KEY`` option adds an account that can only use
    per-request credentials.
    """
    directory = DictAccountDirectory()
    for name, value in sorted(local_conf.items()):
        if name.startswith('user.'):
            directory.add_account(name[len('user.'):], value)
        elif name.startswith('client.'):
            directory.add_account(name[len('client.'):], value, login=False)
        else:
            raise ConfigError('Unknown option for the account directory: %r'
                             % name)
    return directory
