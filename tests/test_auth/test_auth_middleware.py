import logging
import threading

import pytest

import sessionauth
from sessionauth.auth.config import ConfigError
from sessionauth.auth.directory import (
    ANONYMOUS, Account, DictAccountDirectory, hash_password)
from sessionauth.auth.middleware import (
    AuthSessionMiddleware, end_login, make_auth_middleware, update_session)
from sessionauth.fixture import TestApp
from sessionauth.session import MemorySession, SessionMiddleware


def make_directory():
    directory = DictAccountDirectory({'david': 'snowy'})
    directory.add_account('cabinet1', '12345', login=False)
    return directory


directory = make_directory()
david = directory.accounts['david']
cabinet1 = directory.accounts['cabinet1']


def fixed_clock(now=123):
    return lambda: now


def expect(expected):
    """An application asserting that ``sessionauth.user`` is expected"""
    def application(environ, start_response):
        assert sessionauth.user._is_bound()
        assert sessionauth.user._current_obj() == expected
        assert environ['sessionauth.user'] == expected
        start_response('200 OK', [('Content-Type', 'text/plain')])
        return [repr(sessionauth.user).encode('utf-8')]
    return application


def run(application, url='/', session=None, form=None, clock=None,
        directory=directory, **config):
    """Runs one request; returns the session afterwards"""
    if session is None:
        session = {}
    app = AuthSessionMiddleware(application, directory,
                                clock=clock or fixed_clock(), **config)
    testapp = TestApp(app, extra_environ={
        'sessionauth.session.factory': lambda: session})
    if form is not None:
        testapp.post(url, form)
    else:
        testapp.get(url)
    assert not sessionauth.user._is_bound()
    return session


login_form = {'username': 'david', 'password': 'snowy'}


def base_session():
    return {'logged_in_user': david, 'last_request_time': 0,
            'remember_session': None}


def test_login():
    session = run(expect(david), '/login', form=login_form)
    assert session == {'logged_in_user': david, 'last_request_time': 123,
                       'flash_message': 'Welcome'}


def test_login_no_such_user():
    session = run(expect(ANONYMOUS), '/login',
                  form={'username': 'divad', 'password': 'snowy'})
    assert session == {'last_request_time': 123,
                       'flash_message': 'Incorrect credentials'}


def test_login_bad_password():
    session = run(expect(ANONYMOUS), '/login',
                  form={'username': 'david', 'password': 'abcabc'})
    assert session == {'last_request_time': 123,
                       'flash_message': 'Incorrect credentials'}


def test_failed_login_ends_previous_login():
    session = base_session()
    run(expect(ANONYMOUS), '/login', session=session,
        form={'username': 'david', 'password': 'abcabc'})
    assert 'logged_in_user' not in session


def test_remember_me():
    form = dict(login_form, remember_me='on')
    session = run(expect(david), '/login', form=form)
    assert session == {'logged_in_user': david, 'last_request_time': 123,
                       'flash_message': 'Welcome', 'remember_session': True}


def test_login_needs_post():
    session = run(expect(ANONYMOUS), '/login?username=david&password=snowy')
    assert session == {}


def test_per_request_auth():
    session = run(expect(cabinet1), '/?uid=cabinet1&key=12345')
    assert session == {}


def test_per_request_bad_key():
    session = run(expect(ANONYMOUS), '/?uid=cabinet1&key=00000')
    assert session == {}


def test_per_request_cannot_override_session():
    session = run(expect(david), '/?uid=cabinet1&key=12345',
                  session=base_session())
    assert session == {'logged_in_user': david, 'last_request_time': 123}


def test_session():
    session = run(expect(david), session=base_session())
    assert session == {'logged_in_user': david, 'last_request_time': 123}


def test_session_expiry():
    session = run(expect(ANONYMOUS), session=base_session(),
                  clock=fixed_clock(9999999999999))
    assert session == {'last_request_time': 9999999999999}


def test_remembered_session_does_not_expire():
    session = dict(base_session(), remember_session=True)
    session = run(expect(david), session=session,
                  clock=fixed_clock(9999999999999))
    assert session == {'logged_in_user': david,
                       'last_request_time': 9999999999999,
                       'remember_session': True}


def test_no_session_spoofing():
    session = {'logged_in_user': Account('mallory', hash_password('hacked')),
               'last_request_time': 0,
               'remember_session': True}
    session = run(expect(ANONYMOUS), session=session)
    # remember_session is carried over from the last session request
    assert session == {'last_request_time': 123, 'remember_session': True}


def test_removed_user_ends_session():
    accounts = make_directory()
    accounts.remove_account('david')
    session = run(expect(ANONYMOUS), session=base_session(),
                  directory=accounts)
    assert session == {'last_request_time': 123}


def test_logout():
    session = run(expect(ANONYMOUS), '/logout', session=base_session())
    assert session == {'flash_message': 'Bye'}


def test_bad_request_leaves_session_alone():
    session = {'cart': [1, 2], 'flash_message': 'old'}
    run(expect(ANONYMOUS), session=session)
    assert session == {'cart': [1, 2], 'flash_message': 'old'}


def test_other_keys_are_kept():
    session = dict(base_session(), cart=[1, 2])
    run(expect(david), session=session)
    assert session['cart'] == [1, 2]
    run(expect(ANONYMOUS), '/logout', session=session)
    assert session == {'cart': [1, 2], 'flash_message': 'Bye'}


def test_custom_config():
    failure = lambda req: 'No account for %s' % req.username
    session = run(expect(ANONYMOUS), '/signin',
                  form={'username': 'divad', 'password': 'x'},
                  login_path='/signin', messages={'login_failure': failure})
    assert session['flash_message'] == 'No account for divad'
    session = run(expect(ANONYMOUS), session=base_session(), timeout=60)
    assert 'logged_in_user' not in session


def test_remote_user():
    captured = {}

    def application(environ, start_response):
        captured.update(environ)
        start_response('200 OK', [('Content-Type', 'text/plain')])
        return [b'ok']

    run(application, '/login', form=login_form)
    assert captured['REMOTE_USER'] == 'david'
    assert captured['AUTH_TYPE'] == 'form'
    assert captured['sessionauth.classification'] == 'login'
    captured.clear()
    run(application, '/?uid=cabinet1&key=12345')
    assert captured['REMOTE_USER'] == 'cabinet1'
    assert captured['AUTH_TYPE'] == 'key'
    captured.clear()
    run(application, '/')
    assert 'REMOTE_USER' not in captured
    assert captured['sessionauth.classification'] == 'bad_request'


class PlainDirectory(object):
    """A directory with only the operations authentication needs"""

    def __init__(self, accounts):
        self.accounts = accounts

    def is_account(self, value):
        return isinstance(value, Account)

    def anonymous(self):
        return ANONYMOUS

    def find_login_account(self, identifier):
        account = self.find_active_account(identifier)
        if account is not None and account.login:
            return account
        return None

    def find_active_account(self, identifier):
        if isinstance(identifier, Account):
            identifier = identifier.username
        return self.accounts.get(identifier)

    def verify_password(self, identifier, password):
        return self.find_active_account(identifier) is not None \
            and password == 'snowy'


def test_directory_without_username():
    captured = {}

    def application(environ, start_response):
        captured.update(environ)
        start_response('200 OK', [('Content-Type', 'text/plain')])
        return [b'ok']

    plain = PlainDirectory({'david': david})
    session = run(application, '/login', form=login_form, directory=plain)
    assert session['logged_in_user'] == david
    assert captured['sessionauth.user'] == david
    assert 'REMOTE_USER' not in captured
    session = run(expect(david), '/', session=session, directory=plain)
    assert session['last_request_time'] == 123


def test_application_can_read_login_body():
    def application(environ, start_response):
        body = environ['wsgi.input'].read()
        start_response('200 OK', [('Content-Type', 'text/plain')])
        return [body]

    app = AuthSessionMiddleware(application, directory, clock=fixed_clock())
    testapp = TestApp(app, extra_environ={
        'sessionauth.session.factory': lambda: {}})
    res = testapp.post('/login', login_form)
    assert 'username=david' in res


def test_application_error_unbinds_user():
    def application(environ, start_response):
        assert sessionauth.user._current_obj() == david
        raise RuntimeError('application failed')

    with pytest.raises(RuntimeError):
        run(application, '/login', form=login_form)
    assert not sessionauth.user._is_bound()


def test_directory_error_propagates():
    class BrokenDirectory(DictAccountDirectory):
        def find_login_account(self, identifier):
            raise IOError('directory unavailable')

    with pytest.raises(IOError):
        run(expect(david), '/login', form=login_form,
            directory=BrokenDirectory())
    assert not sessionauth.user._is_bound()


def test_missing_session_middleware():
    app = TestApp(AuthSessionMiddleware(expect(ANONYMOUS), directory))
    with pytest.raises(ConfigError):
        app.get('/')


def test_bad_config_fails_early():
    with pytest.raises(ConfigError):
        AuthSessionMiddleware(expect(ANONYMOUS), directory, timeout=0)


def test_concurrent_requests_see_their_own_user():
    barrier = threading.Barrier(2, timeout=10)
    seen = {}

    def application(environ, start_response):
        barrier.wait()
        seen[environ['PATH_INFO']] = sessionauth.user._current_obj()
        barrier.wait()
        start_response('200 OK', [('Content-Type', 'text/plain')])
        return [b'ok']

    def login():
        run(application, '/login', form=login_form)

    def per_request():
        run(application, '/api?uid=cabinet1&key=12345')

    threads = [threading.Thread(target=login),
               threading.Thread(target=per_request)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert seen == {'/login': david, '/api': cabinet1}


def test_logging(caplog):
    caplog.set_level(logging.DEBUG, logger='sessionauth')
    run(expect(ANONYMOUS), '/login',
        form={'username': 'david', 'password': 'abcabc'})
    messages = [r.getMessage() for r in caplog.records]
    assert "Login failed for 'david'" in messages
    assert 'POST /login classified as login (user -)' in messages
    assert not [m for m in messages if 'abcabc' in m]


def test_update_session_skips_none():
    session = {'a': 1, 'b': 2}
    update_session(session, {'a': None, 'b': 3, 'c': None, 'd': 4})
    assert session == {'a': 1, 'b': 3, 'd': 4}
    end_login(session, ['a', 'missing'])
    assert session == {'b': 3, 'd': 4}


def test_full_stack_login_and_logout():
    now = [1000]
    store = {}
    app = AuthSessionMiddleware(expect_any, directory, clock=lambda: now[0])
    app = TestApp(SessionMiddleware(app, session_class=MemorySession,
                                    sessions=store))
    res = app.get('/')
    assert '<Anonymous>' in res
    res = app.post('/login', login_form)
    assert '<Account david>' in res
    assert res.session['flash_message'] == 'Welcome'
    now[0] += 60
    res = app.get('/private')
    assert '<Account david>' in res
    assert res.session['last_request_time'] == 1060
    res = app.get('/logout')
    assert '<Anonymous>' in res
    assert res.session == {'flash_message': 'Bye'}
    res = app.get('/private')
    assert '<Anonymous>' in res


def test_full_stack_expiry():
    now = [1000]
    app = AuthSessionMiddleware(expect_any, directory, clock=lambda: now[0])
    app = TestApp(SessionMiddleware(app, session_class=MemorySession,
                                    sessions={}))
    app.post('/login', login_form)
    now[0] += 31 * 60
    assert '<Anonymous>' in app.get('/private')
    # the expired login is gone, not revived by the new timestamp
    now[0] += 1
    assert '<Anonymous>' in app.get('/private')


def expect_any(environ, start_response):
    start_response('200 OK', [('Content-Type', 'text/plain')])
    return [repr(sessionauth.user).encode('utf-8')]


def test_make_auth_middleware():
    app = make_auth_middleware(
        expect_any, {}, directory=directory,
        login_path='/signin', timeout='60',
        login_success_message='Hello again')
    assert app.directory is directory
    assert app.config['login_path'] == '/signin'
    assert app.config['logout_path'] == '/logout'
    assert app.config['timeout'] == 60
    assert app.config['messages']['login_success'](None) == 'Hello again'
    assert app.directory.find_login_account('david') is not None


def test_make_auth_middleware_directory_class():
    app = make_auth_middleware(
        expect_any, {},
        directory='sessionauth.auth.directory:DictAccountDirectory')
    assert isinstance(app.directory, DictAccountDirectory)
    assert app.directory.find_login_account('david') is None
    with pytest.raises(ConfigError):
        make_auth_middleware(expect_any, {}, directory=directory,
                             colour='blue')
