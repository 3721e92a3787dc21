from setuptools import setup, find_packages

__version__ = "0.1"

setup(name="SessionAuth",
      version=__version__,
      description="Session based authentication middleware for WSGI",
      long_description="""\
WSGI middleware that decides who is making each request and keeps the
login state in the session.

A request is a login (a POST of username and password to the login
path), a logout, a request in an active login session, or a single
request carrying its own ``uid`` and ``key``.  The user is made
available to the application as ``sessionauth.user`` for the length of
the request, and the login time, remember-me flag and a flash message
are written back into the session.

Includes:

* ``sessionauth.auth.middleware``: the authentication middleware

* ``sessionauth.auth.directory``: the account directory interface and
  an in-memory implementation

* ``sessionauth.session``: cookie keyed sessions stored in files or
  memory

* ``sessionauth.registry``: request-local module globals

* ``sessionauth.fixture``: in-process testing of WSGI applications
""",
      classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
        "Topic :: Software Development :: Libraries :: Python Modules",
        ],
      keywords='web wsgi authentication session middleware',
      license="MIT",
      packages=find_packages(exclude=['tests', 'tests.*']),
      python_requires='>=3.8',
      zip_safe=False,
      install_requires=[
        'PasteDeploy',
        ],
      extras_require={
        'testing': ['pytest'],
        },
      entry_points="""
      [paste.filter_app_factory]
      auth = sessionauth.auth.middleware:make_auth_middleware
      session = sessionauth.session:make_session_middleware
      """,
      )
