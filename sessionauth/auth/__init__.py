# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Package for deciding who is making a request.

``classify`` sorts a request into login, logout, active session,
per-request credential or bad request; ``trace`` holds the state of a
single evaluation and authenticates the user at most once;
``attributes`` derives what is written back into the session; and
``middleware`` ties these together around a WSGI application.
"""
