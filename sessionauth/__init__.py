# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Session based authentication middleware for WSGI applications.

The user for the current request is available as ``sessionauth.user``
while the application runs under
``sessionauth.auth.middleware.AuthSessionMiddleware``.
"""
from sessionauth.registry import StackedObjectProxy

__version__ = '0.1'

user = StackedObjectProxy(name='user')
