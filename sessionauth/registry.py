# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""Registry for request-local module globals

A module global that always refers to the object for the current
request has to be a stacked thread-local: middleware pushes the object
before calling the application and pops it afterwards, and a
middleware appearing more than once in a stack pushes a new object on
top of the previous one.

``sessionauth.user`` is such a proxy:

.. code-block:: Python

    import sessionauth

    def application(environ, start_response):
        name = sessionauth.user.username
        ...

Objects are registered through a ``Registry`` kept in the environ under
``sessionauth.registry``.  Each middleware calls ``prepare`` to open a
context and ``cleanup`` to pop everything it registered:

.. code-block:: Python

    reg = environ.setdefault('sessionauth.registry', Registry())
    reg.prepare()
    reg.register(myglobal, obj)
    try:
        return application(environ, start_response)
    finally:
        reg.cleanup()

The registration ends when the application returns.  An iterable
response that still needs the object while it is being consumed must
keep its own reference to it.
"""
import threading

__all__ = ['StackedObjectProxy', 'Registry']


class StackedObjectProxy(object):
    """Track an object instance internally using a stack

    Attribute and item access is forwarded to the object on top of the
    stack for the current thread.  New objects are added with
    ``_push_object`` and removed with ``_pop_object``.
    """

    def __init__(self, default=None, name="Default"):
        """Create a new StackedObjectProxy

        If a default is given, it is used in every thread where no other
        object has been pushed.
        """
        self.__dict__['_name'] = name
        self.__dict__['local'] = threading.local()
        if default is not None:
            self.__dict__['_default_object'] = default

    def __getattr__(self, attr):
        return getattr(self._current_obj(), attr)

    def __setattr__(self, attr, value):
        setattr(self._current_obj(), attr, value)

    def __delattr__(self, name):
        delattr(self._current_obj(), name)

    def __getitem__(self, key):
        return self._current_obj()[key]

    def __setitem__(self, key, value):
        self._current_obj()[key] = value

    def __delitem__(self, key):
        del self._current_obj()[key]

    def __eq__(self, other):
        return self._current_obj() == other

    def __ne__(self, other):
        return self._current_obj() != other

    __hash__ = object.__hash__

    def __bool__(self):
        return bool(self._current_obj())

    def __repr__(self):
        try:
            return repr(self._current_obj())
        except TypeError:
            return '<%s.%s object at 0x%08x>' % (__name__,
                                                   self.__class__.__name__,
                                                   id(self))

    def _current_obj(self):
        """Returns the current active object being proxied to

        In the event that no object was pushed, the default object if
        provided will be used.  Otherwise, a TypeError will be raised.
        """
        objects = getattr(self.__dict__['local'], 'objects', None)
        if objects:
            return objects[-1]
        if '_default_object' in self.__dict__:
            return self.__dict__['_default_object']
        raise TypeError(
            'No object (name: %s) has been registered for this '
            'thread' % self.__dict__['_name'])

    def _is_bound(self):
        """True if an object was pushed in this thread"""
        return bool(getattr(self.__dict__['local'], 'objects', None))

    def _push_object(self, obj):
        """Make ``obj`` the active object for this thread-local.

        This should be used like:

        .. code-block:: Python

            obj = yourobject()
            module.glob = StackedObjectProxy()
            module.glob._push_object(obj)
            try:
                ... do stuff ...
            finally:
                module.glob._pop_object(obj)
        """
        local = self.__dict__['local']
        if not hasattr(local, 'objects'):
            local.objects = []
        local.objects.append(obj)

    def _pop_object(self, obj=None):
        """Remove a thread-local object.

        If ``obj`` is given, it is checked against the popped object and an
        error is raised if they don't match.
        """
        local = self.__dict__['local']
        if not getattr(local, 'objects', None):
            raise AssertionError('No object has been registered for this thread')
        popped = local.objects.pop()
        if obj is not None and popped is not obj:
            raise AssertionError(
                'The object popped (%s) is not the same as the object '
                'expected (%s)' % (popped, obj))


class Registry(object):
    """Track objects and stacked object proxies for removal

    One Registry lives in the environ for the whole request no matter
    how many middlewares use it.  Each middleware calls ``prepare`` to
    start its own context, a dict keyed by the id of the proxy with
    ``(proxy, obj)`` values.  The last context in ``reglist`` is the one
    currently executing.
    """

    def __init__(self):
        self.reglist = []

    def prepare(self):
        """Start a new registry context"""
        self.reglist.append({})

    def register(self, stacked, obj):
        """Register an object with a StackedObjectProxy"""
        myreglist = self.reglist[-1]
        if id(stacked) in myreglist:
            # Re-registering in the same context replaces the object
            stacked._pop_object(myreglist[id(stacked)][1])
        stacked._push_object(obj)
        myreglist[id(stacked)] = (stacked, obj)

    def cleanup(self):
        """Remove all objects from all StackedObjectProxy instances that
        were tracked at this Registry context"""
        for stacked, obj in self.reglist[-1].values():
            stacked._pop_object(obj)
        self.reglist.pop()
