# (c) 2005 Ian Bicking and contributors; written for Paste (http://pythonpaste.org)
# Licensed under the MIT license: http://www.opensource.org/licenses/mit-license.php
"""
Small helpers that do not depend on the rest of SessionAuth
"""


class Unset(object):
    """Sentinel for values that have not been computed or supplied."""

    def __repr__(self):
        return '<Unset>'


UNSET = Unset()
