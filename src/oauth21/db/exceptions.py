from __future__ import annotations


class DBUnavailableError(Exception):
    """Used whenever a database cannot be reached."""
