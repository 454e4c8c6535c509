"""Exceptions shared across the lesson engine."""


class StoreError(Exception):
    """The data store could not be read or written."""


class NotFoundError(StoreError):
    """The requested row does not exist."""
