"""Exceptions raised by trainmap."""


class MalformedSnapshotError(ValueError):
    """A snapshot entity is missing a required field or holds an invalid value."""
