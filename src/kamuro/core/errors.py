"""
Error taxonomy.

Only `InvalidInput` is ever raised across a public call boundary. Location errors are
recorded by the location controller as its single latest-error value, and search errors
are swallowed by the search service.
"""

from __future__ import annotations


class KamuroError(Exception):
    """Base class for all Kamuro errors."""


class InvalidInput(KamuroError, ValueError):
    """A time lag, temperature or distance that cannot be used in a calculation."""


class LocationError(KamuroError):
    """Base for errors reported by the location subsystem.

    `str(error)` is the human-readable message shown to the user.
    """


class PermissionDenied(LocationError):
    """Location authorization was denied or restricted. Not retried automatically."""


class LocationFixFailed(LocationError):
    """A transient hardware/signal failure while obtaining a fix."""


class SearchFailed(KamuroError):
    """Transport or service failure during place search."""
