"""Exceptions for giki."""


class GikiError(Exception):
    """Base class for all giki errors."""


class ValidationError(GikiError):
    """Raised when user input is rejected before any remote call is made.

    Covers empty commit messages, empty change sets, reserved characters or
    ``..`` segments in paths, renames onto the same path or onto an existing
    path, and folders moved inside themselves.  Never retried.
    """


class RemoteError(GikiError):
    """Raised when a call to the repository service fails."""


class NotFoundError(RemoteError):
    """Raised when a file, directory or branch does not exist remotely.

    Separate from :class:`RemoteError` so callers can fall back to a
    "not found" view instead of a generic failure.
    """


class ConfigError(GikiError):
    """Raised when the configuration file cannot be parsed."""
