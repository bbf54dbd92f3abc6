from typing import Any, Optional


class PermcheckException(Exception):
    """Base class for all permcheck exceptions"""

    _msg_fmt = "An unknown exception occurred."

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        if not message:
            message = self._msg_fmt % kwargs

        super().__init__(message)


class LookupFailure(PermcheckException):
    """The group lookup service failed for a reason other than an unknown user.

    Raised by the group cache and the permission checker. A failed lookup is
    never cached, so calling again retries the lookup.
    """

    _msg_fmt = "cannot fetch groups: %(cause)s"


class UserNotFound(PermcheckException):
    """Raised by GroupLookup implementations when the user does not exist."""

    _msg_fmt = "user %(username)s not found"


class NoDeclaredUser(PermcheckException):
    _msg_fmt = "no username declared"


class ConfigError(PermcheckException):
    _msg_fmt = "Invalid configuration."
