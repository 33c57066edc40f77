# exceptions.py
"""
Errors raised by the cadence app.

InvalidInput is also a ValueError so plain callers can catch it the usual way;
views translate it into a 400.
"""


class CadenceError(Exception):
    """Base for everything the app raises on purpose."""


class InvalidInput(CadenceError, ValueError):
    """Bad pace/BPM format, non-positive denominators, bad track fields."""


class SessionStateError(CadenceError):
    """Illegal running-session transition (e.g. start twice)."""


class AuthError(CadenceError):
    """Spotify credentials missing or the token exchange was rejected."""


class UpstreamError(CadenceError):
    """Spotify answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int = 500, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
