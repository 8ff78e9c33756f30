"""Exception types raised by the harness."""

from __future__ import annotations


class HarnessError(Exception):
    """Base exception for all sauce-e2e errors."""


# ── Setup ───────────────────────────────────────────────────────


class ConfigurationError(HarnessError):
    """Invalid harness configuration or browser matrix."""


class CredentialsError(HarnessError):
    """No username/access key could be found."""


# ── Remote sessions ─────────────────────────────────────────────


class SessionError(HarnessError):
    """A remote browser session could not be used."""

    error_kind = "session_error"


class AuthenticationError(SessionError):
    """The remote endpoint rejected the username/access key."""

    error_kind = "auth_failed"


class SessionConnectionError(SessionError):
    """The remote endpoint was unreachable or refused to start a session."""

    error_kind = "connection_failed"


class SessionStateError(SessionError):
    """Operation not valid for the session's current lifecycle state."""

    error_kind = "invalid_state"
