"""Exception types raised across twitchplays."""


class TwitchPlaysError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(TwitchPlaysError):
    """Client registration is missing a required field."""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class AuthorizationError(TwitchPlaysError):
    """The browser authorization flow did not produce a usable code."""


class TokenRefreshError(TwitchPlaysError):
    """Token validation or refresh failed for a reason other than an invalid token."""


class ChatConnectionError(TwitchPlaysError):
    """The chat session could not be established within the retry limit."""
