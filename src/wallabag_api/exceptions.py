class WallabagError(Exception):
    """Base class for every error raised by the wallabag API client."""


class AuthenticationError(WallabagError):
    """
    Raised when no usable access token is available, or when the OAuth
    token endpoint rejects a credential or refresh-token exchange.
    """
