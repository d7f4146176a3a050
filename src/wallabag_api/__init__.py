from .exceptions import WallabagError, AuthenticationError
from .base_client import BaseAPIClient, RequestResult
from .events import EventHooks, HttpMethod, PreRequestEvent
from .auth import TokenManager, TokenPair
from .client import WallabagClient
from .config import ClientConfig

__all__ = [
    "AuthenticationError",
    "BaseAPIClient",
    "ClientConfig",
    "EventHooks",
    "HttpMethod",
    "PreRequestEvent",
    "RequestResult",
    "TokenManager",
    "TokenPair",
    "WallabagClient",
    "WallabagError",
]
