from typing import Optional
import requests

from .base_client import BaseAPIClient
from .events import EventHooks
from .config import ClientConfig
from .auth import TokenManager, TokenPair


class WallabagClient(BaseAPIClient):
    """
    Central entry point for the wallabag REST API.

    Owns the configuration, the token manager and one HTTP session shared
    by the token endpoint and the API calls.

    Example
    -------
    >>> with WallabagClient("https://app.wallabag.it", "id", "secret") as wb:
    ...     wb.request_token("user", "password")
    ...     wb.get_version()
    """

    def __init__(
        self,
        base_uri: str,
        client_id: str,
        client_secret: str,
        timeout: int = 0,
        *,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        token_file: Optional[str] = None,
        session: Optional[requests.Session] = None,
        hooks: Optional[EventHooks] = None
    ) -> None:
        """
        Initialize a wallabag client.

        Parameters
        ----------
        base_uri : str
            Address of the user's wallabag instance.
        client_id, client_secret : str
            OAuth client credentials of the application.
        timeout : int, optional
            Request timeout in milliseconds; 0 for none.
        access_token, refresh_token : str, optional
            Tokens of a previous session to resume.
        token_file : str, optional
            JSON file used to restore and persist the tokens.
        session : requests.Session, optional
            Transport to use instead of a new session.
        hooks : EventHooks, optional
            Pre-populated before/after-request hooks.
        """
        config = ClientConfig(
            base_uri=base_uri,
            client_id=client_id,
            client_secret=client_secret,
            timeout=timeout
        )
        super().__init__(config, None, session=session, hooks=hooks)

        # The token endpoint goes through the same session
        self.token_manager = TokenManager(
            config,
            session=self.session,
            token_file=token_file,
            access_token=access_token,
            refresh_token=refresh_token
        )

    @classmethod
    def from_env(cls, **kwargs) -> "WallabagClient":
        """Build a client from the ``WALLABAG_*`` environment variables."""
        config = ClientConfig.from_env()
        return cls(
            config.base_uri,
            config.client_id,
            config.client_secret,
            config.timeout,
            **kwargs
        )

    def request_token(
        self,
        username: str,
        password: str
    ) -> TokenPair:
        """Log in with user credentials. See `TokenManager.request_token`."""
        return self.token_manager.request_token(username, password)

    def refresh_access_token(self) -> TokenPair:
        return self.token_manager.refresh_access_token()

    def get_version(self) -> Optional[str]:
        """
        Return the version number of the wallabag instance.

        Returns
        -------
        str or None
            e.g. ``"2.6.9"``; None if the request failed.
        """
        body = self.execute("GET", "/version")
        if body is None:
            return None
        return self.parse_as(body, str)
