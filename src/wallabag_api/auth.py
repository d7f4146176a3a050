from dataclasses import dataclass, asdict
from typing import Dict, Optional
from threading import Lock
import requests
import json
import time
import os

from .exceptions import AuthenticationError
from .config import ClientConfig
from ._logging import get_logger


# Tokens are considered expired this many seconds before the server says so,
# since `obtained_at` is taken after the response arrives.
EXPIRY_MARGIN = 30


@dataclass(frozen=True)
class TokenPair:
    """
    Immutable snapshot of the OAuth2 tokens held by a client.

    A new instance replaces the old one on every exchange; nothing is ever
    mutated in place, so a request that read a snapshot keeps a consistent
    access token even if another thread refreshes concurrently.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    obtained_at: Optional[int] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        """
        Whether the access token is known to be expired.

        Tokens without expiry information are treated as valid; an expired
        token is then only detected by the server rejecting it.
        """
        if not self.access_token:
            return True

        if self.expires_in is None or self.obtained_at is None:
            return False

        try:
            exp_timestamp = (
                int(self.obtained_at) + int(self.expires_in) - EXPIRY_MARGIN
            )
        except (TypeError, ValueError):
            # Invalid data types → force refresh
            return True

        now = time.time() if now is None else now
        return now >= exp_timestamp


class TokenManager:
    """
    Manages the lifecycle of the OAuth2 tokens of one wallabag client.

    Responsibilities:
    - Exchange user credentials for a token pair (password grant).
    - Exchange the refresh token for a new token pair on demand.
    - Optionally load and persist the token pair in a local JSON file.
    - Serialise every write to the token pair through a single lock.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: Optional[requests.Session] = None,
        token_file: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None
    ) -> None:
        """
        Initializes the TokenManager.

        Args:
            config (ClientConfig): Instance address and OAuth client
                credentials.
            session (requests.Session, optional): Transport used to reach
                the token endpoint. A plain `requests.post` is used when
                omitted.
            token_file (str, optional): Path of a JSON file used to restore
                and persist the token pair. Nothing is written when omitted.
            access_token (str, optional): Previously obtained access token.
            refresh_token (str, optional): Previously obtained refresh token.

        Tokens passed explicitly take precedence over the ones stored in
        `token_file`. An access token passed without a refresh token keeps
        the refresh token from `token_file`.
        """
        self.config = config
        self.session = session
        self.token_file = token_file
        self.logger = get_logger("wallabag.auth")

        self._lock = Lock()
        self._token: Optional[TokenPair] = self._load()

        if access_token or refresh_token:
            loaded = self._token
            if refresh_token is None and loaded is not None:
                refresh_token = loaded.refresh_token
            self._token = TokenPair(
                access_token=access_token or "",
                refresh_token=refresh_token
            )

    @property
    def token(self) -> Optional[TokenPair]:
        """The current token snapshot, or None when unauthenticated."""
        return self._token

    @property
    def is_authenticated(self) -> bool:
        token = self._token
        return token is not None and bool(token.access_token)

    def _load(self) -> Optional[TokenPair]:
        """
        Loads the token pair from the configured JSON file.

        Returns:
            TokenPair or None: None if no file is configured, the file is
                missing or malformed, or it lacks either token.
        """
        if not self.token_file or not os.path.exists(self.token_file):
            return None

        with open(self.token_file, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                return None

        if not isinstance(data, dict):
            return None

        if not {"access_token", "refresh_token"}.issubset(data.keys()):
            return None

        return TokenPair(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_in=data.get("expires_in"),
            obtained_at=data.get("obtained_at")
        )

    def _save(
        self,
        token: TokenPair
    ) -> None:
        """Replace the in-memory token pair and persist it if configured."""
        self._token = token

        if self.token_file:
            with open(self.token_file, "w") as f:
                json.dump(asdict(token), f)

    def _post_token_request(
        self,
        payload: Dict
    ) -> Dict:
        """
        POST a grant to the OAuth token endpoint.

        Raises:
            AuthenticationError: If the endpoint cannot be reached, answers
                with a non-2xx status, or does not return an access token.
        """
        post = self.session.post if self.session is not None else requests.post

        try:
            response = post(
                self.config.token_url,
                data=payload,
                timeout=self.config.timeout_seconds
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            self.logger.error(
                f"Token request ({payload['grant_type']}) failed: {e}"
            )
            raise AuthenticationError(
                f"Token request failed: {e}"
            ) from e

        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthenticationError(
                "Token endpoint did not return an access token."
            )

        return data

    def _store_response(
        self,
        data: Dict,
        previous_refresh_token: Optional[str] = None
    ) -> TokenPair:
        expires_in = data.get("expires_in")
        token = TokenPair(
            access_token=data["access_token"],
            # Keep the previous refresh token if the server didn't rotate it
            refresh_token=data.get("refresh_token", previous_refresh_token),
            expires_in=int(expires_in) if expires_in is not None else None,
            obtained_at=int(time.time())
        )
        self._save(token)
        return token

    def request_token(
        self,
        username: str,
        password: str
    ) -> TokenPair:
        """
        Exchange user credentials for a new token pair (password grant).

        Returns:
            TokenPair: The newly stored tokens.

        Raises:
            AuthenticationError: If the credentials are rejected or the
                token endpoint is unreachable.
        """
        payload = {
            "grant_type": "password",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "username": username,
            "password": password,
        }

        with self._lock:
            data = self._post_token_request(payload)
            token = self._store_response(data)

        self.logger.info("Obtained a new access token.")
        return token

    def _refresh_locked(self) -> TokenPair:
        # Caller must hold self._lock
        current = self._token
        refresh_token = current.refresh_token if current else None
        if not refresh_token:
            raise AuthenticationError(
                "Not authenticated: no refresh token available. "
                "Call request_token() first."
            )

        payload = {
            "grant_type": "refresh_token",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": refresh_token,
        }

        data = self._post_token_request(payload)
        token = self._store_response(data, refresh_token)
        self.logger.info("Access token refreshed.")
        return token

    def refresh_access_token(self) -> TokenPair:
        """
        Exchange the stored refresh token for a new token pair.

        Raises:
            AuthenticationError: If there is no refresh token or the
                exchange is rejected.
        """
        with self._lock:
            return self._refresh_locked()

    def get_access_token(self) -> str:
        """
        Retrieve a usable Bearer access token.

        Returns the current token when present and not known to be expired.
        Otherwise a single thread refreshes it; threads that were waiting
        on the lock reuse the token it obtained.

        Returns:
            str: The access token.

        Raises:
            AuthenticationError: If no access token can be obtained.
        """
        # Fast path without the lock
        token = self._token
        if token is not None and not token.is_expired():
            return token.access_token

        with self._lock:
            # Re-check: another thread may have refreshed meanwhile
            token = self._token
            if token is not None and not token.is_expired():
                return token.access_token

            return self._refresh_locked().access_token

    def clear(self) -> None:
        """Forget the tokens, returning the client to unauthenticated."""
        with self._lock:
            self._token = None
            if self.token_file and os.path.exists(self.token_file):
                os.remove(self.token_file)
