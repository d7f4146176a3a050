from dataclasses import dataclass, field
from typing import Optional
import os


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable connection settings for a wallabag instance.

    Attributes
    ----------
    base_uri : str
        Address of the wallabag instance (e.g. ``https://app.wallabag.it``).
        Any trailing slash is removed.
    client_id : str
        OAuth client identifier created in the wallabag developer settings.
    client_secret : str
        OAuth client secret matching `client_id`.
    timeout : int
        Request timeout in milliseconds. Zero or a negative value
        disables the explicit timeout.
    """

    base_uri: str
    client_id: str
    client_secret: str = field(repr=False)
    timeout: int = 0

    def __post_init__(self) -> None:
        if not self.base_uri:
            raise ValueError("base_uri must not be empty.")
        if not self.client_id:
            raise ValueError("client_id must not be empty.")
        if not self.client_secret:
            raise ValueError("client_secret must not be empty.")
        # frozen dataclass: bypass __setattr__ to normalise the address
        object.__setattr__(self, "base_uri", str(self.base_uri).rstrip("/"))

    @property
    def api_url(self) -> str:
        return f"{self.base_uri}/api"

    @property
    def token_url(self) -> str:
        return f"{self.base_uri}/oauth/v2/token"

    @property
    def timeout_seconds(self) -> Optional[float]:
        """Timeout in the unit `requests` expects, or None when disabled."""
        if self.timeout <= 0:
            return None
        return self.timeout / 1000

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Build a configuration from environment variables.

        Reads ``WALLABAG_URL``, ``WALLABAG_CLIENT_ID``,
        ``WALLABAG_CLIENT_SECRET`` and the optional ``WALLABAG_TIMEOUT``
        (milliseconds).

        Raises
        ------
        ValueError
            If a required variable is missing or the timeout is not an
            integer.
        """
        values = {}
        for name in (
            "WALLABAG_URL",
            "WALLABAG_CLIENT_ID",
            "WALLABAG_CLIENT_SECRET",
        ):
            value = os.getenv(name)
            if not value:
                raise ValueError(f"Missing environment variable: {name}")
            values[name] = value

        timeout = os.getenv("WALLABAG_TIMEOUT", "0")
        try:
            timeout_ms = int(timeout)
        except ValueError:
            raise ValueError(
                f"WALLABAG_TIMEOUT must be an integer, got {timeout!r}"
            )

        return cls(
            base_uri=values["WALLABAG_URL"],
            client_id=values["WALLABAG_CLIENT_ID"],
            client_secret=values["WALLABAG_CLIENT_SECRET"],
            timeout=timeout_ms,
        )
