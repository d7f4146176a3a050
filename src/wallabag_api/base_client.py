from dataclasses import dataclass, fields, is_dataclass
from typing import Any, Mapping, Optional, Type, TypeVar, Union
import requests
import inspect
import json

from .events import EventHooks, HttpMethod, PreRequestEvent
from .config import ClientConfig
from .auth import TokenManager
from ._logging import get_logger


T = TypeVar("T")

# Builtin shapes a JSON document can decode to
_JSON_TYPES = (str, int, float, bool, list, dict)


def _declared_fields(
    target: type,
    value: Mapping[str, Any]
) -> Mapping[str, Any]:
    """Keep only the keys `target` accepts; API payloads carry extra ones."""
    if is_dataclass(target):
        names = {f.name for f in fields(target) if f.init}
        return {k: v for k, v in value.items() if k in names}

    params = inspect.signature(target).parameters.values()
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
        return value

    names = {
        p.name for p in params
        if p.kind in (
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.KEYWORD_ONLY,
        )
    }
    return {k: v for k, v in value.items() if k in names}


@dataclass(frozen=True)
class RequestResult:
    """
    Outcome of one API call.

    Exactly one of these holds:
      • `ok` is True and `body` is the response text,
      • `status_code` is set to the non-2xx status the server returned,
      • `error` holds the transport exception (no response at all).
    """

    body: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and \
            200 <= self.status_code < 300


class BaseAPIClient:
    """
    HTTP request pipeline shared by every wallabag endpoint.

    Handles bearer authentication, URI and payload construction,
    before/after-request hooks and response parsing. Endpoint classes
    inherit from it and only pick a path and parameters.

    Attributes
    ----------
    config : ClientConfig
        Instance address, OAuth client credentials and timeout.
    token_manager : TokenManager
        Source of the bearer token attached to every request.
    session : requests.Session
        Transport shared by all calls of this client.
    hooks : EventHooks
        Before/after-request observers.

    Notes
    -----
    - No retry is attempted. Transport errors and non-2xx statuses are
      logged and turned into a failed `RequestResult`; `execute()`
      collapses them to None.
    - Authentication and deserialization errors are raised to the caller.
    """

    def __init__(
        self,
        config: ClientConfig,
        token_manager: TokenManager,
        *,
        session: Optional[requests.Session] = None,
        hooks: Optional[EventHooks] = None
    ) -> None:
        self.config = config
        self.token_manager = token_manager
        self.hooks = hooks if hooks is not None else EventHooks()

        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

        self.logger = get_logger("wallabag.api")

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def build_uri(
        self,
        method: Union[HttpMethod, str],
        path: str,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> str:
        """
        Build the absolute URI ``{base}/api{path}.json``.

        For GET requests with parameters, a ``key=value`` query string is
        appended in mapping order. Values are stringified as-is, without
        percent-encoding.
        """
        method = HttpMethod.coerce(method)
        uri = f"{self.config.api_url}{path}.json"

        if method is HttpMethod.GET and parameters:
            query = "&".join(
                f"{key}={value}" for key, value in parameters.items()
            )
            uri = f"{uri}?{query}"

        return uri

    def send(
        self,
        method: Union[HttpMethod, str],
        path: str,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> RequestResult:
        """
        Execute one authenticated request and report its outcome.

        Parameters
        ----------
        method : HttpMethod or str
            DELETE, GET, PATCH, POST or PUT.
        path : str
            Endpoint path relative to ``/api``, e.g. ``"/entries"``.
        parameters : mapping, optional
            Query parameters for GET, JSON body for every other verb.

        Returns
        -------
        RequestResult
            The body on a 2xx answer, the status code otherwise, or the
            transport exception if no answer was received.

        Raises
        ------
        AuthenticationError
            If no access token can be obtained. Nothing is sent.
        ValueError
            If `method` is not a supported verb.
        """
        method = HttpMethod.coerce(method)

        self.hooks.fire_before_request(
            PreRequestEvent.create(method, path, parameters)
        )

        token = self.token_manager.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}

        uri = self.build_uri(method, path, parameters)

        data = None
        if parameters is not None and method is not HttpMethod.GET:
            data = json.dumps(dict(parameters)).encode("utf-8")
            headers["Content-Type"] = "application/json; charset=utf-8"

        try:
            response = self.session.request(
                method.value,
                uri,
                headers=headers,
                data=data,
                timeout=self.config.timeout_seconds
            )
        except requests.exceptions.RequestException as e:
            self.logger.error(
                f"[FAILURE] An error occurred during the request "
                f"{method.value} {path}: {e}"
            )
            return RequestResult(error=e)

        self.hooks.fire_after_request(response)

        if not 200 <= response.status_code < 300:
            self.logger.warning(
                f"{method.value} {path} returned {response.status_code}"
            )
            return RequestResult(status_code=response.status_code)

        return RequestResult(
            body=response.text,
            status_code=response.status_code
        )

    def execute(
        self,
        method: Union[HttpMethod, str],
        path: str,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> Optional[str]:
        """
        Execute one request and return the response text, or None if the
        request failed for any reason other than authentication.
        """
        return self.send(method, path, parameters).body

    @staticmethod
    def parse(
        body: Optional[str],
        default: Any = None
    ) -> Any:
        """
        Decode a JSON body.

        An empty or missing body returns `default` without invoking the
        decoder. `json.JSONDecodeError` propagates.
        """
        if not body:
            return default
        return json.loads(body)

    @classmethod
    def parse_as(
        cls,
        body: Optional[str],
        target: Type[T]
    ) -> Optional[T]:
        """
        Decode a JSON body into `target`.

        `target` is either a JSON builtin (str, int, float, bool, list,
        dict) or a class taking the decoded object's keys as keyword
        arguments, such as a dataclass. Keys the class does not declare
        are ignored.

        An empty body yields the target's empty value: ``""``, ``0``,
        ``0.0``, ``False``, ``[]``, ``{}``, or None for other classes.

        Raises
        ------
        json.JSONDecodeError
            If `body` is not valid JSON.
        TypeError
            If the decoded value does not have the shape of `target`.
        """
        if not body:
            if target in _JSON_TYPES:
                return target()
            return None

        value = json.loads(body)

        if target is float and isinstance(value, int) \
                and not isinstance(value, bool):
            return float(value)

        if target is int and isinstance(value, bool):
            raise TypeError("Expected JSON int, got bool")

        if target in _JSON_TYPES:
            if not isinstance(value, target):
                raise TypeError(
                    f"Expected JSON {target.__name__}, "
                    f"got {type(value).__name__}"
                )
            return value

        if isinstance(value, target):
            return value

        if isinstance(value, dict):
            return target(**_declared_fields(target, value))

        raise TypeError(
            f"Cannot build {target.__name__} from JSON "
            f"{type(value).__name__}"
        )
