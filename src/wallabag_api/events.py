from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from enum import Enum
import requests


class HttpMethod(str, Enum):
    """The HTTP verbs understood by the wallabag API."""

    DELETE = "DELETE"
    GET = "GET"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"

    @classmethod
    def coerce(
        cls,
        method: Union["HttpMethod", str]
    ) -> "HttpMethod":
        """
        Accept an `HttpMethod` or a verb string such as ``"get"``.

        Raises
        ------
        ValueError
            If the verb is not one of DELETE, GET, PATCH, POST, PUT.
        """
        if isinstance(method, cls):
            return method
        try:
            return cls(str(method).upper())
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: {method!r}")


@dataclass(frozen=True)
class PreRequestEvent:
    """
    Snapshot of an outgoing request, handed to before-request hooks.

    `parameters` is a private copy: changing it has no effect on the
    request that is actually sent.
    """

    method: HttpMethod
    path: str
    parameters: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def create(
        cls,
        method: HttpMethod,
        path: str,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> "PreRequestEvent":
        return cls(
            method=method,
            path=path,
            parameters=dict(parameters) if parameters is not None else None
        )


BeforeRequestHook = Callable[[PreRequestEvent], None]
AfterRequestHook = Callable[[requests.Response], None]


class EventHooks:
    """
    Observation points around every API call.

    Two ordered lists of callables:
      • `before_request` hooks receive a `PreRequestEvent` before the
        request is sent,
      • `after_request` hooks receive the raw `requests.Response` once
        the server answered, whatever its status code.

    Hooks run synchronously, in registration order, on the calling thread.
    Exceptions raised by a hook propagate to the caller of the API method.
    """

    def __init__(self) -> None:
        self.before_request: List[BeforeRequestHook] = []
        self.after_request: List[AfterRequestHook] = []

    def add_before_request(
        self,
        hook: BeforeRequestHook
    ) -> BeforeRequestHook:
        """Register a before-request hook. Usable as a decorator."""
        self.before_request.append(hook)
        return hook

    def remove_before_request(
        self,
        hook: BeforeRequestHook
    ) -> None:
        self.before_request.remove(hook)

    def add_after_request(
        self,
        hook: AfterRequestHook
    ) -> AfterRequestHook:
        """Register an after-request hook. Usable as a decorator."""
        self.after_request.append(hook)
        return hook

    def remove_after_request(
        self,
        hook: AfterRequestHook
    ) -> None:
        self.after_request.remove(hook)

    def fire_before_request(
        self,
        event: PreRequestEvent
    ) -> None:
        # Iterate over a copy so a hook may unregister itself
        for hook in list(self.before_request):
            hook(event)

    def fire_after_request(
        self,
        response: requests.Response
    ) -> None:
        for hook in list(self.after_request):
            hook(response)
