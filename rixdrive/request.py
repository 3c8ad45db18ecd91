"""Request descriptors and the interceptors that may rewrite them."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from .models import FileParameter
from .utils import to_query_value

ACCEPT_JSON = "application/json"
ACCEPT_OCTET = "application/octet-stream"
ACCEPT_PROBLEM = "application/problem+json"


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable description of a single API request.

    Built once per call and consumed once by the sender. Interceptors
    return modified copies instead of mutating it.
    """

    method: str
    path: str
    params: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    json: Any = None
    file: Optional[FileParameter] = None

    def has_param(self, name: str) -> bool:
        return any(key == name for key, _ in self.params)

    def get_param(self, name: str) -> Optional[str]:
        for key, value in self.params:
            if key == name:
                return value
        return None

    def get_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def with_param(self, name: str, value: Any) -> RequestDescriptor:
        """Return a copy with ``name`` set, replacing any existing value."""
        params = tuple((k, v) for k, v in self.params if k != name)
        return replace(self, params=params + ((name, to_query_value(value)),))

    def with_header(self, name: str, value: str) -> RequestDescriptor:
        """Return a copy with header ``name`` set, replacing any existing value."""
        lowered = name.lower()
        headers = tuple((k, v) for k, v in self.headers if k.lower() != lowered)
        return replace(self, headers=headers + ((name, value),))


def build_request(
    method: str,
    path: str,
    params: Optional[Iterable[tuple[str, Any]]] = None,
    headers: Optional[Iterable[tuple[str, str]]] = None,
    json: Any = None,
    file: Optional[FileParameter] = None,
) -> RequestDescriptor:
    """Build a request descriptor.

    Query parameters whose value is ``None`` are left out entirely. A
    parameter name may only appear once; later values replace earlier ones
    while keeping the first position.

    Args:
        method: HTTP method
        path: Path relative to the API base address
        params: Ordered (name, value) query parameters
        headers: Extra request headers
        json: JSON-serializable request body
        file: File contents sent as multipart form data

    Returns:
        The request descriptor
    """
    if json is not None and file is not None:
        raise ValueError("A request cannot have both a JSON body and a file")

    ordered: dict[str, str] = {}
    for name, value in params or ():
        if value is None:
            continue
        ordered[name] = to_query_value(value)

    return RequestDescriptor(
        method=method.upper(),
        path=path,
        params=tuple(ordered.items()),
        headers=tuple(headers or ()),
        json=json,
        file=file,
    )


# An interceptor receives the operation name and the descriptor about to be
# sent, and returns the descriptor to send instead.
RequestInterceptor = Callable[
    [str, RequestDescriptor],
    Union[RequestDescriptor, Awaitable[RequestDescriptor]],
]


async def apply_interceptors(
    interceptors: Iterable[RequestInterceptor],
    operation: str,
    descriptor: RequestDescriptor,
) -> RequestDescriptor:
    """Run interceptors in registration order."""
    for interceptor in interceptors:
        outcome = interceptor(operation, descriptor)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        descriptor = outcome
    return descriptor
