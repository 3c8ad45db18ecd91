"""Bearer token support for authenticated requests."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Protocol, Union, runtime_checkable

from .exceptions import DriveAuthenticationError
from .request import RequestDescriptor, RequestInterceptor

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenProvider(Protocol):
    """Source of bearer tokens, e.g. an OAuth client-credentials client."""

    async def get_token(self) -> str: ...


class StaticTokenProvider:
    """Token provider that always returns the same token."""

    def __init__(self, token: str):
        if not token:
            raise DriveAuthenticationError("Access token must not be empty")
        self._token = token

    async def get_token(self) -> str:
        return self._token


class CallableTokenProvider:
    """Adapt a plain (sync or async) function into a token provider."""

    def __init__(self, func: Callable[[], Union[str, Awaitable[str]]]):
        self._func = func

    async def get_token(self) -> str:
        token = self._func()
        if inspect.isawaitable(token):
            token = await token
        return token


def bearer_interceptor(provider: TokenProvider) -> RequestInterceptor:
    """Create an interceptor that attaches ``Authorization: Bearer <token>``.

    A request that already carries an Authorization header is left as is.

    Raises:
        DriveAuthenticationError: If the provider fails or returns no token
    """

    async def intercept(
        operation: str, descriptor: RequestDescriptor
    ) -> RequestDescriptor:
        if descriptor.get_header("Authorization"):
            return descriptor
        try:
            token = await provider.get_token()
        except DriveAuthenticationError:
            raise
        except Exception as e:
            logger.debug("Token provider failed for %s: %s", operation, e)
            raise DriveAuthenticationError(f"Authentication unavailable: {e}") from e
        if not token:
            raise DriveAuthenticationError(
                "Authentication unavailable: token provider returned no token"
            )
        return descriptor.with_header("Authorization", f"Bearer {token}")

    return intercept
