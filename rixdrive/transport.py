"""HTTP transport: the async httpx client and the policy-gated sender."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import ClientSettings
from .exceptions import DriveConfigError, DriveNetworkError, DriveTimeoutError
from .policy import ResiliencyPolicy
from .request import RequestDescriptor

logger = logging.getLogger(__name__)

API_VERSION_PARAM = "api-version"


def build_async_client(
    settings: ClientSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the ``httpx.AsyncClient`` used for all drive API calls.

    Args:
        settings: Base address, timeout, default headers and TLS settings
        transport: Optional transport override (e.g. ``httpx.MockTransport``)

    Raises:
        DriveConfigError: If no base address is configured
    """
    if not settings.api_url:
        raise DriveConfigError(
            "API URL not configured. Please set RIXDRIVE_API_URL environment "
            "variable or pass api_url."
        )
    base_url = settings.api_url.rstrip("/") + "/"
    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["verify"] = settings.ssl_context()
    return httpx.AsyncClient(
        base_url=base_url,
        headers=settings.default_headers(),
        timeout=httpx.Timeout(settings.timeout),
        follow_redirects=True,
        **kwargs,
    )


class Sender:
    """Send request descriptors, optionally through a resiliency policy.

    Only the response headers are read eagerly; the body stays open on the
    returned response until the decoder (or a download caller) consumes and
    closes it.
    """

    def __init__(self, client: httpx.AsyncClient, api_version: Optional[str] = None):
        self._client = client
        self.api_version = api_version

    def _prepare(self, descriptor: RequestDescriptor) -> RequestDescriptor:
        if self.api_version and not descriptor.has_param(API_VERSION_PARAM):
            descriptor = descriptor.with_param(API_VERSION_PARAM, self.api_version)
        return descriptor

    def _build(self, descriptor: RequestDescriptor) -> httpx.Request:
        kwargs = {}
        if descriptor.json is not None:
            kwargs["json"] = descriptor.json
        if descriptor.file is not None:
            kwargs["files"] = descriptor.file.to_multipart()
        return self._client.build_request(
            descriptor.method,
            descriptor.path.lstrip("/"),
            params=list(descriptor.params),
            headers=list(descriptor.headers),
            **kwargs,
        )

    async def _send_once(self, descriptor: RequestDescriptor) -> httpx.Response:
        # A fresh httpx.Request per attempt so multipart bodies can be replayed
        request = self._build(descriptor)
        logger.debug("%s %s", request.method, request.url)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise DriveTimeoutError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise DriveNetworkError(f"Network error: {e}") from e
        logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
        return response

    async def send(
        self,
        descriptor: RequestDescriptor,
        policy: Optional[ResiliencyPolicy] = None,
    ) -> httpx.Response:
        """Execute a request and return the raw, still-open response.

        Without a policy exactly one attempt is made.

        Raises:
            DriveNetworkError: If the request failed at transport level
            asyncio.CancelledError: If the calling task was cancelled
        """
        descriptor = self._prepare(descriptor)
        if policy is None:
            return await self._send_once(descriptor)
        return await policy.execute(lambda: self._send_once(descriptor))
