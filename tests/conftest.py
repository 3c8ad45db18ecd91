"""Shared fixtures for the rixdrive tests."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from rixdrive.api import DriveClient

BASE_URL = "https://drive.example.test/api/"
TENANT_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"

FILE_ITEM = {
    "type": "file",
    "id": "6f1c2b3a-0d4e-4f5a-8b9c-0d1e2f3a4b5c",
    "fullPath": "c:/a.txt",
    "name": "a.txt",
    "length": 12,
    "contentType": "text/plain",
    "lastModifiedOn": "2019-09-01T10:30:00.1234567Z",
}

DIRECTORY_ITEM = {
    "type": "directory",
    "id": "7a2d3c4b-1e5f-4a6b-9c0d-1e2f3a4b5c6d",
    "fullPath": "c:/docs",
    "name": "docs",
    "hasChildren": True,
}


def json_response(
    status_code: int,
    payload: Any,
    content_type: str = "application/json",
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    """Build a response with a JSON body and an explicit content type."""
    all_headers = {"Content-Type": content_type}
    all_headers.update(headers or {})
    return httpx.Response(
        status_code, content=json.dumps(payload).encode(), headers=all_headers
    )


def problem_response(status_code: int, title: str, detail: str) -> httpx.Response:
    return json_response(
        status_code,
        {
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
        },
        content_type="application/problem+json",
    )


class RecordingHandler:
    """MockTransport handler that records every request it receives.

    Responses are taken from ``responses`` in order; an exception instance
    in the list is raised instead of returning a response.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        outcome = self.responses.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def make_client() -> Callable[..., DriveClient]:
    """Factory for clients backed by an ``httpx.MockTransport``."""

    def factory(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> DriveClient:
        kwargs.setdefault("api_url", BASE_URL)
        kwargs.setdefault("access_token", "test-token")
        return DriveClient(transport=httpx.MockTransport(handler), **kwargs)

    return factory


@pytest.fixture
def no_sleep() -> Callable[[float], Any]:
    """Sleep replacement that records the requested delays."""
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep
