"""Response decoding: turn a raw response into a typed Result.

Each operation owns a static :class:`OutcomeMapping` from status code to
decoding behaviour. The decoder looks the status code up, deserializes the
body accordingly and always releases the response, except when it hands an
open download stream back to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Optional

import httpx

from .errors import (
    DomainErrorEnvelope,
    PayloadDecodeError,
    ProblemDetails,
    StructuredError,
    UnexpectedStatusError,
)
from .exceptions import DriveNetworkError
from .models import FileResponse
from .result import Failure, Result, Success
from .utils import truncate_text

logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"


class Shape(Enum):
    """How a mapped status code is decoded."""

    VALUE = "value"  # deserialize the body with the operation's parser
    EMPTY = "empty"  # discard the body, return the empty form of the value
    NO_VALUE = "no_value"  # discard the body, return None
    STREAM = "stream"  # hand the open body to the caller
    ERROR = "error"  # structured error payload


def _none() -> None:
    return None


@dataclass(frozen=True)
class OutcomeMapping:
    """Static table from status code to decoding shape for one operation.

    Status codes that are not in the table decode to an
    :class:`UnexpectedStatusError`.
    """

    statuses: Mapping[int, Shape]
    expected: str = "no value"
    parser: Optional[Callable[[Any], Any]] = None
    empty: Callable[[], Any] = field(default=_none)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(dict(self.statuses))
        object.__setattr__(self, "statuses", frozen)
        if Shape.VALUE in frozen.values() and self.parser is None:
            raise ValueError("A mapping with VALUE statuses needs a parser")

    @classmethod
    def value(
        cls,
        parser: Callable[[Any], Any],
        expected: str,
        empty: Callable[[], Any] = _none,
    ) -> OutcomeMapping:
        """200 -> parsed value, 204 -> empty form, 400/500 -> structured error."""
        return cls(
            {200: Shape.VALUE, 204: Shape.EMPTY, 400: Shape.ERROR, 500: Shape.ERROR},
            expected=expected,
            parser=parser,
            empty=empty,
        )

    @classmethod
    def no_value(cls) -> OutcomeMapping:
        """200/204 -> no value, 400/500 -> structured error."""
        return cls(
            {
                200: Shape.NO_VALUE,
                204: Shape.NO_VALUE,
                400: Shape.ERROR,
                500: Shape.ERROR,
            }
        )

    @classmethod
    def stream(cls) -> OutcomeMapping:
        """200 -> open stream, 204 -> absent payload, 400/500 -> structured error."""
        return cls(
            {200: Shape.STREAM, 204: Shape.EMPTY, 400: Shape.ERROR, 500: Shape.ERROR},
            expected="file stream",
        )

    def shape_for(self, status_code: int) -> Optional[Shape]:
        return self.statuses.get(status_code)


def is_problem_response(response: httpx.Response) -> bool:
    """Check whether a response carries an ``application/problem+json`` body."""
    content_type = response.headers.get("Content-Type", "")
    return content_type.split(";")[0].strip().lower() == PROBLEM_CONTENT_TYPE


async def _read_text(response: httpx.Response) -> str:
    """Best-effort capture of a response body; never raises on bad content."""
    try:
        content = await response.aread()
    except httpx.HTTPError as e:
        logger.debug("Could not read response body: %s", e)
        return ""
    try:
        return response.text
    except (LookupError, ValueError):
        return content.decode("utf-8", errors="replace")


async def unexpected_status(
    response: httpx.Response, operation: str
) -> UnexpectedStatusError:
    """Build the error for a status code outside the outcome mapping."""
    body = await _read_text(response)
    return UnexpectedStatusError(
        operation=operation,
        status_code=response.status_code,
        reason=response.reason_phrase,
        body=truncate_text(body),
        content_type=response.headers.get("Content-Type"),
    )


def _undecodable(
    response: httpx.Response, operation: str, expected: str, error: Exception
) -> PayloadDecodeError:
    """Error for a body whose Content-Encoding could not be undone."""
    logger.debug("%s: undecodable response body: %s", operation, error)
    return PayloadDecodeError(
        operation=operation,
        status_code=response.status_code,
        expected=expected,
        reason=f"Undecodable response body: {error}",
    )


async def _decode_error_payload(
    response: httpx.Response, operation: str
) -> StructuredError:
    problem = is_problem_response(response)
    expected = "ProblemDetails" if problem else "ErrorResponse"
    try:
        await response.aread()
    except httpx.DecodingError as e:
        return _undecodable(response, operation, expected, e)
    try:
        data = response.json()
        if problem:
            return ProblemDetails.from_dict(data)
        return DomainErrorEnvelope.from_dict(data)
    except (ValueError, TypeError, KeyError) as e:
        return PayloadDecodeError(
            operation=operation,
            status_code=response.status_code,
            expected=expected,
            reason=str(e),
            body=truncate_text(await _read_text(response)),
        )


async def _decode_value(
    response: httpx.Response, mapping: OutcomeMapping, operation: str
) -> Result[Any]:
    try:
        content = await response.aread()
    except httpx.DecodingError as e:
        return Failure(_undecodable(response, operation, mapping.expected, e))
    if not content.strip():
        return Success(mapping.empty())
    try:
        data = response.json()
        if data is None:
            return Success(mapping.empty())
        return Success(mapping.parser(data))  # type: ignore[misc]
    except (ValueError, TypeError, KeyError) as e:
        logger.debug("%s: failed to decode %s: %s", operation, mapping.expected, e)
        return Failure(
            PayloadDecodeError(
                operation=operation,
                status_code=response.status_code,
                expected=mapping.expected,
                reason=str(e),
                body=truncate_text(await _read_text(response)),
            )
        )


async def decode(
    response: httpx.Response, mapping: OutcomeMapping, operation: str
) -> Result[Any]:
    """Classify a raw response and decode it into a Result.

    Args:
        response: Open response returned by the sender
        mapping: Outcome mapping of the operation
        operation: Operation name recorded on unexpected-status errors

    Returns:
        ``Success`` with the decoded value, or ``Failure`` with a
        structured error. Only transport failures while reading the body
        and cancellation propagate as exceptions.
    """
    shape = mapping.shape_for(response.status_code)
    logger.debug(
        "%s: decoding status %d as %s",
        operation,
        response.status_code,
        shape.value if shape else "unexpected",
    )

    if shape is Shape.STREAM:
        # Ownership of the open response passes to the caller
        return Success(FileResponse(response))

    try:
        if shape is None:
            return Failure(await unexpected_status(response, operation))
        if shape is Shape.NO_VALUE:
            return Success(None)
        if shape is Shape.EMPTY:
            return Success(mapping.empty())
        if shape is Shape.ERROR:
            return Failure(await _decode_error_payload(response, operation))
        return await _decode_value(response, mapping, operation)
    except httpx.TransportError as e:
        raise DriveNetworkError(f"Network error while reading response: {e}") from e
    finally:
        await response.aclose()
