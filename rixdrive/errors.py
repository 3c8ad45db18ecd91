"""Structured errors decoded from failed drive API calls.

Every failed call produces exactly one of these immutable values. They are
carried by :class:`rixdrive.result.Failure` and, in the exception tier, by
:class:`rixdrive.exceptions.ApiException`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

# Keys defined by RFC 7807; anything else in a problem body is an extension.
_PROBLEM_KEYS = ("type", "title", "status", "detail", "instance")


@dataclass(frozen=True)
class ProblemDetails:
    """Machine-readable HTTP problem payload (``application/problem+json``)."""

    kind: ClassVar[str] = "problem"

    type: Optional[str] = None
    title: Optional[str] = None
    status: Optional[int] = None
    detail: Optional[str] = None
    instance: Optional[str] = None
    extensions: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProblemDetails:
        """Create ProblemDetails from a decoded problem body.

        Raises:
            ValueError: If the payload is not a JSON object
        """
        if not isinstance(data, dict):
            raise ValueError("Problem payload must be a JSON object")
        status = data.get("status")
        return cls(
            type=data.get("type"),
            title=data.get("title"),
            status=int(status) if status is not None else None,
            detail=data.get("detail"),
            instance=data.get("instance"),
            extensions={k: v for k, v in data.items() if k not in _PROBLEM_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind}
        for key in _PROBLEM_KEYS:
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        data.update(self.extensions)
        return data

    def __str__(self) -> str:
        return self.detail or self.title or f"HTTP problem ({self.status})"


@dataclass(frozen=True)
class ErrorInfo:
    """Service error object as found inside the ``error`` envelope."""

    code: str
    message: Optional[str] = None
    target: Optional[str] = None
    details: tuple[ErrorInfo, ...] = ()
    inner_error: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorInfo:
        if not isinstance(data, dict) or "code" not in data:
            raise ValueError("Error object must be a JSON object with a 'code'")
        return cls(
            code=str(data["code"]),
            message=data.get("message"),
            target=data.get("target"),
            details=tuple(cls.from_dict(d) for d in data.get("details") or ()),
            inner_error=data.get("innererror"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code}
        if self.message is not None:
            data["message"] = self.message
        if self.target is not None:
            data["target"] = self.target
        if self.details:
            data["details"] = [d.to_dict() for d in self.details]
        if self.inner_error is not None:
            data["innererror"] = self.inner_error
        return data


@dataclass(frozen=True)
class DomainErrorEnvelope:
    """Service-specific error payload: ``{"error": {"code": ..., ...}}``."""

    kind: ClassVar[str] = "domain"

    error: ErrorInfo

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainErrorEnvelope:
        """Create an envelope from a decoded error body.

        A bare error object (without the ``error`` wrapper) is accepted too.

        Raises:
            ValueError: If the payload does not contain an error object
        """
        if not isinstance(data, dict):
            raise ValueError("Error payload must be a JSON object")
        inner = data.get("error", data)
        return cls(error=ErrorInfo.from_dict(inner))

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def message(self) -> Optional[str]:
        return self.error.message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "error": self.error.to_dict()}

    def __str__(self) -> str:
        if self.error.message:
            return f"{self.error.code}: {self.error.message}"
        return self.error.code


@dataclass(frozen=True)
class UnexpectedStatusError:
    """A status code outside the operation's outcome mapping."""

    kind: ClassVar[str] = "unexpected_status"

    operation: str
    status_code: int
    reason: str = ""
    body: str = ""
    content_type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "operation": self.operation,
            "statusCode": self.status_code,
            "reason": self.reason,
            "contentType": self.content_type,
            "body": self.body,
        }

    def __str__(self) -> str:
        return (
            f"{self.operation} returned unexpected status code "
            f"{self.status_code} {self.reason}".rstrip()
        )


@dataclass(frozen=True)
class PayloadDecodeError:
    """A response body that does not match the shape its status promises.

    Never retried.
    """

    kind: ClassVar[str] = "decode"

    operation: str
    status_code: int
    expected: str
    reason: str
    body: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "operation": self.operation,
            "statusCode": self.status_code,
            "expected": self.expected,
            "reason": self.reason,
            "body": self.body,
        }

    def __str__(self) -> str:
        return (
            f"{self.operation} returned a {self.status_code} response that could "
            f"not be decoded as {self.expected}: {self.reason}"
        )


StructuredError = Union[
    ProblemDetails, DomainErrorEnvelope, UnexpectedStatusError, PayloadDecodeError
]
