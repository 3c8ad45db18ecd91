"""Unit tests for results, structured errors and the exception bridge."""

import json

import pytest

from rixdrive.errors import (
    DomainErrorEnvelope,
    ErrorInfo,
    PayloadDecodeError,
    ProblemDetails,
    UnexpectedStatusError,
)
from rixdrive.exceptions import ApiException, DriveError
from rixdrive.result import Failure, Success, unwrap, unwrap_or


class TestResult:
    """Tests for Success and Failure."""

    def test_success(self):
        """Test the success variant."""
        result = Success([1, 2])
        assert result.is_success and not result.is_failure
        assert result.map(len) == Success(2)

    def test_failure(self):
        """Test that map leaves a failure untouched."""
        result = Failure(UnexpectedStatusError("op", 404))
        assert result.is_failure and not result.is_success
        assert result.map(len) is result

    def test_unwrap_success(self):
        """Test that unwrap returns the value without raising."""
        assert unwrap(Success("value")) == "value"
        assert unwrap(Success(None)) is None

    @pytest.mark.parametrize(
        "error",
        [
            ProblemDetails(title="Bad Request", status=400),
            DomainErrorEnvelope(ErrorInfo(code="Conflict")),
            UnexpectedStatusError("DriveClient.copy", 409, "Conflict"),
            PayloadDecodeError("DriveClient.copy", 200, "Drive", "missing id"),
        ],
    )
    def test_unwrap_failure_raises_api_exception(self, error):
        """Test that every failure kind raises the same exception type."""
        with pytest.raises(ApiException) as exc_info:
            unwrap(Failure(error))

        assert exc_info.value.error is error
        assert json.loads(str(exc_info.value))["kind"] == error.kind

    def test_unwrap_or(self):
        """Test the default for failures."""
        assert unwrap_or(Success(1), 0) == 1
        assert unwrap_or(Failure(UnexpectedStatusError("op", 418)), 0) == 0


class TestApiException:
    """Tests for the exception-tier error."""

    def test_message_is_indented_json(self):
        """Test that the message is the indented JSON form of the error."""
        error = ProblemDetails(title="Not Found", status=400, detail="gone")
        exc = ApiException.create(error)

        assert str(exc) == json.dumps(error.to_dict(), indent=2)
        assert isinstance(exc, DriveError)


class TestStructuredErrors:
    """Tests for the structured error payloads."""

    def test_problem_details_round_trip_keys(self):
        """Test that standard members and extensions are serialized."""
        problem = ProblemDetails.from_dict(
            {"type": "urn:drive:quota", "title": "Quota", "status": "400", "quota": 5}
        )

        assert problem.status == 400
        assert problem.extensions == {"quota": 5}
        assert problem.to_dict() == {
            "kind": "problem",
            "type": "urn:drive:quota",
            "title": "Quota",
            "status": 400,
            "quota": 5,
        }
        assert str(problem) == "Quota"

    def test_domain_envelope_accepts_bare_error(self):
        """Test that an error object without the wrapper is accepted."""
        envelope = DomainErrorEnvelope.from_dict({"code": "Busy", "message": "later"})
        assert envelope.code == "Busy"
        assert str(envelope) == "Busy: later"

    def test_domain_envelope_requires_code(self):
        """Test that an envelope without code is rejected."""
        with pytest.raises(ValueError):
            DomainErrorEnvelope.from_dict({"error": {"message": "no code"}})

    def test_error_info_nesting(self):
        """Test nested details and inner errors."""
        info = ErrorInfo.from_dict(
            {
                "code": "Invalid",
                "details": [{"code": "PathTooLong", "target": "path"}],
                "innererror": {"trace": "x"},
            }
        )
        assert info.details[0].target == "path"
        assert info.to_dict() == {
            "code": "Invalid",
            "details": [{"code": "PathTooLong", "target": "path"}],
            "innererror": {"trace": "x"},
        }

    def test_errors_are_immutable(self):
        """Test that structured errors are frozen."""
        error = UnexpectedStatusError("op", 404)
        with pytest.raises(AttributeError):
            error.status_code = 200  # type: ignore[misc]

    def test_unexpected_status_message(self):
        """Test the readable form of an unexpected status."""
        error = UnexpectedStatusError("DriveClient.move", 404, "Not Found")
        assert str(error) == (
            "DriveClient.move returned unexpected status code 404 Not Found"
        )
        assert error.to_dict()["statusCode"] == 404
