"""Rixdrive - async client for the Rixian Drive API."""

from .api import DriveClient
from .auth import CallableTokenProvider, StaticTokenProvider, TokenProvider
from .errors import (
    DomainErrorEnvelope,
    ErrorInfo,
    PayloadDecodeError,
    ProblemDetails,
    UnexpectedStatusError,
)
from .exceptions import (
    ApiException,
    DriveAuthenticationError,
    DriveCircuitOpenError,
    DriveConfigError,
    DriveError,
    DriveNetworkError,
    DriveTimeoutError,
    DriveValidationError,
)
from .models import (
    CreateDriveRequest,
    Drive,
    DriveDirectoryInfo,
    DriveFileInfo,
    DriveItemInfo,
    ExistsResponse,
    FileParameter,
    FileResponse,
    ImportRecord,
    Partition,
)
from .policy import CircuitBreaker, PolicyRegistry, ResiliencyPolicy, RetryPolicy
from .result import Failure, Result, Success, unwrap, unwrap_or

__all__ = [
    "DriveClient",
    "TokenProvider",
    "StaticTokenProvider",
    "CallableTokenProvider",
    "ProblemDetails",
    "DomainErrorEnvelope",
    "ErrorInfo",
    "UnexpectedStatusError",
    "PayloadDecodeError",
    "ApiException",
    "DriveError",
    "DriveAuthenticationError",
    "DriveCircuitOpenError",
    "DriveConfigError",
    "DriveNetworkError",
    "DriveTimeoutError",
    "DriveValidationError",
    "CreateDriveRequest",
    "Drive",
    "DriveDirectoryInfo",
    "DriveFileInfo",
    "DriveItemInfo",
    "ExistsResponse",
    "FileParameter",
    "FileResponse",
    "ImportRecord",
    "Partition",
    "CircuitBreaker",
    "PolicyRegistry",
    "ResiliencyPolicy",
    "RetryPolicy",
    "Failure",
    "Result",
    "Success",
    "unwrap",
    "unwrap_or",
]
