"""Async API client for Rixian Drive.

Every operation is available in three forms:

- ``<operation>_http_response``: sends the request and returns the raw,
  still-open ``httpx.Response``. The caller must close it.
- ``<operation>_result``: decodes the response into a
  :class:`~rixdrive.result.Result`.
- ``<operation>``: returns the value or raises
  :class:`~rixdrive.exceptions.ApiException`.

All forms accept an optional ``tenant_id``. Cancelling the calling task
aborts the in-flight attempt and any pending retry.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Callable, Optional, Union

import httpx

from . import operations as ops
from .auth import StaticTokenProvider, TokenProvider, bearer_interceptor
from .config import ClientSettings, config
from .decoder import decode
from .exceptions import DriveValidationError
from .models import (
    CreateDriveRequest,
    Drive,
    DriveFileInfo,
    DriveItemInfo,
    ExistsResponse,
    FileParameter,
    FileResponse,
    ImportRecord,
    Partition,
)
from .operations import OPERATIONS, Operation
from .policy import PolicyRegistry, ResiliencyPolicy
from .request import RequestInterceptor, apply_interceptors
from .result import Result, Success, unwrap
from .transport import Sender, build_async_client

logger = logging.getLogger(__name__)

TenantId = Union[uuid.UUID, str, None]


class DriveClient:
    """Client for interacting with the Rixian Drive API."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        api_key_header: Optional[str] = None,
        api_version: Optional[str] = None,
        access_token: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        policies: Optional[Mapping[str, ResiliencyPolicy]] = None,
        default_policy: Optional[ResiliencyPolicy] = None,
        interceptors: Optional[Iterable[RequestInterceptor]] = None,
        timeout: float = 30.0,
        min_tls_version: str = "1.2",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the drive API client.

        Args:
            api_url: Base address of the drive API (uses config if not provided)
            api_key: Optional subscription key sent on every request
            api_key_header: Header name for the API key (default: Subscription-Key)
            api_version: Value of the ``api-version`` query parameter
            access_token: Static bearer token (ignored if token_provider is set)
            token_provider: Source of bearer tokens, queried before every send
            policies: Resiliency policies keyed by operation name
            default_policy: Policy for operations without their own entry
            interceptors: Hooks that may rewrite each request before it is sent
            timeout: Request timeout in seconds (default: 30.0)
            min_tls_version: Minimum TLS version, "1.2" or "1.3"
            transport: Optional httpx transport (e.g. for testing)

        Raises:
            DriveConfigError: If no API URL is configured
            ValueError: If a policy is registered for an unknown operation
        """
        self.settings = ClientSettings(
            api_url=api_url,
            api_key=api_key,
            api_key_header=api_key_header,
            api_version=api_version,
            timeout=timeout,
            min_tls_version=min_tls_version,
        )

        unknown = set(policies or {}) - set(OPERATIONS)
        if unknown:
            raise ValueError(f"Unknown operation(s) in policies: {sorted(unknown)}")
        self.policies = PolicyRegistry(policies, default_policy)

        if token_provider is None:
            token = access_token or config.access_token
            if token:
                token_provider = StaticTokenProvider(token)

        chain = list(interceptors or ())
        if token_provider is not None:
            chain.append(bearer_interceptor(token_provider))
        self._interceptors: tuple[RequestInterceptor, ...] = tuple(chain)

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = build_async_client(
            self.settings, transport
        )

    @property
    def api_url(self) -> str:
        return self.settings.api_url  # type: ignore[return-value]

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = build_async_client(self.settings, self._transport)
        return self._client

    def _get_sender(self) -> Sender:
        return Sender(self._get_client(), self.settings.api_version)

    async def aclose(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DriveClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # =========================
    # Tier plumbing
    # =========================

    async def _send(
        self,
        operation: Operation,
        tenant_id: TenantId,
        body: Any = None,
        **arguments: Any,
    ) -> httpx.Response:
        """Build, intercept and send one operation's request."""
        descriptor = operation.build(arguments, tenant_id, body)
        descriptor = await apply_interceptors(
            self._interceptors, operation.name, descriptor
        )
        policy = self.policies.get(operation.name)
        return await self._get_sender().send(descriptor, policy)

    async def _decode(
        self, operation: Operation, response: httpx.Response
    ) -> Result[Any]:
        return await decode(response, operation.mapping, operation.qualified_name)

    # =========================
    # File and Directory Operations
    # =========================

    async def download_content_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Download the file contents or alternate stream data.

        Args:
            path: The path to a file (e.g. "c:/docs/report.pdf")
            tenant_id: Optional tenant to act on behalf of

        Returns:
            Raw streaming response; the caller must close it
        """
        return await self._send(ops.DOWNLOAD_CONTENT, tenant_id, path=path)

    async def download_content_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[Optional[FileResponse]]:
        """Download a file as an open stream.

        A successful result holds a :class:`FileResponse` the caller must
        close, or ``None`` when the service answered 204 No Content.
        """
        response = await self.download_content_http_response(path, tenant_id)
        return await self._decode(ops.DOWNLOAD_CONTENT, response)

    async def download_content(
        self, path: str, tenant_id: TenantId = None
    ) -> Optional[FileResponse]:
        return unwrap(await self.download_content_result(path, tenant_id))

    async def get_item_info_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Retrieve the metadata about a drive item.

        Args:
            path: The path to a file or directory
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.GET_ITEM_INFO, tenant_id, path=path)

    async def get_item_info_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[Optional[DriveItemInfo]]:
        response = await self.get_item_info_http_response(path, tenant_id)
        return await self._decode(ops.GET_ITEM_INFO, response)

    async def get_item_info(
        self, path: str, tenant_id: TenantId = None
    ) -> Optional[DriveItemInfo]:
        return unwrap(await self.get_item_info_result(path, tenant_id))

    async def list_children_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """List the children of a directory.

        Args:
            path: The path to a directory (e.g. "c:/")
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.LIST_CHILDREN, tenant_id, path=path)

    async def list_children_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[list[DriveItemInfo]]:
        response = await self.list_children_http_response(path, tenant_id)
        return await self._decode(ops.LIST_CHILDREN, response)

    async def list_children(
        self, path: str, tenant_id: TenantId = None
    ) -> list[DriveItemInfo]:
        return unwrap(await self.list_children_result(path, tenant_id))

    async def list_file_streams_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """List the streams associated with a file.

        Args:
            path: The path to a file
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.LIST_FILE_STREAMS, tenant_id, path=path)

    async def list_file_streams_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[list[str]]:
        response = await self.list_file_streams_http_response(path, tenant_id)
        return await self._decode(ops.LIST_FILE_STREAMS, response)

    async def list_file_streams(
        self, path: str, tenant_id: TenantId = None
    ) -> list[str]:
        return unwrap(await self.list_file_streams_result(path, tenant_id))

    async def exists_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Check if a file or directory exists.

        Args:
            path: The path to check
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.EXISTS, tenant_id, path=path)

    async def exists_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[Optional[ExistsResponse]]:
        response = await self.exists_http_response(path, tenant_id)
        return await self._decode(ops.EXISTS, response)

    async def exists(
        self, path: str, tenant_id: TenantId = None
    ) -> Optional[ExistsResponse]:
        return unwrap(await self.exists_result(path, tenant_id))

    async def create_drive_item_http_response(
        self,
        path: str,
        overwrite: Optional[bool] = None,
        file_contents: Optional[FileParameter] = None,
        tenant_id: TenantId = None,
    ) -> httpx.Response:
        """Create a new file or directory.

        Without ``file_contents`` a directory is created at ``path``;
        otherwise the contents are uploaded as multipart form data.

        Args:
            path: The path of the new item
            overwrite: Overwrite existing file contents (omitted if None)
            file_contents: The file contents
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(
            ops.CREATE_DRIVE_ITEM,
            tenant_id,
            body=file_contents,
            path=path,
            overwrite=overwrite,
        )

    async def create_drive_item_result(
        self,
        path: str,
        overwrite: Optional[bool] = None,
        file_contents: Optional[FileParameter] = None,
        tenant_id: TenantId = None,
    ) -> Result[Optional[DriveItemInfo]]:
        response = await self.create_drive_item_http_response(
            path, overwrite, file_contents, tenant_id
        )
        return await self._decode(ops.CREATE_DRIVE_ITEM, response)

    async def create_drive_item(
        self,
        path: str,
        overwrite: Optional[bool] = None,
        file_contents: Optional[FileParameter] = None,
        tenant_id: TenantId = None,
    ) -> Optional[DriveItemInfo]:
        return unwrap(
            await self.create_drive_item_result(
                path, overwrite, file_contents, tenant_id
            )
        )

    async def delete_item_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Delete a file or directory.

        Args:
            path: The path to delete
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.DELETE_ITEM, tenant_id, path=path)

    async def delete_item_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[None]:
        response = await self.delete_item_http_response(path, tenant_id)
        return await self._decode(ops.DELETE_ITEM, response)

    async def delete_item(self, path: str, tenant_id: TenantId = None) -> None:
        unwrap(await self.delete_item_result(path, tenant_id))

    async def copy_http_response(
        self, source: str, target: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Copy a file or directory.

        Args:
            source: The source location
            target: The target location
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.COPY, tenant_id, source=source, target=target)

    async def copy_result(
        self, source: str, target: str, tenant_id: TenantId = None
    ) -> Result[None]:
        response = await self.copy_http_response(source, target, tenant_id)
        return await self._decode(ops.COPY, response)

    async def copy(self, source: str, target: str, tenant_id: TenantId = None) -> None:
        unwrap(await self.copy_result(source, target, tenant_id))

    async def move_http_response(
        self, source: str, target: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Move a file or directory.

        Args:
            source: The source location
            target: The target location
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.MOVE, tenant_id, source=source, target=target)

    async def move_result(
        self, source: str, target: str, tenant_id: TenantId = None
    ) -> Result[None]:
        response = await self.move_http_response(source, target, tenant_id)
        return await self._decode(ops.MOVE, response)

    async def move(self, source: str, target: str, tenant_id: TenantId = None) -> None:
        unwrap(await self.move_result(source, target, tenant_id))

    async def import_files_http_response(
        self,
        files: Iterable[Union[ImportRecord, dict[str, Any]]],
        path: Optional[str] = None,
        tenant_id: TenantId = None,
    ) -> httpx.Response:
        """Import files that already live in external storage.

        Args:
            files: The files to import
            path: Default import location (omitted if None)
            tenant_id: Optional tenant to act on behalf of
        """
        if files is None:
            raise DriveValidationError("files is required", parameter="files")
        body = {
            "files": [f.to_dict() if isinstance(f, ImportRecord) else f for f in files]
        }
        return await self._send(ops.IMPORT_FILES, tenant_id, body=body, path=path)

    async def import_files_result(
        self,
        files: Iterable[Union[ImportRecord, dict[str, Any]]],
        path: Optional[str] = None,
        tenant_id: TenantId = None,
    ) -> Result[list[DriveFileInfo]]:
        response = await self.import_files_http_response(files, path, tenant_id)
        return await self._decode(ops.IMPORT_FILES, response)

    async def import_files(
        self,
        files: Iterable[Union[ImportRecord, dict[str, Any]]],
        path: Optional[str] = None,
        tenant_id: TenantId = None,
    ) -> list[DriveFileInfo]:
        return unwrap(await self.import_files_result(files, path, tenant_id))

    # =========================
    # File Metadata Operations
    # =========================

    async def list_file_metadata_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """List all metadata of a file.

        Args:
            path: The path to a file
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.LIST_FILE_METADATA, tenant_id, path=path)

    async def list_file_metadata_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[dict[str, str]]:
        response = await self.list_file_metadata_http_response(path, tenant_id)
        return await self._decode(ops.LIST_FILE_METADATA, response)

    async def list_file_metadata(
        self, path: str, tenant_id: TenantId = None
    ) -> dict[str, str]:
        return unwrap(await self.list_file_metadata_result(path, tenant_id))

    async def clear_file_metadata_http_response(
        self, path: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Clear all metadata of a file.

        Args:
            path: The path to a file
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(ops.CLEAR_FILE_METADATA, tenant_id, path=path)

    async def clear_file_metadata_result(
        self, path: str, tenant_id: TenantId = None
    ) -> Result[None]:
        response = await self.clear_file_metadata_http_response(path, tenant_id)
        return await self._decode(ops.CLEAR_FILE_METADATA, response)

    async def clear_file_metadata(self, path: str, tenant_id: TenantId = None) -> None:
        unwrap(await self.clear_file_metadata_result(path, tenant_id))

    async def remove_file_metadata_http_response(
        self, path: str, key: str, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Remove a single metadata item from a file.

        Args:
            path: The path to a file
            key: The metadata key
            tenant_id: Optional tenant to act on behalf of
        """
        return await self._send(
            ops.REMOVE_FILE_METADATA, tenant_id, path=path, key=key
        )

    async def remove_file_metadata_result(
        self, path: str, key: str, tenant_id: TenantId = None
    ) -> Result[None]:
        response = await self.remove_file_metadata_http_response(path, key, tenant_id)
        return await self._decode(ops.REMOVE_FILE_METADATA, response)

    async def remove_file_metadata(
        self, path: str, key: str, tenant_id: TenantId = None
    ) -> None:
        unwrap(await self.remove_file_metadata_result(path, key, tenant_id))

    async def upsert_file_metadata_http_response(
        self, path: str, metadata: Mapping[str, str], tenant_id: TenantId = None
    ) -> httpx.Response:
        """Update and/or insert metadata items on a file.

        Args:
            path: The path to a file
            metadata: All metadata items to update
            tenant_id: Optional tenant to act on behalf of
        """
        body = {"metadata": dict(metadata)} if metadata is not None else None
        return await self._send(
            ops.UPSERT_FILE_METADATA, tenant_id, body=body, path=path
        )

    async def upsert_file_metadata_result(
        self, path: str, metadata: Mapping[str, str], tenant_id: TenantId = None
    ) -> Result[None]:
        response = await self.upsert_file_metadata_http_response(
            path, metadata, tenant_id
        )
        return await self._decode(ops.UPSERT_FILE_METADATA, response)

    async def upsert_file_metadata(
        self, path: str, metadata: Mapping[str, str], tenant_id: TenantId = None
    ) -> None:
        unwrap(await self.upsert_file_metadata_result(path, metadata, tenant_id))

    # =========================
    # Drive and Partition Operations
    # =========================

    async def create_drive_http_response(
        self, request: CreateDriveRequest, tenant_id: TenantId = None
    ) -> httpx.Response:
        """Create a new drive.

        Args:
            request: The drive to create
            tenant_id: Optional tenant to act on behalf of
        """
        body = request.to_dict() if request is not None else None
        return await self._send(ops.CREATE_DRIVE, tenant_id, body=body)

    async def create_drive_result(
        self, request: CreateDriveRequest, tenant_id: TenantId = None
    ) -> Result[Optional[Drive]]:
        response = await self.create_drive_http_response(request, tenant_id)
        return await self._decode(ops.CREATE_DRIVE, response)

    async def create_drive(
        self, request: CreateDriveRequest, tenant_id: TenantId = None
    ) -> Optional[Drive]:
        return unwrap(await self.create_drive_result(request, tenant_id))

    async def list_drives_http_response(
        self, tenant_id: TenantId = None
    ) -> httpx.Response:
        """List the drives of a tenant."""
        return await self._send(ops.LIST_DRIVES, tenant_id)

    async def list_drives_result(
        self, tenant_id: TenantId = None
    ) -> Result[list[Drive]]:
        response = await self.list_drives_http_response(tenant_id)
        return await self._decode(ops.LIST_DRIVES, response)

    async def list_drives(self, tenant_id: TenantId = None) -> list[Drive]:
        return unwrap(await self.list_drives_result(tenant_id))

    async def list_partitions_http_response(
        self, tenant_id: TenantId = None
    ) -> httpx.Response:
        """List the partitions of a tenant."""
        return await self._send(ops.LIST_PARTITIONS, tenant_id)

    async def list_partitions_result(
        self, tenant_id: TenantId = None
    ) -> Result[list[Partition]]:
        response = await self.list_partitions_http_response(tenant_id)
        return await self._decode(ops.LIST_PARTITIONS, response)

    async def list_partitions(self, tenant_id: TenantId = None) -> list[Partition]:
        return unwrap(await self.list_partitions_result(tenant_id))

    # =========================
    # Convenience Operations
    # =========================

    async def download_file(
        self,
        path: str,
        output_path: Optional[Path] = None,
        progress_callback: Optional[Callable[[int, Optional[int]], None]] = None,
        tenant_id: TenantId = None,
    ) -> Optional[Path]:
        """Download a file to local disk.

        Args:
            path: The path to a file in the drive
            output_path: Where to save the file (defaults to the announced
                file name, then the last path segment)
            progress_callback: Optional callback(bytes_downloaded, total_bytes)
            tenant_id: Optional tenant to act on behalf of

        Returns:
            The path written to, or None if the service returned no content

        Raises:
            ApiException: If the download failed
        """
        file_response = await self.download_content(path, tenant_id)
        if file_response is None:
            return None
        save_path = output_path or Path(
            file_response.file_name or path.rstrip("/").rsplit("/", 1)[-1]
        )
        return await file_response.save(save_path, progress_callback)

    async def upload_file(
        self,
        local_path: Path,
        path: str,
        overwrite: Optional[bool] = None,
        tenant_id: TenantId = None,
    ) -> Optional[DriveItemInfo]:
        """Upload a local file to ``path``.

        Raises:
            DriveValidationError: If ``local_path`` is not a file
            ApiException: If the upload failed
        """
        local_path = Path(local_path)
        if not local_path.is_file():
            raise DriveValidationError(
                f"Not a file: {local_path}", parameter="local_path"
            )
        return await self.create_drive_item(
            path, overwrite, FileParameter.from_path(local_path), tenant_id
        )

    async def item_exists(self, path: str, tenant_id: TenantId = None) -> bool:
        """Return whether ``path`` exists; a 204 answer counts as missing."""
        result = await self.exists_result(path, tenant_id)
        if isinstance(result, Success):
            return bool(result.value)
        unwrap(result)
        return False
