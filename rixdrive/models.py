"""Data models for Rixian Drive API responses and requests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Callable, ClassVar, Optional, Union

from .utils import (
    DOWNLOAD_CHUNK_SIZE,
    format_iso_timestamp,
    parse_iso_timestamp,
    parse_uuid,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx


def _extra(data: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


def _require_object(data: Any, name: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{name} must be a JSON object, got {type(data).__name__}")
    return data


def _uuid_str(value: Optional[uuid.UUID]) -> Optional[str]:
    return str(value) if value is not None else None


# =============================================================================
# Drive items
_ITEM_KEYS = (
    "id",
    "tenantId",
    "partitionId",
    "fullPath",
    "createdOn",
    "lastAccessedOn",
    "lastModifiedOn",
    "name",
    "attributes",
    "parentDirectoryId",
)


@dataclass
class DriveItemInfo:
    """Common metadata of a file or directory.

    Items whose ``type`` discriminator is missing or not recognised are
    decoded to this class; the raw ``type`` value is kept in
    ``additional_properties``.
    """

    type: ClassVar[Optional[str]] = None
    _keys: ClassVar[tuple[str, ...]] = _ITEM_KEYS

    full_path: str
    id: Optional[uuid.UUID] = None
    tenant_id: Optional[uuid.UUID] = None
    partition_id: Optional[uuid.UUID] = None
    name: str = ""
    attributes: str = ""
    created_on: Optional[datetime] = None
    last_accessed_on: Optional[datetime] = None
    last_modified_on: Optional[datetime] = None
    parent_directory_id: Optional[uuid.UUID] = None
    additional_properties: dict[str, Any] = field(default_factory=dict)

    @property
    def is_file(self) -> bool:
        return False

    @property
    def is_directory(self) -> bool:
        return False

    @classmethod
    def _common_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
        if "fullPath" not in data:
            raise ValueError("Drive item is missing required field 'fullPath'")
        return {
            "full_path": data["fullPath"],
            "id": parse_uuid(data.get("id")),
            "tenant_id": parse_uuid(data.get("tenantId")),
            "partition_id": parse_uuid(data.get("partitionId")),
            "name": data.get("name") or "",
            "attributes": data.get("attributes") or "",
            "created_on": parse_iso_timestamp(data.get("createdOn")),
            "last_accessed_on": parse_iso_timestamp(data.get("lastAccessedOn")),
            "last_modified_on": parse_iso_timestamp(data.get("lastModifiedOn")),
            "parent_directory_id": parse_uuid(data.get("parentDirectoryId")),
            "additional_properties": _extra(data, cls._keys),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DriveItemInfo:
        return cls(**cls._common_fields(data))

    def _common_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.type is not None:
            data["type"] = self.type
        data.update(
            {
                "id": _uuid_str(self.id),
                "tenantId": _uuid_str(self.tenant_id),
                "partitionId": _uuid_str(self.partition_id),
                "fullPath": self.full_path,
                "createdOn": format_iso_timestamp(self.created_on),
                "lastAccessedOn": format_iso_timestamp(self.last_accessed_on),
                "lastModifiedOn": format_iso_timestamp(self.last_modified_on),
                "name": self.name,
                "attributes": self.attributes,
                "parentDirectoryId": _uuid_str(self.parent_directory_id),
            }
        )
        return data

    def to_dict(self) -> dict[str, Any]:
        data = self._common_dict()
        data.update(self.additional_properties)
        return data


@dataclass
class DriveFileInfo(DriveItemInfo):
    """Metadata about a file stored in a drive."""

    type: ClassVar[Optional[str]] = "file"
    _keys: ClassVar[tuple[str, ...]] = _ITEM_KEYS + (
        "type",
        "length",
        "contentType",
        "isShortcut",
        "alternateId",
    )

    length: int = 0
    content_type: Optional[str] = None
    is_shortcut: Optional[bool] = None
    alternate_id: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DriveFileInfo:
        return cls(
            **cls._common_fields(data),
            length=int(data.get("length") or 0),
            content_type=data.get("contentType"),
            is_shortcut=data.get("isShortcut"),
            alternate_id=data.get("alternateId"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = self._common_dict()
        data["length"] = self.length
        data["contentType"] = self.content_type
        if self.is_shortcut is not None:
            data["isShortcut"] = self.is_shortcut
        if self.alternate_id is not None:
            data["alternateId"] = self.alternate_id
        data.update(self.additional_properties)
        return data


@dataclass
class DriveDirectoryInfo(DriveItemInfo):
    """Metadata about a directory stored in a drive."""

    type: ClassVar[Optional[str]] = "directory"
    _keys: ClassVar[tuple[str, ...]] = _ITEM_KEYS + ("type", "hasChildren")

    has_children: bool = False

    @property
    def is_directory(self) -> bool:
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DriveDirectoryInfo:
        return cls(
            **cls._common_fields(data),
            has_children=bool(data.get("hasChildren", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data = self._common_dict()
        data["hasChildren"] = self.has_children
        data.update(self.additional_properties)
        return data


# Discriminator value of the "type" field -> concrete item class
DRIVE_ITEM_TYPES: dict[str, type[DriveItemInfo]] = {
    "file": DriveFileInfo,
    "directory": DriveDirectoryInfo,
}


def parse_drive_item(data: Any) -> DriveItemInfo:
    """Create a file or directory info from its JSON form.

    The concrete class is chosen by the ``type`` discriminator field. A
    missing or unknown discriminator yields a plain :class:`DriveItemInfo`.

    Raises:
        ValueError: If the payload is not an object or lacks ``fullPath``
    """
    data = _require_object(data, "Drive item")
    discriminator = data.get("type")
    item_cls = DriveItemInfo
    if isinstance(discriminator, str):
        item_cls = DRIVE_ITEM_TYPES.get(discriminator, DriveItemInfo)
    return item_cls.from_dict(data)


def parse_drive_items(data: Any) -> list[DriveItemInfo]:
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of drive items")
    return [parse_drive_item(item) for item in data]


def parse_file_infos(data: Any) -> list[DriveFileInfo]:
    """Parse a list of imported files.

    Entries are decoded as files even without a ``type`` field; an entry
    that says it is something else is rejected.
    """
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of files")
    files = []
    for entry in data:
        entry = _require_object(entry, "Drive file")
        kind = entry.get("type", DriveFileInfo.type)
        if kind != DriveFileInfo.type:
            raise ValueError(f"Expected a file, got {kind}: {entry.get('fullPath')}")
        files.append(DriveFileInfo.from_dict(entry))
    return files


# =============================================================================
# Other response payloads
# =============================================================================


@dataclass
class ExistsResponse:
    """Result of an existence check."""

    exists: bool
    additional_properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ExistsResponse:
        data = _require_object(data, "Exists response")
        if "exists" not in data:
            raise ValueError("Exists response is missing required field 'exists'")
        return cls(
            exists=bool(data["exists"]),
            additional_properties=_extra(data, ("exists",)),
        )

    def __bool__(self) -> bool:
        return self.exists


@dataclass
class DriveFileStream:
    """An alternate data stream attached to a file."""

    name: str
    file_id: Optional[uuid.UUID] = None
    tenant_id: Optional[uuid.UUID] = None
    partition_id: Optional[uuid.UUID] = None
    length: int = 0
    content_type: Optional[str] = None
    created_on: Optional[datetime] = None
    last_accessed_on: Optional[datetime] = None
    last_modified_on: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> DriveFileStream:
        data = _require_object(data, "File stream")
        return cls(
            name=data.get("name") or "",
            file_id=parse_uuid(data.get("fileId")),
            tenant_id=parse_uuid(data.get("tenantId")),
            partition_id=parse_uuid(data.get("partitionId")),
            length=int(data.get("length") or 0),
            content_type=data.get("contentType"),
            created_on=parse_iso_timestamp(data.get("createdOn")),
            last_accessed_on=parse_iso_timestamp(data.get("lastAccessedOn")),
            last_modified_on=parse_iso_timestamp(data.get("lastModifiedOn")),
        )


def parse_stream_names(data: Any) -> list[str]:
    """Parse the stream listing of a file.

    The service returns stream names; full stream objects are reduced to
    their ``name``.
    """
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of stream names")
    names = []
    for entry in data:
        if isinstance(entry, str):
            names.append(entry)
        else:
            names.append(DriveFileStream.from_dict(entry).name)
    return names


def parse_metadata(data: Any) -> dict[str, str]:
    data = _require_object(data, "File metadata")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


@dataclass
class Drive:
    """A drive registered with a tenant."""

    id: uuid.UUID
    name: str
    drive_controller_id: Optional[uuid.UUID] = None
    tenant_id: Optional[uuid.UUID] = None
    trust_level: Optional[str] = None
    additional_properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> Drive:
        data = _require_object(data, "Drive")
        drive_id = parse_uuid(data.get("id"))
        if drive_id is None:
            raise ValueError("Drive is missing required field 'id'")
        return cls(
            id=drive_id,
            name=data.get("name") or "",
            drive_controller_id=parse_uuid(data.get("driveControllerId")),
            tenant_id=parse_uuid(data.get("tenantId")),
            trust_level=data.get("trustLevel"),
            additional_properties=_extra(
                data, ("id", "name", "driveControllerId", "tenantId", "trustLevel")
            ),
        )


def parse_drives(data: Any) -> list[Drive]:
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of drives")
    return [Drive.from_dict(d) for d in data]


@dataclass
class Partition:
    """A partition of a drive, addressed by its label (e.g. ``c:``)."""

    id: uuid.UUID
    label: Optional[str] = None
    tenant_id: Optional[uuid.UUID] = None
    drive_id: Optional[uuid.UUID] = None
    root_directory_id: Optional[uuid.UUID] = None

    @classmethod
    def from_dict(cls, data: Any) -> Partition:
        data = _require_object(data, "Partition")
        partition_id = parse_uuid(data.get("id"))
        if partition_id is None:
            raise ValueError("Partition is missing required field 'id'")
        return cls(
            id=partition_id,
            label=data.get("label"),
            tenant_id=parse_uuid(data.get("tenantId")),
            drive_id=parse_uuid(data.get("driveId")),
            root_directory_id=parse_uuid(data.get("rootDirectoryId")),
        )


def parse_partitions(data: Any) -> list[Partition]:
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of partitions")
    return [Partition.from_dict(p) for p in data]


# =============================================================================
# Request payloads
# =============================================================================


@dataclass
class ImportRecord:
    """A file that already lives in external storage and is imported by id."""

    name: str
    alternate_id: str
    length: Optional[int] = None
    content_type: Optional[str] = None
    import_path: Optional[str] = None
    overwrite: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "alternateId": self.alternate_id}
        if self.length is not None:
            data["length"] = self.length
        if self.content_type is not None:
            data["contentType"] = self.content_type
        if self.import_path is not None:
            data["importPath"] = self.import_path
        if self.overwrite is not None:
            data["overwrite"] = self.overwrite
        return data


@dataclass
class CreateDriveRequest:
    """Request body for creating a new drive."""

    drive_controller_id: uuid.UUID
    name: str
    driver_info: str
    trust_level: Optional[str] = None
    partition_label: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "driveControllerId": str(self.drive_controller_id),
            "name": self.name,
            "driverInfo": self.driver_info,
        }
        if self.trust_level is not None:
            data["trustLevel"] = self.trust_level
        if self.partition_label is not None:
            data["partitionLabel"] = self.partition_label
        return data


@dataclass(frozen=True)
class FileParameter:
    """File contents uploaded as the ``data`` part of a multipart form."""

    data: Union[bytes, IO[bytes]]
    file_name: Optional[str] = None
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> FileParameter:
        """Read a local file into a FileParameter."""
        import mimetypes

        if content_type is None:
            content_type, _ = mimetypes.guess_type(str(path))
        return cls(path.read_bytes(), path.name, content_type)

    def to_multipart(self) -> dict[str, Any]:
        return {
            "data": (
                self.file_name or "data",
                self.data,
                self.content_type or "application/octet-stream",
            )
        }


# =============================================================================
# Streaming download
# =============================================================================


class FileResponse:
    """Open streaming download returned by the download operation.

    The caller owns the underlying response and must release it with
    :meth:`aclose` or by using the object as an async context manager.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def is_partial(self) -> bool:
        return self._response.status_code == 206

    @property
    def is_closed(self) -> bool:
        return self._response.is_closed

    @property
    def content_type(self) -> Optional[str]:
        return self._response.headers.get("Content-Type")

    @property
    def content_length(self) -> Optional[int]:
        value = self._response.headers.get("Content-Length")
        return int(value) if value and value.isdigit() else None

    @property
    def file_name(self) -> Optional[str]:
        """File name announced in the Content-Disposition header, if any."""
        content_disp = self._response.headers.get("Content-Disposition", "")
        if "filename*=" in content_disp:
            # RFC 5987 form: filename*=UTF-8''name
            encoded = content_disp.split("filename*=")[1].split(";")[0].strip()
            if "''" in encoded:
                from urllib.parse import unquote

                return unquote(encoded.split("''", 1)[1])
        if "filename=" in content_disp:
            return (
                content_disp.split("filename=")[1]
                .split(";")[0]
                .strip()
                .strip('"')
                .strip("'")
            )
        return None

    def aiter_bytes(
        self, chunk_size: int = DOWNLOAD_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes(chunk_size=chunk_size)

    async def read(self) -> bytes:
        """Read the whole payload and release the response."""
        try:
            return await self._response.aread()
        finally:
            await self.aclose()

    async def save(
        self,
        path: Path,
        progress_callback: Optional[Callable[[int, Optional[int]], None]] = None,
    ) -> Path:
        """Stream the payload into ``path`` and release the response.

        Args:
            path: Destination file
            progress_callback: Optional callback(bytes_downloaded, total_bytes)

        Returns:
            The path written to
        """
        total_size = self.content_length
        bytes_downloaded = 0
        try:
            with open(path, "wb") as f:
                async for chunk in self.aiter_bytes():
                    if chunk:
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
                        if progress_callback:
                            progress_callback(bytes_downloaded, total_size)
        finally:
            await self.aclose()
        return path

    async def aclose(self) -> None:
        await self._response.aclose()

    async def __aenter__(self) -> FileResponse:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
