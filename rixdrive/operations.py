"""Catalog of the drive API operations.

Each operation is pure configuration: HTTP method, path, query parameters,
body kind and the outcome mapping used to decode its responses.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .decoder import OutcomeMapping
from .exceptions import DriveValidationError
from .models import (
    Drive,
    ExistsResponse,
    FileParameter,
    parse_drive_item,
    parse_drive_items,
    parse_drives,
    parse_file_infos,
    parse_metadata,
    parse_partitions,
    parse_stream_names,
)
from .request import (
    ACCEPT_JSON,
    ACCEPT_OCTET,
    ACCEPT_PROBLEM,
    RequestDescriptor,
    build_request,
)

TENANT_PARAM = "tenantId"


class BodyKind(Enum):
    NONE = "none"
    JSON = "json"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class QueryParam:
    """A query parameter of an operation.

    ``argument`` is the keyword the client method passes the value under.
    Optional parameters left as ``None`` are omitted from the query string.
    """

    name: str
    argument: str
    required: bool = True


@dataclass(frozen=True)
class Operation:
    name: str
    method: str
    path: str
    mapping: OutcomeMapping
    query: tuple[QueryParam, ...] = ()
    body: BodyKind = BodyKind.NONE
    accept: str = ACCEPT_JSON

    @property
    def qualified_name(self) -> str:
        return f"DriveClient.{self.name}"

    def build(
        self,
        arguments: dict[str, Any],
        tenant_id: Optional[Any] = None,
        body: Any = None,
    ) -> RequestDescriptor:
        """Validate the arguments and build the request descriptor.

        Raises:
            DriveValidationError: If a required argument is missing or a
                value is malformed
        """
        params: list[tuple[str, Any]] = []
        for param in self.query:
            value = arguments.get(param.argument)
            if param.required:
                _require(value, param.argument)
            params.append((param.name, value))
        params.append((TENANT_PARAM, _tenant(tenant_id)))

        json_body = None
        file = None
        if self.body is BodyKind.JSON:
            if body is None:
                raise DriveValidationError(
                    f"{self.name}: request body is required", parameter="body"
                )
            json_body = body
        elif self.body is BodyKind.MULTIPART and body is not None:
            if not isinstance(body, FileParameter):
                raise DriveValidationError(
                    f"{self.name}: file contents must be a FileParameter",
                    parameter="file_contents",
                )
            file = body

        return build_request(
            self.method,
            self.path,
            params=params,
            headers=[("Accept", f"{self.accept}, {ACCEPT_PROBLEM}")],
            json=json_body,
            file=file,
        )


def _require(value: Any, argument: str) -> None:
    if value is None:
        raise DriveValidationError(f"{argument} is required", parameter=argument)
    if isinstance(value, str) and not value.strip():
        raise DriveValidationError(f"{argument} must not be empty", parameter=argument)


def _tenant(tenant_id: Optional[Any]) -> Optional[str]:
    if tenant_id is None:
        return None
    try:
        if isinstance(tenant_id, uuid.UUID):
            return str(tenant_id)
        return str(uuid.UUID(str(tenant_id)))
    except ValueError as e:
        raise DriveValidationError(
            f"tenant_id is not a valid UUID: {tenant_id!r}", parameter="tenant_id"
        ) from e


_PATH = QueryParam("path", "path")
_SOURCE = QueryParam("source", "source")
_TARGET = QueryParam("target", "target")

DOWNLOAD_CONTENT = Operation(
    "download_content",
    "GET",
    "cmd/download",
    OutcomeMapping.stream(),
    query=(_PATH,),
    accept=ACCEPT_OCTET,
)
GET_ITEM_INFO = Operation(
    "get_item_info",
    "GET",
    "cmd/info",
    OutcomeMapping.value(parse_drive_item, "DriveItemInfo"),
    query=(_PATH,),
)
LIST_CHILDREN = Operation(
    "list_children",
    "GET",
    "cmd/dir",
    OutcomeMapping.value(parse_drive_items, "list[DriveItemInfo]", empty=list),
    query=(_PATH,),
)
LIST_FILE_STREAMS = Operation(
    "list_file_streams",
    "GET",
    "cmd/streams",
    OutcomeMapping.value(parse_stream_names, "list[str]", empty=list),
    query=(_PATH,),
)
EXISTS = Operation(
    "exists",
    "GET",
    "cmd/exists",
    OutcomeMapping.value(ExistsResponse.from_dict, "ExistsResponse"),
    query=(_PATH,),
)
CREATE_DRIVE_ITEM = Operation(
    "create_drive_item",
    "POST",
    "cmd/create",
    OutcomeMapping.value(parse_drive_item, "DriveItemInfo"),
    query=(_PATH, QueryParam("overwrite", "overwrite", required=False)),
    body=BodyKind.MULTIPART,
)
DELETE_ITEM = Operation(
    "delete_item",
    "POST",
    "cmd/delete",
    OutcomeMapping.no_value(),
    query=(_PATH,),
)
COPY = Operation(
    "copy",
    "POST",
    "cmd/copy",
    OutcomeMapping.no_value(),
    query=(_SOURCE, _TARGET),
)
MOVE = Operation(
    "move",
    "POST",
    "cmd/move",
    OutcomeMapping.no_value(),
    query=(_SOURCE, _TARGET),
)
IMPORT_FILES = Operation(
    "import_files",
    "POST",
    "cmd/import",
    OutcomeMapping.value(parse_file_infos, "list[DriveFileInfo]", empty=list),
    query=(QueryParam("path", "path", required=False),),
    body=BodyKind.JSON,
)
LIST_FILE_METADATA = Operation(
    "list_file_metadata",
    "GET",
    "cmd/list-metadata",
    OutcomeMapping.value(parse_metadata, "dict[str, str]", empty=dict),
    query=(_PATH,),
)
CLEAR_FILE_METADATA = Operation(
    "clear_file_metadata",
    "POST",
    "cmd/clear-metadata",
    OutcomeMapping.no_value(),
    query=(_PATH,),
)
REMOVE_FILE_METADATA = Operation(
    "remove_file_metadata",
    "POST",
    "cmd/remove-metadata",
    OutcomeMapping.no_value(),
    query=(_PATH, QueryParam("key", "key")),
)
UPSERT_FILE_METADATA = Operation(
    "upsert_file_metadata",
    "POST",
    "cmd/upsert-metadata",
    OutcomeMapping.no_value(),
    query=(_PATH,),
    body=BodyKind.JSON,
)
CREATE_DRIVE = Operation(
    "create_drive",
    "POST",
    "drives",
    OutcomeMapping.value(Drive.from_dict, "Drive"),
    body=BodyKind.JSON,
)
LIST_DRIVES = Operation(
    "list_drives",
    "GET",
    "drives",
    OutcomeMapping.value(parse_drives, "list[Drive]", empty=list),
)
LIST_PARTITIONS = Operation(
    "list_partitions",
    "GET",
    "partitions",
    OutcomeMapping.value(parse_partitions, "list[Partition]", empty=list),
)

OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in (
        DOWNLOAD_CONTENT,
        GET_ITEM_INFO,
        LIST_CHILDREN,
        LIST_FILE_STREAMS,
        EXISTS,
        CREATE_DRIVE_ITEM,
        DELETE_ITEM,
        COPY,
        MOVE,
        IMPORT_FILES,
        LIST_FILE_METADATA,
        CLEAR_FILE_METADATA,
        REMOVE_FILE_METADATA,
        UPSERT_FILE_METADATA,
        CREATE_DRIVE,
        LIST_DRIVES,
        LIST_PARTITIONS,
    )
}
