"""Unit tests for drive data models."""

import uuid
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest
from conftest import DIRECTORY_ITEM, FILE_ITEM

from rixdrive.models import (
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
    parse_drive_item,
    parse_drive_items,
    parse_file_infos,
    parse_metadata,
    parse_stream_names,
)


class TestDriveItems:
    """Tests for the file/directory tagged union."""

    def test_parse_file(self):
        """Test parsing a file item."""
        item = parse_drive_item(FILE_ITEM)

        assert isinstance(item, DriveFileInfo)
        assert item.is_file and not item.is_directory
        assert item.id == uuid.UUID(FILE_ITEM["id"])
        assert item.full_path == "c:/a.txt"
        assert item.content_type == "text/plain"
        assert item.last_modified_on == datetime(
            2019, 9, 1, 10, 30, 0, 123456, tzinfo=timezone.utc
        )

    def test_parse_directory(self):
        """Test parsing a directory item."""
        item = parse_drive_item(DIRECTORY_ITEM)

        assert isinstance(item, DriveDirectoryInfo)
        assert item.is_directory
        assert item.has_children is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "file"},
            {"name": "x"},
            ["not", "an", "object"],
        ],
    )
    def test_invalid_items(self, payload):
        """Test that non-objects and items without a path raise ValueError."""
        with pytest.raises(ValueError):
            parse_drive_item(payload)

    @pytest.mark.parametrize(
        "payload",
        [
            {"fullPath": "c:/x"},
            {"type": "symlink", "fullPath": "c:/x"},
            {"type": None, "fullPath": "c:/x"},
        ],
    )
    def test_base_item_fallback(self, payload):
        """Test that a missing or unknown discriminator yields a base item."""
        item = parse_drive_item(payload)

        assert type(item) is DriveItemInfo
        assert not item.is_file and not item.is_directory
        assert item.full_path == "c:/x"

    def test_base_item_keeps_type(self):
        """Test that an unknown discriminator survives serialization."""
        item = parse_drive_item({"type": "symlink", "fullPath": "c:/x"})

        assert item.type is None
        assert item.additional_properties == {"type": "symlink"}
        assert item.to_dict()["type"] == "symlink"
        assert "type" not in parse_drive_item({"fullPath": "c:/x"}).to_dict()

    def test_subclasses_share_base(self):
        """Test that files and directories are drive items."""
        assert isinstance(parse_drive_item(FILE_ITEM), DriveItemInfo)
        assert isinstance(parse_drive_item(DIRECTORY_ITEM), DriveItemInfo)

    def test_invalid_uuid(self):
        """Test that a malformed id is rejected."""
        with pytest.raises(ValueError):
            parse_drive_item({"type": "file", "fullPath": "c:/x", "id": "nope"})

    def test_unknown_fields_are_kept(self):
        """Test that extra wire fields survive in additional_properties."""
        item = parse_drive_item({**FILE_ITEM, "etag": "W/1"})

        assert item.additional_properties == {"etag": "W/1"}
        assert item.to_dict()["etag"] == "W/1"

    def test_to_dict_uses_wire_names(self):
        """Test that serialization produces the camelCase wire form."""
        data = parse_drive_item(FILE_ITEM).to_dict()

        assert data["type"] == "file"
        assert data["fullPath"] == "c:/a.txt"
        assert data["contentType"] == "text/plain"
        assert data["length"] == 12
        assert parse_drive_item(data) == parse_drive_item(FILE_ITEM)

    def test_parse_list(self):
        """Test parsing a mixed listing."""
        items = parse_drive_items([FILE_ITEM, DIRECTORY_ITEM])
        assert [type(i) for i in items] == [DriveFileInfo, DriveDirectoryInfo]

        with pytest.raises(ValueError):
            parse_drive_items({"items": []})

    def test_parse_file_infos(self):
        """Test that imported entries are files even without a type."""
        files = parse_file_infos([{"fullPath": "c:/a.txt", "length": 3}, FILE_ITEM])
        assert [type(f) for f in files] == [DriveFileInfo, DriveFileInfo]
        assert files[0].length == 3

        with pytest.raises(ValueError):
            parse_file_infos([DIRECTORY_ITEM])


class TestOtherPayloads:
    """Tests for the smaller response models."""

    def test_exists_response(self):
        """Test parsing an existence check."""
        assert ExistsResponse.from_dict({"exists": True})
        assert not ExistsResponse.from_dict({"exists": False})
        with pytest.raises(ValueError):
            ExistsResponse.from_dict({})

    def test_stream_names(self):
        """Test that stream objects are reduced to their names."""
        names = parse_stream_names(["$DATA", {"name": "thumbnail", "length": 10}])
        assert names == ["$DATA", "thumbnail"]

    def test_metadata(self):
        """Test that metadata values are normalized to strings."""
        assert parse_metadata({"a": "x", "b": 2, "c": None}) == {
            "a": "x",
            "b": "2",
            "c": "",
        }

    def test_drive_requires_id(self):
        """Test that a drive without id is invalid."""
        with pytest.raises(ValueError):
            Drive.from_dict({"name": "archive"})

        drive = Drive.from_dict(
            {
                "id": "a1b2c3d4-e5f6-4789-8abc-def012345678",
                "name": "archive",
                "trustLevel": "high",
                "region": "eu",
            }
        )
        assert drive.trust_level == "high"
        assert drive.additional_properties == {"region": "eu"}

    def test_partition(self):
        """Test parsing a partition."""
        partition = Partition.from_dict(
            {"id": "b2c3d4e5-f6a7-4890-9bcd-ef0123456789", "label": "c:"}
        )
        assert partition.label == "c:"
        assert partition.drive_id is None


class TestRequestModels:
    """Tests for request payloads."""

    def test_import_record_omits_unset_fields(self):
        """Test that only set fields are serialized."""
        record = ImportRecord(name="a.txt", alternate_id="blob-1", overwrite=False)
        assert record.to_dict() == {
            "name": "a.txt",
            "alternateId": "blob-1",
            "overwrite": False,
        }

    def test_create_drive_request(self):
        """Test the create-drive body."""
        controller = uuid.uuid4()
        request = CreateDriveRequest(
            drive_controller_id=controller,
            name="d",
            driver_info="{}",
            trust_level="low",
        )
        assert request.to_dict() == {
            "driveControllerId": str(controller),
            "name": "d",
            "driverInfo": "{}",
            "trustLevel": "low",
        }

    def test_file_parameter_defaults(self):
        """Test the multipart tuple with default name and content type."""
        assert FileParameter(b"abc").to_multipart() == {
            "data": ("data", b"abc", "application/octet-stream")
        }

    def test_file_parameter_from_path(self, tmp_path):
        """Test that the content type is guessed from the file name."""
        local = tmp_path / "report.json"
        local.write_bytes(b"{}")
        param = FileParameter.from_path(local)

        assert param.file_name == "report.json"
        assert param.content_type == "application/json"
        assert param.data == b"{}"


class TestFileResponse:
    """Tests for the streaming download wrapper."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ('attachment; filename="report.pdf"', "report.pdf"),
            ("attachment; filename=report.pdf", "report.pdf"),
            ("attachment; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf", "résumé.pdf"),
            ("inline", None),
        ],
    )
    def test_file_name(self, header, expected):
        """Test parsing the Content-Disposition header."""
        response = httpx.Response(200, headers={"Content-Disposition": header})
        assert FileResponse(response).file_name == expected

    def test_partial_content(self):
        """Test range responses are flagged as partial."""
        assert FileResponse(httpx.Response(206)).is_partial
        assert not FileResponse(httpx.Response(200)).is_partial

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        """Test that leaving the context releases the response."""
        response = httpx.Response(200, content=b"abc")
        async with FileResponse(response) as file_response:
            chunks = [c async for c in file_response.aiter_bytes()]
        assert b"".join(chunks) == b"abc"
        assert response.is_closed

    @pytest.mark.asyncio
    async def test_save(self, tmp_path):
        """Test streaming a payload to disk."""
        response = httpx.Response(200, content=b"hello")
        target = await FileResponse(response).save(Path(tmp_path / "hello.txt"))

        assert target.read_bytes() == b"hello"
        assert response.is_closed
