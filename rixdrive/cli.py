"""CLI interface for Rixian Drive."""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TimeElapsedColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from .api import DriveClient
from .config import config
from .exceptions import ApiException, DriveError
from .models import (
    CreateDriveRequest,
    DriveDirectoryInfo,
    DriveFileInfo,
    DriveItemInfo,
    ImportRecord,
)
from .output import OutputFormatter
from .utils import format_iso_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_client(ctx: Any, action: Callable[[DriveClient], Awaitable[T]]) -> T:
    """Create a client, run ``action`` on it and close it again.

    ``ApiException`` and other drive errors are reported through the output
    formatter and end the command with exit code 1.
    """
    out: OutputFormatter = ctx.obj["out"]

    if not config.is_configured() and not ctx.obj.get("api_url"):
        out.error("API URL not configured.")
        out.info("Run 'rixdrive init' to configure the drive API")
        ctx.exit(1)

    async def _run() -> T:
        client = DriveClient(
            api_url=ctx.obj.get("api_url"),
            api_key=ctx.obj.get("api_key"),
        )
        try:
            return await action(client)
        finally:
            await client.aclose()

    try:
        return asyncio.run(_run())
    except ApiException as e:
        out.error(f"Request failed: {e.error}")
        logger.debug("API error details:\n%s", e)
        ctx.exit(1)
    except DriveError as e:
        out.error(str(e))
        ctx.exit(1)


def item_row(item: DriveItemInfo) -> dict[str, Any]:
    """Flatten a drive item into a table row."""
    return {
        "name": item.name or item.full_path.rstrip("/").rsplit("/", 1)[-1],
        "type": item.type or item.additional_properties.get("type"),
        "size": item.length if isinstance(item, DriveFileInfo) else None,
        "modified": format_iso_timestamp(item.last_modified_on),
        "path": item.full_path,
    }


@click.group()
@click.option("--api-url", envvar="RIXDRIVE_API_URL", help="Drive API base URL")
@click.option("--api-key", "-k", envvar="RIXDRIVE_API_KEY", help="Subscription key")
@click.option(
    "--tenant",
    "-t",
    envvar="RIXDRIVE_TENANT",
    help="Tenant ID to act on behalf of",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="rixdrive")
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    api_key: Optional[str],
    tenant: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """Rixdrive - Manage files, metadata and drives in Rixian Drive."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["api_key"] = api_key
    ctx.obj["tenant"] = tenant
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("rixdrive").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--api-url", prompt="Drive API base URL", help="Drive API base URL")
@click.option(
    "--api-key",
    "-k",
    prompt="Subscription key (leave empty for none)",
    default="",
    show_default=False,
    help="Subscription key",
)
@click.pass_context
def init(ctx: Any, api_url: str, api_key: str) -> None:
    """Initialize Rixian Drive configuration.

    Stores the API URL and key in ~/.config/rixdrive/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating connection...")
    try:
        partitions = asyncio.run(_probe(api_url, api_key or None))
        out.success(f"✓ Connected ({len(partitions)} partition(s) visible)")
    except (ApiException, DriveError) as e:
        out.error(f"Could not reach the drive API: {e}")
        if not click.confirm("Save the configuration anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    config.save(api_url=api_url, api_key=api_key or None)
    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
        ],
    )


async def _probe(api_url: str, api_key: Optional[str]) -> list[Any]:
    async with DriveClient(api_url=api_url, api_key=api_key) as client:
        return await client.list_partitions()


@main.command()
@click.argument("path", type=str)
@click.option("--long", "-l", "long_format", is_flag=True, help="Show details")
@click.pass_context
def ls(ctx: Any, path: str, long_format: bool) -> None:
    """List the children of a directory.

    PATH: Directory path, including the partition label

    Examples:
        rixdrive ls c:/                # List the partition root
        rixdrive ls -l c:/documents    # With size and modification time
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    items = run_client(ctx, lambda client: client.list_children(path, tenant))

    if out.json_output:
        out.output_json([item.to_dict() for item in items])
        return
    if not items:
        return

    rows = [item_row(item) for item in items]
    if long_format:
        for row in rows:
            size = row["size"]
            row["size"] = out.format_size(size) if size is not None else ""
        out.output_table(
            rows,
            ["type", "size", "modified", "name"],
            {"type": "Type", "size": "Size", "modified": "Modified", "name": "Name"},
        )
    else:
        out.output_table(rows, ["name"], {"name": "Name"})


@main.command()
@click.argument("path", type=str)
@click.pass_context
def info(ctx: Any, path: str) -> None:
    """Show the metadata of a file or directory."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    item = run_client(ctx, lambda client: client.get_item_info(path, tenant))

    if item is None:
        out.warning(f"No information returned for {path}")
        return
    if out.json_output:
        out.output_json(item.to_dict())
        return

    table_data = [
        {"field": "Path", "value": item.full_path},
        {"field": "Type", "value": item.type},
        {"field": "ID", "value": item.id},
        {"field": "Created", "value": format_iso_timestamp(item.created_on)},
        {"field": "Modified", "value": format_iso_timestamp(item.last_modified_on)},
    ]
    if isinstance(item, DriveFileInfo):
        size = f"{out.format_size(item.length)} ({item.length:,} bytes)"
        table_data.append({"field": "Size", "value": size})
        table_data.append({"field": "Content type", "value": item.content_type})
    elif isinstance(item, DriveDirectoryInfo):
        table_data.append({"field": "Has children", "value": item.has_children})

    out.output_table(
        table_data, ["field", "value"], {"field": "Field", "value": "Value"}
    )


@main.command()
@click.argument("path", type=str)
@click.pass_context
def exists(ctx: Any, path: str) -> None:
    """Check whether a file or directory exists.

    Exits with status 1 if the item does not exist.
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    found = run_client(ctx, lambda client: client.item_exists(path, tenant))

    if out.json_output:
        out.output_json({"path": path, "exists": found})
    else:
        out.print(f"{path}: {'exists' if found else 'not found'}")
    if not found:
        ctx.exit(1)


@main.command()
@click.argument("path", type=str)
@click.pass_context
def streams(ctx: Any, path: str) -> None:
    """List the alternate data streams of a file."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    names = run_client(ctx, lambda client: client.list_file_streams(path, tenant))

    if out.json_output:
        out.output_json(names)
        return
    for name in names:
        out.print(name)


@main.command()
@click.argument("path", type=str)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Output file (defaults to the remote file name)",
)
@click.pass_context
def download(ctx: Any, path: str, output: Optional[Path]) -> None:
    """Download a file.

    PATH: Remote file path, e.g. c:/docs/report.pdf
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    show_progress = not out.quiet and not out.json_output

    async def _download(client: DriveClient) -> Optional[Path]:
        if not show_progress:
            return await client.download_file(path, output, tenant_id=tenant)
        with Progress(
            "[progress.description]{task.description}",
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
            console=out.err_console,
            transient=True,
        ) as progress:
            task_id = progress.add_task(f"Downloading {path}", total=None)

            def progress_callback(done: int, total: Optional[int]) -> None:
                progress.update(task_id, completed=done, total=total)

            return await client.download_file(
                path, output, progress_callback, tenant_id=tenant
            )

    saved = run_client(ctx, _download)

    if saved is None:
        out.warning(f"No content returned for {path}")
        return
    if out.json_output:
        out.output_json({"path": path, "output": str(saved)})
    else:
        out.success(f"✓ Downloaded {path} to {saved}")


@main.command()
@click.argument(
    "local_path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.argument("remote_path", type=str)
@click.option("--overwrite", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def upload(ctx: Any, local_path: Path, remote_path: str, overwrite: bool) -> None:
    """Upload a local file.

    LOCAL_PATH: File to upload

    REMOTE_PATH: Target path in the drive, e.g. c:/docs/report.pdf
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    item = run_client(
        ctx,
        lambda client: client.upload_file(
            local_path, remote_path, overwrite or None, tenant
        ),
    )

    if out.json_output:
        out.output_json(item.to_dict() if item is not None else None)
    else:
        out.success(f"✓ Uploaded {local_path.name} to {remote_path}")


@main.command()
@click.argument("path", type=str)
@click.pass_context
def mkdir(ctx: Any, path: str) -> None:
    """Create a directory."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    item = run_client(
        ctx, lambda client: client.create_drive_item(path, tenant_id=tenant)
    )

    if out.json_output:
        out.output_json(item.to_dict() if item is not None else None)
    else:
        out.success(f"✓ Created directory {path}")


@main.command()
@click.argument("paths", nargs=-1, type=str, required=True)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def rm(ctx: Any, paths: tuple[str, ...], yes: bool) -> None:
    """Delete one or more files or directories.

    Examples:
        rixdrive rm c:/tmp/a.txt                 # Delete one file
        rixdrive rm -y c:/tmp/a.txt c:/tmp/old   # Delete several, no prompt
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")

    if (
        not yes
        and not out.quiet
        and not click.confirm(f"Are you sure you want to delete {len(paths)} item(s)?")
    ):
        out.warning("Deletion cancelled.")
        return

    async def _delete(client: DriveClient) -> None:
        for path in paths:
            await client.delete_item(path, tenant)
            logger.debug("Deleted %s", path)

    run_client(ctx, _delete)

    if out.json_output:
        out.output_json({"deleted": list(paths)})
    else:
        out.success(f"✓ Deleted {len(paths)} item(s)")


@main.command()
@click.argument("source", type=str)
@click.argument("target", type=str)
@click.pass_context
def cp(ctx: Any, source: str, target: str) -> None:
    """Copy a file or directory."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    run_client(ctx, lambda client: client.copy(source, target, tenant))
    out.success(f"✓ Copied {source} to {target}")


@main.command()
@click.argument("source", type=str)
@click.argument("target", type=str)
@click.pass_context
def mv(ctx: Any, source: str, target: str) -> None:
    """Move a file or directory."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    run_client(ctx, lambda client: client.move(source, target, tenant))
    out.success(f"✓ Moved {source} to {target}")


@main.command("import")
@click.argument("records", nargs=-1, type=str, required=True)
@click.option("--path", "-p", "import_path", help="Default import location")
@click.option("--overwrite", is_flag=True, help="Overwrite existing files")
@click.pass_context
def import_(
    ctx: Any, records: tuple[str, ...], import_path: Optional[str], overwrite: bool
) -> None:
    """Import files that already live in external storage.

    RECORDS: One or more NAME=ALTERNATE_ID pairs

    Examples:
        rixdrive import report.pdf=blob-1234 --path c:/imported
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")

    files = []
    for record in records:
        name, sep, alternate_id = record.partition("=")
        if not sep or not name or not alternate_id:
            raise click.BadParameter(
                f"Expected NAME=ALTERNATE_ID, got {record!r}", param_hint="RECORDS"
            )
        files.append(
            ImportRecord(
                name=name, alternate_id=alternate_id, overwrite=overwrite or None
            )
        )

    imported = run_client(
        ctx, lambda client: client.import_files(files, import_path, tenant)
    )

    if out.json_output:
        out.output_json([item.to_dict() for item in imported])
        return
    for item in imported:
        out.info(f"  {item.full_path}")
    out.success(f"✓ Imported {len(imported)} file(s)")


@main.group()
@click.pass_context
def meta(ctx: Any) -> None:
    """Manage file metadata.

    Examples:
        rixdrive meta list c:/docs/report.pdf
        rixdrive meta set c:/docs/report.pdf owner=finance status=final
        rixdrive meta rm c:/docs/report.pdf status
    """
    pass


@meta.command("list")
@click.argument("path", type=str)
@click.pass_context
def meta_list(ctx: Any, path: str) -> None:
    """List all metadata of a file."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    metadata = run_client(ctx, lambda client: client.list_file_metadata(path, tenant))

    if out.json_output:
        out.output_json(metadata)
        return
    if not metadata:
        out.info("No metadata.")
        return
    out.output_table(
        [{"key": k, "value": v} for k, v in sorted(metadata.items())],
        ["key", "value"],
        {"key": "Key", "value": "Value"},
    )


@meta.command("set")
@click.argument("path", type=str)
@click.argument("items", nargs=-1, type=str, required=True)
@click.pass_context
def meta_set(ctx: Any, path: str, items: tuple[str, ...]) -> None:
    """Update or insert metadata items.

    ITEMS: One or more KEY=VALUE pairs
    """
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")

    metadata: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(
                f"Expected KEY=VALUE, got {item!r}", param_hint="ITEMS"
            )
        metadata[key] = value

    run_client(
        ctx, lambda client: client.upsert_file_metadata(path, metadata, tenant)
    )
    out.success(f"✓ Updated {len(metadata)} metadata item(s) on {path}")


@meta.command("rm")
@click.argument("path", type=str)
@click.argument("key", type=str)
@click.pass_context
def meta_rm(ctx: Any, path: str, key: str) -> None:
    """Remove a single metadata item."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    run_client(ctx, lambda client: client.remove_file_metadata(path, key, tenant))
    out.success(f"✓ Removed metadata '{key}' from {path}")


@meta.command("clear")
@click.argument("path", type=str)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def meta_clear(ctx: Any, path: str, yes: bool) -> None:
    """Remove all metadata of a file."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")

    if not yes and not click.confirm(f"Clear all metadata of {path}?"):
        out.warning("Cancelled.")
        return

    run_client(ctx, lambda client: client.clear_file_metadata(path, tenant))
    out.success(f"✓ Cleared metadata of {path}")


@main.command()
@click.pass_context
def drives(ctx: Any) -> None:
    """List the drives of the tenant."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    result = run_client(ctx, lambda client: client.list_drives(tenant))

    rows = [
        {
            "id": str(drive.id),
            "name": drive.name,
            "trust_level": drive.trust_level,
            "controller": drive.drive_controller_id,
        }
        for drive in result
    ]
    if out.json_output:
        out.output_json(rows)
        return
    out.output_table(
        rows,
        ["id", "name", "trust_level", "controller"],
        {
            "id": "ID",
            "name": "Name",
            "trust_level": "Trust",
            "controller": "Controller",
        },
    )


@main.command("create-drive")
@click.argument("name", type=str)
@click.option(
    "--controller",
    "-c",
    "controller_id",
    type=click.UUID,
    required=True,
    help="Drive controller ID",
)
@click.option("--driver-info", default="", help="Driver-specific configuration")
@click.option("--trust-level", help="Trust level of the drive")
@click.option("--partition", "partition_label", help="Label of the initial partition")
@click.pass_context
def create_drive(
    ctx: Any,
    name: str,
    controller_id: uuid.UUID,
    driver_info: str,
    trust_level: Optional[str],
    partition_label: Optional[str],
) -> None:
    """Create a new drive."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    request = CreateDriveRequest(
        drive_controller_id=controller_id,
        name=name,
        driver_info=driver_info,
        trust_level=trust_level,
        partition_label=partition_label,
    )
    drive = run_client(ctx, lambda client: client.create_drive(request, tenant))

    if out.json_output:
        out.output_json({"id": str(drive.id), "name": drive.name} if drive else None)
    elif drive is not None:
        out.success(f"✓ Created drive {drive.name} ({drive.id})")
    else:
        out.success(f"✓ Created drive {name}")


@main.command()
@click.pass_context
def partitions(ctx: Any) -> None:
    """List the partitions of the tenant."""
    out: OutputFormatter = ctx.obj["out"]
    tenant = ctx.obj.get("tenant")
    result = run_client(ctx, lambda client: client.list_partitions(tenant))

    rows = [
        {"label": p.label, "id": str(p.id), "drive": p.drive_id} for p in result
    ]
    if out.json_output:
        out.output_json(rows)
        return
    out.output_table(
        rows, ["label", "id", "drive"], {"label": "Label", "id": "ID", "drive": "Drive"}
    )


if __name__ == "__main__":
    main()
