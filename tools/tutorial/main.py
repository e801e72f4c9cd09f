"""
Blob storage tutorial CLI.

Walks through the container and blob lifecycle: create a container, make it
public, upload a file, list blobs flat and hierarchically, download to memory
and to disk, append to a log blob and clean up.

Usage:
    poetry run blobkit-tutorial run --source ./TestingBlockBlobs.txt
    poetry run blobkit-tutorial --backend memory run --source ./notes.txt
    poetry run blobkit-tutorial list --prefix logs/ --hierarchical
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import click
import structlog

from blobkit.config import ConfigurationError, get_settings
from blobkit.logging_config import configure_logging
from blobkit.models import AccessLevel, BlobKind, ListItem
from blobkit.storage import BlobStoreFacade, StorageError, call_with_retry

logger = structlog.get_logger(__name__)

ACCESS_CHOICES = {level.value: level for level in AccessLevel}


def describe_item(item: ListItem) -> str:
    """One console line for a listing item."""
    match item.kind:
        case BlobKind.BLOCK:
            return f"Block blob of length {item.size_bytes}: {item.url or item.name}"
        case BlobKind.APPEND:
            return f"Append blob of length {item.size_bytes}: {item.url or item.name}"
        case BlobKind.PAGE:
            return f"Page blob of length {item.size_bytes}: {item.url or item.name}"
        case BlobKind.DIRECTORY:
            return f"Directory: {item.prefix}"


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--backend",
    type=click.Choice(["azure", "memory"]),
    default=None,
    help="Storage backend (default: STORAGE_BACKEND setting)",
)
@click.option("--container", default=None, help="Container name (default: setting)")
@click.option("--log-level", default=None, help="Log level (default: LOG_LEVEL setting)")
@click.pass_context
def cli(ctx: click.Context, backend: str | None, container: str | None, log_level: str | None):
    """Blob storage tutorial."""
    settings = get_settings()
    overrides = {}
    if backend:
        overrides["storage_backend"] = backend
    if container:
        overrides["azure_storage_container"] = container
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(log_level or settings.log_level, settings.log_format)

    try:
        facade = BlobStoreFacade.from_settings(settings)
    except (ConfigurationError, ValueError) as e:
        _fail(f"Failed to initialize storage: {e}")

    ctx.obj = {"settings": settings, "facade": facade}


def _retrying(ctx: click.Context, func, *args, **kwargs):
    attempts = ctx.obj["settings"].transport_max_attempts
    return call_with_retry(func, *args, max_attempts=attempts, **kwargs)


def _print_listing(facade: BlobStoreFacade, prefix: str | None, hierarchical: bool) -> int:
    count = 0
    for item in facade.list_blobs(facade.container, prefix=prefix, hierarchical=hierarchical):
        click.echo(describe_item(item))
        count += 1
    return count


@cli.command()
@click.option(
    "--source",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Local file to upload (default: UPLOAD_SOURCE_PATH setting)",
)
@click.option(
    "--access",
    type=click.Choice(list(ACCESS_CHOICES)),
    default=AccessLevel.PUBLIC_BLOB.value,
    help="Public access level to set on the container",
)
@click.option("--keep", is_flag=True, help="Leave the tutorial blobs in place")
@click.pass_context
def run(ctx: click.Context, source: Path | None, access: str, keep: bool):
    """Run the full tutorial sequence."""
    settings = ctx.obj["settings"]
    facade: BlobStoreFacade = ctx.obj["facade"]
    source = source or settings.upload_source_path
    block_name = settings.block_blob_name
    append_name = settings.append_blob_name

    try:
        container = _retrying(ctx, facade.ensure_container)
        click.echo(f"Container: {container.name} (created: {container.created})")

        container = facade.set_access_level(container, ACCESS_CHOICES[access])
        click.echo(f"Access level: {container.access_level.value}")

        metadata = _retrying(ctx, facade.upload_block, container, block_name, source)
        click.echo(f"Uploaded {source} to {metadata.name} ({metadata.size_bytes} bytes)")

        click.echo("\nFlat listing:")
        _print_listing(facade, None, hierarchical=False)
        click.echo("\nHierarchical listing:")
        _print_listing(facade, None, hierarchical=True)

        text = _retrying(ctx, facade.read_blob, container, block_name)
        click.echo(f"\nDownloaded {len(text)} bytes to memory:")
        click.echo(text.decode("utf-8", errors="replace"))

        destination = settings.download_dir / block_name
        written = _retrying(ctx, facade.download_blob, container, block_name, destination)
        click.echo(f"Downloaded {written} bytes to {destination}")

        started = datetime.now(timezone.utc).isoformat()
        for step in ("started", "uploaded", "downloaded"):
            facade.append_entry(append_name, f"{started} tutorial {step}\n", container)
        log = _retrying(ctx, facade.read_blob, container, append_name)
        click.echo(f"\nAppend blob {append_name}:")
        click.echo(log.decode("utf-8", errors="replace"))

        if not keep:
            facade.delete_blob(container, block_name)
            facade.delete_blob(container, append_name)
            click.echo(f"Deleted {block_name} and {append_name}")
    except StorageError as e:
        logger.error("Tutorial failed", error=str(e), error_type=type(e).__name__)
        _fail(str(e))


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", default=None, help="Blob name (default: file name)")
@click.pass_context
def upload(ctx: click.Context, source: Path, name: str | None):
    """Upload a local file as a block blob."""
    facade: BlobStoreFacade = ctx.obj["facade"]
    try:
        facade.ensure_container()
        metadata = _retrying(ctx, facade.upload_block, facade.container, name or source.name, source)
    except StorageError as e:
        _fail(str(e))
    click.echo(f"Uploaded {metadata.name} ({metadata.size_bytes} bytes)")


@cli.command(name="list")
@click.option("--prefix", default=None, help="Only blobs starting with this prefix")
@click.option("--hierarchical", is_flag=True, help="Group nested blobs into directories")
@click.pass_context
def list_command(ctx: click.Context, prefix: str | None, hierarchical: bool):
    """List blobs in the container."""
    facade: BlobStoreFacade = ctx.obj["facade"]
    try:
        count = _print_listing(facade, prefix, hierarchical)
    except StorageError as e:
        _fail(str(e))
    click.echo(f"{count} item(s)")


@cli.command()
@click.argument("name")
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def download(ctx: click.Context, name: str, destination: Path):
    """Download a blob to a local file."""
    facade: BlobStoreFacade = ctx.obj["facade"]
    try:
        written = _retrying(ctx, facade.download_blob, facade.container, name, destination)
    except StorageError as e:
        _fail(str(e))
    click.echo(f"Downloaded {written} bytes to {destination}")


@cli.command()
@click.argument("name")
@click.argument("entries", nargs=-1, required=True)
@click.pass_context
def append(ctx: click.Context, name: str, entries: tuple[str, ...]):
    """Append one line per ENTRY to an append blob."""
    facade: BlobStoreFacade = ctx.obj["facade"]
    try:
        facade.ensure_container()
        for entry in entries:
            metadata = facade.append_entry(name, entry + "\n")
    except StorageError as e:
        _fail(str(e))
    click.echo(f"Appended {len(entries)} entr{'y' if len(entries) == 1 else 'ies'}, blob is {metadata.size_bytes} bytes")


@cli.command()
@click.argument("name")
@click.pass_context
def delete(ctx: click.Context, name: str):
    """Delete a blob."""
    facade: BlobStoreFacade = ctx.obj["facade"]
    try:
        facade.delete_blob(facade.container, name)
    except StorageError as e:
        _fail(str(e))
    click.echo(f"Deleted {name}")


def main():
    cli()


if __name__ == "__main__":
    main()
