"""Command line interface.

``shuk FILE`` shares one file, ``shuk`` browses previously shared files and
``shuk --init`` writes the user configuration.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.prompt import Confirm, Prompt
from rich.table import Table

from shuk import __version__
from shuk.common import ConfigLoader, ConfigurationError, ShukError, setup_logging
from .catalog import Catalog, format_size
from .clipboard import copy_to_clipboard
from .config import ShukConfig, StorageConfig
from .errors import ClipboardError, EmptyCatalogError
from .progress import UploadProgress
from .storage import create_s3_client
from .sync import SyncDecision
from .workflow import refresh_catalog, relink, remove, share_file

# Application name derived from package name
_package = __package__ or "shuk"
APP_NAME = _package.split('.')[0]

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

ACTION_PRESIGN = "presign"
ACTION_DELETE = "delete"
ACTION_BACK = "back"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Upload a file to S3 and get a shareable, time-limited link. "
                    "Run without a file to browse previously uploaded files."
    )
    parser.add_argument(
        "filename",
        type=Path,
        nargs="?",
        help="File to upload and share"
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create the configuration file interactively"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: user config directory)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def publish_link(url: str, storage: StorageConfig) -> None:
    """Print a link and copy it to the clipboard when configured."""
    console.print(url, style="cyan", soft_wrap=True)
    if storage.use_clipboard:
        try:
            copy_to_clipboard(url)
            err_console.print("Link copied to clipboard", style="green")
        except ClipboardError as e:
            err_console.print(f"Error setting clipboard: {e}", style="yellow")


def share_command(client: Any, config: ShukConfig, file_path: Path) -> int:
    """Upload (or re-sign) a single file.

    Returns:
        Exit code (0 for success)
    """
    storage = config.storage
    err_console.print(
        f"Sharing [bold]{file_path.name}[/bold] via bucket [bold]{storage.bucket_name}[/bold]"
    )

    with Progress(
        SpinnerColumn(),
        "[progress.description]{task.description}",
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(file_path.name, total=None)

        def on_progress(update: UploadProgress) -> None:
            progress.update(task_id, completed=update.bytes_uploaded, total=update.total_bytes)

        try:
            result = share_file(client, storage, file_path, progress_callback=on_progress)
        except ShukError as e:
            logger.debug("Share failed", exc_info=True)
            err_console.print(f"Error uploading file: {e}", style="red")
            return 1

    if result.decision is SyncDecision.SKIP:
        err_console.print("Your file is already uploaded, re-signing the link:")
    else:
        err_console.print("Upload complete, here is your link:")
    publish_link(result.url, storage)
    return 0


def print_catalog_summary(catalog: Catalog) -> None:
    try:
        last_modified = str(catalog.most_recent_entry().last_modified)
    except EmptyCatalogError:
        last_modified = "-"
    console.print("[magenta]Shuk Metadata:[/magenta]")
    console.print(f"[green]Total file size:[/green] {catalog.total_size_formatted()}")
    console.print(f"[green]Total files:[/green] {catalog.file_count()}")
    console.print(f"[green]Last modified at:[/green] {last_modified}")


def resolve_selection(answer: str, filenames: List[str]) -> Optional[str]:
    """
    Map a prompt answer to a filename.

    Accepts a 1-based index or an exact filename; ``q``/``quit`` returns None.

    Raises:
        ValueError: If the answer matches nothing
    """
    answer = answer.strip()
    if answer.lower() in ("q", "quit", "exit"):
        return None
    if answer.isdigit():
        index = int(answer)
        if 1 <= index <= len(filenames):
            return filenames[index - 1]
        raise ValueError(f"Pick a number between 1 and {len(filenames)}")
    if answer in filenames:
        return answer
    raise ValueError(f"No file named {answer!r}")


def prompt_for_file(catalog: Catalog) -> Optional[str]:
    filenames = catalog.filenames()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Last modified")
    for index, name in enumerate(filenames, start=1):
        entry = catalog.find(name)
        table.add_row(str(index), name, format_size(entry.file_size), str(entry.last_modified))
    console.print(table)

    while True:
        answer = Prompt.ask("Select a file (number or name, q to quit)")
        try:
            return resolve_selection(answer, filenames)
        except ValueError as e:
            err_console.print(str(e), style="yellow")


def browse_command(client: Any, config: ShukConfig) -> int:
    """Interactive loop over the catalog: re-sign or delete files.

    Returns:
        Exit code (0 for success)
    """
    storage = config.storage

    with err_console.status("Updating metadata ..."):
        catalog = refresh_catalog(client, storage)
    print_catalog_summary(catalog)

    while True:
        if not catalog.files:
            console.print("No files uploaded with shuk under this prefix yet.")
            return 0

        selected = prompt_for_file(catalog)
        if selected is None:
            return 0

        action = Prompt.ask(
            f"What to do with {selected}?",
            choices=[ACTION_PRESIGN, ACTION_DELETE, ACTION_BACK],
            default=ACTION_PRESIGN,
        )
        if action == ACTION_BACK:
            continue

        try:
            if action == ACTION_PRESIGN:
                logger.debug(f"Presigning file: {selected}")
                url = relink(client, storage, selected)
                console.print("Here is the URL to the newly pre-signed file:")
                publish_link(url, storage)
            elif Confirm.ask(f"Delete {selected}?", default=False):
                logger.debug(f"Deleting file: {selected}")
                remove(client, storage, selected)
                console.print(f"Deleted {selected}")
            else:
                continue
        except ShukError as e:
            logger.debug("Action failed", exc_info=True)
            err_console.print(f"Error: {e}", style="red")
            continue

        with err_console.status("Updating metadata ..."):
            try:
                catalog = refresh_catalog(client, storage)
            except ShukError as e:
                err_console.print(f"Warning: Failed to update metadata: {e}", style="yellow")


def init_command(loader: ConfigLoader) -> int:
    """Prompt for the essentials and write the user configuration file.

    Returns:
        Exit code (0 for success)
    """
    if loader.user_config_exists():
        err_console.print(
            f"WARNING: this overwrites your configuration at {loader.user_config_path}",
            style="yellow",
        )
        if not Confirm.ask("ARE YOU SURE YOU WANT TO DO THIS?", default=False):
            return 0
        if not Confirm.ask("I ask AGAIN, ARE YOU SURE?", default=False):
            return 0

    bucket_name = Prompt.ask("Enter the name of the bucket you wish to use for file uploads").strip()
    bucket_prefix = Prompt.ask(
        "Enter the prefix (folder) in that bucket where the files will be uploaded "
        "(leave blank for the root of the bucket)",
        default="",
    ).strip()
    aws_profile = Prompt.ask("Enter the AWS profile name (enter for None)", default="").strip()

    try:
        config = ShukConfig(
            storage=StorageConfig(
                bucket_name=bucket_name,
                bucket_prefix=bucket_prefix,
                aws_profile=aws_profile or None,
            )
        )
    except ValueError as e:
        err_console.print(f"Invalid configuration: {e}", style="red")
        return 1

    path = loader.save_user_config(config)
    console.print(f"Shuk configuration file created at: {path}", style="green")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.init and args.filename:
        parser.error("--init cannot be combined with a filename")

    loader = ConfigLoader(app_name=APP_NAME, config_class=ShukConfig)

    if args.init:
        return init_command(loader)

    try:
        config = loader.load(config_path=args.config)
    except ConfigurationError as e:
        err_console.print(f"Failed to load configuration: {e}", style="red")
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else config.logging.level,
        format=config.logging.format,
        log_file=config.logging.log_path(),
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count,
    )
    logger.debug(f"Arguments parsed: {args}")

    client = create_s3_client(
        profile=config.storage.aws_profile,
        fallback_region=config.storage.fallback_region,
    )

    try:
        if args.filename is not None:
            return share_command(client, config, args.filename)
        return browse_command(client, config)
    except ShukError as e:
        logger.debug("Command failed", exc_info=True)
        err_console.print(f"Error: {e}", style="red")
        return 1
    except KeyboardInterrupt:
        err_console.print("Interrupted", style="yellow")
        return 130


if __name__ == "__main__":
    sys.exit(main())
