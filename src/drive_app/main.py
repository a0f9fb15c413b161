import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

import colorlog
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape as rich_escape

from drive_oauth import DriveAuthError, DriveClient, OAuthConfig, TokenManager
from drive_oauth.utils.paths import get_logs_dir

console = Console()

CONSOLE_HANDLER_NAME = "drive_oauth.console"
INFO_FILE_HANDLER_NAME = "drive_oauth.file"
DEBUG_FILE_HANDLER_NAME = "drive_oauth.debug_file"
HANDLER_NAMES = (CONSOLE_HANDLER_NAME, INFO_FILE_HANDLER_NAME, DEBUG_FILE_HANDLER_NAME)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Google Drive client with a self-refreshing OAuth credential"
    )
    parser.add_argument(
        "--credential-path",
        type=Path,
        default=None,
        help="Credential file (default: ~/.config/drive_oauth/credentials.json).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Local OAuth callback port; must match the registered redirect URI.",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Print the consent URL instead of opening a browser.",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Show DEBUG logs on the console."
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("auth", help="Sign in (if needed) and show token status.")

    metadata = commands.add_parser("metadata", help="Print a file's metadata.")
    metadata.add_argument("url")

    download = commands.add_parser("download", help="Download a file.")
    download.add_argument("url")
    download.add_argument("path", type=Path)

    upload = commands.add_parser("upload", help="Upload a local file.")
    upload.add_argument("path", type=Path)

    update = commands.add_parser("update", help="Replace a file's content.")
    update.add_argument("path", type=Path)
    update.add_argument("url")

    delete = commands.add_parser("delete", help="Delete a file.")
    delete.add_argument("url")
    return parser


def configure_logging(verbose: bool = False):
    log_dir = get_logs_dir()

    # Console: colored, INFO and above unless --verbose
    console_handler = colorlog.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    info_file_handler = logging.FileHandler(
        log_dir / "drive_oauth.log", encoding="utf-8"
    )
    info_file_handler.setLevel(logging.INFO)
    info_file_handler.setFormatter(file_formatter)

    # Dedicated file for the library's DEBUG trail (state machine decisions)
    debug_file_handler = logging.FileHandler(
        log_dir / "drive_oauth_debug.log", encoding="utf-8"
    )
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(file_formatter)
    debug_file_handler.addFilter(LibraryDebugFilter())

    console_handler.set_name(CONSOLE_HANDLER_NAME)
    info_file_handler.set_name(INFO_FILE_HANDLER_NAME)
    debug_file_handler.set_name(DEBUG_FILE_HANDLER_NAME)

    root_logger = logging.getLogger()
    # Calling main() again (tests, embedding) replaces our handlers instead of stacking them
    for handler in list(root_logger.handlers):
        if handler.get_name() in HANDLER_NAMES:
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(info_file_handler)
    root_logger.addHandler(debug_file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class LibraryDebugFilter(logging.Filter):
    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith(
            "drive_oauth"
        )


async def run_command(args: argparse.Namespace, config: OAuthConfig) -> int:
    manager = TokenManager(config)

    if args.command == "auth":
        record = await manager.ensure_valid()
        remaining = record.expires_at - time.time()
        console.print(
            f"[bold green]Authenticated.[/bold green] Access token valid for "
            f"{remaining / 60:.0f} more minute(s). Credential file: {config.credential_path}"
        )
        return 0

    async with DriveClient(manager) as drive:
        if args.command == "metadata":
            console.print_json(data=await drive.file_metadata(args.url))
        elif args.command == "download":
            path = await drive.download_file(args.url, args.path)
            console.print(f"Downloaded to {path}")
        elif args.command == "upload":
            console.print(await drive.upload_file(args.path))
        elif args.command == "update":
            await drive.update_file(args.path, args.url)
            console.print(f"Updated {args.url}")
        elif args.command == "delete":
            await drive.delete_file(args.url)
            console.print(f"Deleted {args.url}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # .env in the working directory supplies DRIVE_CLIENT_ID / DRIVE_CLIENT_SECRET
    load_dotenv(Path.cwd() / ".env")
    configure_logging(args.verbose)

    try:
        config = OAuthConfig.from_env(
            credential_path=args.credential_path,
            callback_port=args.port,
            open_browser=False if args.no_browser else None,
        )
        return asyncio.run(run_command(args, config))
    except DriveAuthError as e:
        console.print(f"[bold red]Error:[/bold red] {rich_escape(e.message)}")
        return 1
    except httpx.HTTPStatusError as e:
        console.print(
            f"[bold red]Drive API error:[/bold red] HTTP {e.response.status_code} "
            f"for {e.request.method} {e.request.url}"
        )
        return 1
    except ValueError as e:
        # Bad Drive URLs
        console.print(f"[bold red]Error:[/bold red] {rich_escape(str(e))}")
        return 2
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
