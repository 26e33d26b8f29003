"""Command-line interface for a StretchFS server."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from .client import DEFAULT_JOB_CATEGORY, StretchFSClient
from .exceptions import StretchFSError

logger = logging.getLogger(__name__)

JOB_ACTIONS = ("detail", "start", "abort", "retry", "remove")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stretchfs",
        description="Manage files and jobs on a StretchFS server.",
    )
    parser.add_argument("--domain", default=None, help="Server host name (env STRETCHFS_DOMAIN).")
    parser.add_argument("--port", type=int, default=None, help="Server port (env STRETCHFS_PORT).")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds.")
    parser.add_argument("--token", default=None, help="Existing session token (env STRETCHFS_TOKEN).")
    parser.add_argument("--username", default=None, help="Account name (env STRETCHFS_USERNAME).")
    parser.add_argument("--password", default=None, help="Account password (env STRETCHFS_PASSWORD).")
    parser.add_argument("--debug", action="store_true", help="Enable verbose client logging.")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("login", help="Log in and print a session token.")

    for name, help_text in (
        ("ls", "List a folder."),
        ("mkdir", "Create a folder."),
        ("rm", "Remove a file or folder."),
        ("detail", "Show file details."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("path")

    upload = commands.add_parser("upload", help="Upload a local file.")
    upload.add_argument("local", type=Path)
    upload.add_argument("folder", nargs="?", default="/")

    download = commands.add_parser("download", help="Download a remote file.")
    download.add_argument("remote")
    download.add_argument("dest", nargs="?", type=Path, default=Path("."))
    download.add_argument("--overwrite", action="store_true", help="Replace an existing local file.")

    job_create = commands.add_parser("job-create", help="Create a job from a JSON description.")
    job_create.add_argument(
        "description",
        help="Job description as JSON, or @path to a JSON file.",
    )
    job_create.add_argument("--priority", type=int, default=None)
    job_create.add_argument("--category", default=DEFAULT_JOB_CATEGORY)

    job = commands.add_parser("job", help="Act on an existing job.")
    job.add_argument("action", choices=JOB_ACTIONS)
    job.add_argument("handle")

    return parser


def _build_client(args: argparse.Namespace) -> StretchFSClient:
    return StretchFSClient.from_settings(
        username=args.username,
        password=args.password,
        token=args.token,
        domain=args.domain,
        port=args.port,
        timeout=args.timeout,
    )


def _load_description(raw: str) -> Any:
    if raw.startswith("@"):
        raw = Path(raw[1:]).read_text(encoding="utf-8")
    return json.loads(raw)


def _print_json(result: Any) -> None:
    print(json.dumps(result, indent=2, sort_keys=True))


def run(client: StretchFSClient, args: argparse.Namespace) -> None:
    if args.command == "login":
        print(client.generate_token())
        return

    if client.token is None:
        client.generate_token()

    if args.command == "ls":
        _print_json(client.file_list(args.path))
    elif args.command == "mkdir":
        _print_json(client.folder_create(args.path))
    elif args.command == "rm":
        _print_json(client.file_delete(args.path))
    elif args.command == "detail":
        _print_json(client.file_detail(args.path))
    elif args.command == "upload":
        _print_json(client.file_upload(args.local, args.folder))
    elif args.command == "download":
        local_path = client.file_download_to(args.remote, args.dest, overwrite=args.overwrite)
        print(local_path)
    elif args.command == "job-create":
        description = _load_description(args.description)
        _print_json(client.job_create(description, priority=args.priority, category=args.category))
    elif args.command == "job":
        _print_json(getattr(client, f"job_{args.action}")(args.handle))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        with _build_client(args) as client:
            run(client, args)
    except (StretchFSError, OSError, ValueError) as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
