"""Main entry point for the siteboard CLI."""
from __future__ import annotations

import asyncio
import logging
import sys

from dashboard import __version__
from dashboard.config import Settings
from dashboard.context import DataContext
from dashboard.kinds import KINDS
from datasync.kernel.facade import EntityView
from datasync.kernel.filters import QUERY, field_values

logger = logging.getLogger(__name__)


def print_help():
    """Print help message."""
    print(f"""
Siteboard CLI v{__version__}

Usage:
  siteboard [options] <command>

Commands:
  list <kind>           List records, pinned first then by name
  pin <kind> <id>       Pin or unpin a record

Kinds:
  {", ".join(KINDS)}

Options:
  --search QUERY        Free-text search (list)
  --filter NAME=VALUE   Categorical filter, repeatable (list)
  -h, --help            Show this help
  -v, --version         Show version

Environment:
  SITEBOARD_BACKEND     memory | rest | postgres (default: memory)
  SUPABASE_URL          REST endpoint (rest backend)
  SUPABASE_KEY          API key (rest backend)
  DATABASE_URL          Postgres DSN (postgres backend)
  LOG_LEVEL             Logging level (default: INFO)

Examples:
  siteboard list projects --search nord
  siteboard list deviations --filter status=Afventer --filter project=P-20250301-3F2A
  siteboard pin customers 6f1c2a9e-0d4b-4b8e-9a57-2f0c1e3d4b5a
""")


def _fail(message: str):
    print(f"Error: {message}")
    print("Run 'siteboard --help' for usage.")
    sys.exit(1)


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (list, pin)
        kind: str | None
        entity_id: str | None
        search: str
        filters: dict[str, str]
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "kind": None,
        "entity_id": None,
        "search": "",
        "filters": {},
        "show_help": False,
        "show_version": False,
    }
    positional: list[str] = []

    i = 0
    while i < len(args):
        arg = args[i]

        if arg == "--search":
            if i + 1 < len(args):
                result["search"] = args[i + 1]
                i += 1
            else:
                _fail("--search requires a query")
        elif arg == "--filter":
            if i + 1 < len(args) and "=" in args[i + 1]:
                name, value = args[i + 1].split("=", 1)
                result["filters"][name.strip()] = value
                i += 1
            else:
                _fail("--filter requires NAME=VALUE")
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            _fail(f"Unknown option: {arg}")
        else:
            positional.append(arg)

        i += 1

    if result["show_help"] or result["show_version"]:
        return result

    if not positional:
        _fail("No command given")

    command, rest = positional[0], positional[1:]
    if command == "list":
        if len(rest) != 1:
            _fail("list takes exactly one kind")
        result["kind"] = rest[0]
    elif command == "pin":
        if len(rest) != 2:
            _fail("pin takes a kind and an id")
        result["kind"], result["entity_id"] = rest
    else:
        _fail(f"Unknown command: {command}")
    result["command"] = command

    if result["kind"] not in KINDS:
        _fail(f"Unknown kind: {result['kind']}")

    return result


def format_record(view: EntityView, record) -> str:
    """One line per record: pin marker, id, display name, status."""
    kind = view.kind
    pinned = kind.pin_field is not None and bool(getattr(record, kind.pin_field))
    names = field_values(record, kind.sort_field)
    name = str(names[0]) if names else ""
    status = getattr(record, "status", None)
    line = f"{'*' if pinned else ' '} {record.id}  {name}"
    if status:
        line += f"  [{status}]"
    return line


async def run(args: dict, settings: Settings) -> int:
    """Execute a parsed command. Returns the process exit code."""
    async with await DataContext.from_settings(settings) as ctx:
        view = ctx.view(args["kind"])
        if view.state.is_error:
            return 1

        if args["command"] == "list":
            if args["search"]:
                view.set_filter_parameter(QUERY, args["search"])
            for name, value in args["filters"].items():
                try:
                    view.set_filter_parameter(name, value)
                except KeyError:
                    print(f"Unknown filter for {args['kind']}: {name}")
                    return 1
            for record in view.items:
                print(format_record(view, record))
            print(f"\n{len(view.items)} of {len(view.cache.snapshot())} {view.kind.plural_label}")
            return 0

        if view.kind.pin_field is None:
            print(f"{view.kind.plural_label} cannot be pinned")
            return 1
        if view.get(args["entity_id"]) is None:
            print(f"No such {view.kind.label.lower()}: {args['entity_id']}")
            return 1
        return 0 if await view.toggle_pinned(args["entity_id"]) else 1


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    # Handle help and version first
    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"siteboard {__version__}")
        return

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        code = asyncio.run(run(args, settings))
    except RuntimeError as e:
        print(f"Error: {e}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
