"""Main CLI entry point for relpack."""

import logging
import sys

from relpack.cli import build as build_cli
from relpack.cli import preview


def _usage() -> None:
    print("Usage: relpack [-v] <command> [args...]", file=sys.stderr)
    print("Commands:", file=sys.stderr)
    print("  build          - Package the release into one executable per target", file=sys.stderr)
    print("  targets        - List supported targets and the detected host", file=sys.stderr)
    print(
        "  help-preview   - Print the launcher's generated CLI help without building",
        file=sys.stderr,
    )


def main() -> None:
    """Main CLI entry point."""
    argv = sys.argv[1:]
    if argv and argv[0] in ("-v", "--verbose"):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        argv = argv[1:]
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    if not argv:
        _usage()
        sys.exit(1)

    command, rest = argv[0], argv[1:]
    if command == "build":
        build_cli.run_build_argv(rest)
    elif command == "targets":
        preview.run_targets_argv(rest)
    elif command == "help-preview":
        preview.run_help_preview_argv(rest)
    else:
        print(f"Error: Unknown command: {command}", file=sys.stderr)
        _usage()
        sys.exit(1)


if __name__ == "__main__":
    main()
