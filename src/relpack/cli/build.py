"""`relpack build`: package the release into one executable per target."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from relpack.config import PackageConfig, load_config
from relpack.errors import ConfigurationError
from relpack.pipeline import run as run_pipeline


def add_config_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project root (default: cwd)",
    )
    ap.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: <project-root>/relpack.yaml)",
    )
    ap.add_argument(
        "--target",
        action="append",
        default=None,
        help="Target identifier; repeat for several (default: configured targets)",
    )


def load_config_from_args(args: argparse.Namespace) -> PackageConfig | None:
    """Load config and apply CLI overrides. Prints the error and returns None on failure."""
    root = args.project_root.resolve()
    try:
        config = load_config(root, args.config)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return None
    targets = tuple(args.target) if args.target else None
    return config.with_overrides(targets=targets)


def run_build_argv(argv: list[str] | None = None) -> None:
    """Parse argv and run the packaging pipeline."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []  # skip 'relpack build'
    ap = argparse.ArgumentParser(prog="relpack build", description="Package a release")
    add_config_args(ap)
    ap.add_argument("--debug", action="store_true", help="Debug build (no size optimization)")
    ap.add_argument(
        "--no-clean",
        action="store_true",
        help="Keep staging and toolchain intermediates after the build",
    )
    args = ap.parse_args(argv)
    config = load_config_from_args(args)
    if config is None:
        sys.exit(1)
    config = config.with_overrides(
        debug=True if args.debug else None,
        no_clean=True if args.no_clean else None,
    )
    sys.exit(run_pipeline(config))
