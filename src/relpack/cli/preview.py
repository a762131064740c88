"""`relpack targets` and `relpack help-preview`: inspect without building."""

from __future__ import annotations

import argparse
import sys

from relpack.cli.build import add_config_args, load_config_from_args
from relpack.errors import PackagingError
from relpack.help import executable_for, render, render_usage
from relpack.pipeline import build_command_model
from relpack.targets import NATIVE, TARGET_TABLE, detect_host, resolve


def run_targets_argv(argv: list[str] | None = None) -> None:
    """Print the supported target table and the detected host."""
    ap = argparse.ArgumentParser(prog="relpack targets", description="List supported targets")
    ap.parse_args(argv or [])
    host = detect_host()
    print(f"Host: {host.operating_system}/{host.cpu_architecture}")
    print(f"  {NATIVE:<12}{host.operating_system}/{host.cpu_architecture} (current host)")
    for identifier, (os_name, cpu, triple) in TARGET_TABLE.items():
        print(f"  {identifier:<12}{os_name}/{cpu:<10}{triple}")
    sys.exit(0)


def run_help_preview_argv(argv: list[str] | None = None) -> None:
    """Print the generated top-level usage and each command's help block."""
    ap = argparse.ArgumentParser(
        prog="relpack help-preview", description="Preview the launcher's CLI help"
    )
    add_config_args(ap)
    args = ap.parse_args(argv or [])
    config = load_config_from_args(args)
    if config is None:
        sys.exit(1)
    try:
        targets = resolve(config.targets, detect_host())
        if not targets:
            print("❌ no targets configured", file=sys.stderr)
            sys.exit(1)
        # Only the first target is previewed.
        target = targets[0]
        commands = build_command_model(config, target)
    except PackagingError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    executable = executable_for(config.executable_name, target.is_windows)
    summary, help_by_name = render(commands, executable, config.no_args_command)
    print(render_usage(summary, executable))
    for name, text in help_by_name.items():
        print(f"\n--- {name} ---")
        print(text)
    sys.exit(0)
