"""Render nested CLI help text for the launcher from the command model.

Rendering is pure: malformed input (e.g. an empty name) only degrades the text.
"""

from __future__ import annotations

from collections.abc import Sequence

from relpack.commands import Command, CompoundCommand, SimpleCommand

COMMAND_MARKER = "<COMMAND>"
SPACES_AFTER_COMMAND = 2
INDENT = "  "
DEFAULT_SUFFIX = " (default)"


def _label(command: Command) -> str:
    if isinstance(command, CompoundCommand):
        return f"{command.name} {COMMAND_MARKER}"
    if isinstance(command, SimpleCommand):
        return command.name
    raise TypeError(f"not a command: {command!r}")


def command_width(commands: Sequence[Command]) -> int:
    """Help-text start column for one sibling list (visible commands only)."""
    widest = max((len(_label(c)) for c in commands if not c.hidden), default=0)
    return widest + SPACES_AFTER_COMMAND


def summary_line(command: Command, width: int, default_command_name: str) -> str:
    line = f"{INDENT}{_label(command).ljust(width)}{command.help}"
    if command.name == default_command_name:
        line += DEFAULT_SUFFIX
    return line


def render(
    commands: Sequence[Command],
    executable_name: str,
    default_command_name: str,
) -> tuple[list[str], dict[str, str]]:
    """Return (summary lines for this level, full help block for every command in the tree)."""
    width = command_width(commands)
    lines: list[str] = []
    help_by_name: dict[str, str] = {}

    for command in commands:
        if not command.hidden:
            lines.append(summary_line(command, width, default_command_name))

        block = [command.help, "", "USAGE:", f"{INDENT}{executable_name} {_label(command)}"]
        if isinstance(command, CompoundCommand):
            child_lines, child_help = render(
                command.children, executable_name, default_command_name
            )
            help_by_name.update(child_help)
            block += ["", "COMMANDS:", *child_lines]
        elif not isinstance(command, SimpleCommand):
            raise TypeError(f"not a command: {command!r}")
        help_by_name[command.name] = "\n".join(block)

    return lines, help_by_name


def render_usage(summary_lines: Sequence[str], executable_name: str) -> str:
    """Top-level help shown for `<exe> help` (and when no command is given, by default)."""
    return "\n".join(
        [
            "USAGE:",
            f"{INDENT}{executable_name} [COMMAND]",
            "",
            "COMMANDS:",
            *summary_lines,
            "",
            "HELP:",
            f"{INDENT}help {COMMAND_MARKER}",
        ]
    )


def executable_for(executable_name: str, is_windows: bool) -> str:
    return f"{executable_name}.exe" if is_windows else executable_name
