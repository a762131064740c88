"""Command model for the generated launcher: flat (simple) or nested (compound) commands."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any, Union

from relpack.errors import ConfigurationError

log = logging.getLogger(__name__)

# Invocation kinds understood by the launcher.
RELEASE = "release"  # forwarded to the release start script
EVAL = "eval"
RPC = "rpc"

HELP_COMMAND = "help"

BUILTIN_COMMANDS: dict[str, str] = {
    "start": "Start the application in the foreground",
    "stop": "Stop the running application",
    "restart": "Restart the running application",
    "daemon": "Start the application as a daemon",
    "remote": "Connect a remote shell to the running application",
    "pid": "Print the OS process id of the running application",
    "version": "Print the release name and version",
    "eval": "Evaluate an expression in a fresh instance",
    "rpc": "Evaluate an expression inside the running application",
    "service": "Manage the application as a Windows service",
}

DEFAULT_COMMANDS: list[str] = ["start", "stop", "restart", "remote", "pid", "version", "eval", "rpc"]

WINDOWS_ONLY: frozenset[str] = frozenset({"service"})


@dataclass(frozen=True, slots=True)
class SimpleCommand:
    name: str
    help: str
    kind: str = RELEASE
    hidden: bool = False
    expression: str | None = None
    args: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CompoundCommand:
    name: str
    help: str
    hidden: bool = False
    children: tuple[Command, ...] = field(default_factory=tuple)


Command = Union[SimpleCommand, CompoundCommand]


def walk(commands: Iterable[Command]) -> Iterator[Command]:
    """Depth-first, parents before children."""
    for cmd in commands:
        yield cmd
        if isinstance(cmd, CompoundCommand):
            yield from walk(cmd.children)
        elif not isinstance(cmd, SimpleCommand):
            raise TypeError(f"not a command: {cmd!r}")


def hidden_names(commands: Iterable[Command]) -> list[str]:
    return [c.name for c in walk(commands) if c.hidden]


def parse_command(descriptor: Any, *, target_os: str) -> Command | None:
    """Parse one descriptor. Returns None for built-ins that do not apply to target_os."""
    if isinstance(descriptor, str):
        if descriptor not in BUILTIN_COMMANDS:
            msg = f"Unknown built-in command {descriptor!r}; known: {', '.join(BUILTIN_COMMANDS)}"
            raise ConfigurationError(msg)
        if descriptor in WINDOWS_ONLY and target_os != "windows":
            log.warning("Dropping Windows-only command %r for %s build", descriptor, target_os)
            return None
        return SimpleCommand(descriptor, BUILTIN_COMMANDS[descriptor])

    if not isinstance(descriptor, dict):
        raise ConfigurationError(f"Command descriptor must be a string or mapping: {descriptor!r}")

    name = str(descriptor.get("name") or "")
    if not name:
        raise ConfigurationError(f"Command descriptor missing name: {descriptor!r}")
    help_text = str(descriptor.get("help") or "")
    hidden = bool(descriptor.get("hidden", False))

    actions = [k for k in ("eval", "rpc", "commands") if k in descriptor]
    if len(actions) != 1:
        msg = f"Command {name!r} needs exactly one of eval, rpc or commands (got {actions or 'none'})"
        raise ConfigurationError(msg)
    action = actions[0]

    if action == "commands":
        children = parse_commands(descriptor["commands"] or [], target_os=target_os, _validate=False)
        return CompoundCommand(name, help_text, hidden, tuple(children))

    args = descriptor.get("args") or []
    if not isinstance(args, list):
        raise ConfigurationError(f"Command {name!r}: args must be a list")
    return SimpleCommand(
        name,
        help_text,
        kind=EVAL if action == "eval" else RPC,
        hidden=hidden,
        expression=str(descriptor[action]),
        args=tuple(str(a) for a in args),
    )


def parse_commands(
    descriptors: Iterable[Any] | None,
    *,
    target_os: str,
    hide: Iterable[str] = (),
    _validate: bool = True,
) -> list[Command]:
    """Build the command tree from descriptors; None means the default built-in set.

    Names in ``hide`` mark exactly the matching node hidden. Names must be unique
    across the whole tree since help is keyed by bare name, and ``help`` is reserved.
    """
    if descriptors is None:
        descriptors = DEFAULT_COMMANDS
    commands = [c for c in (parse_command(d, target_os=target_os) for d in descriptors) if c]
    if not _validate:
        return commands

    hide_set = set(hide)
    if hide_set:
        commands = [_apply_hide(c, hide_set) for c in commands]

    seen: set[str] = set()
    for cmd in walk(commands):
        if cmd.name == HELP_COMMAND:
            raise ConfigurationError(f"Command name {HELP_COMMAND!r} is reserved for the launcher")
        if cmd.name in seen:
            raise ConfigurationError(f"Duplicate command name {cmd.name!r}")
        seen.add(cmd.name)
    return commands


def _apply_hide(cmd: Command, hide: set[str]) -> Command:
    if isinstance(cmd, CompoundCommand):
        children = tuple(_apply_hide(c, hide) for c in cmd.children)
        return replace(cmd, hidden=cmd.hidden or cmd.name in hide, children=children)
    if isinstance(cmd, SimpleCommand):
        return replace(cmd, hidden=cmd.hidden or cmd.name in hide)
    raise TypeError(f"not a command: {cmd!r}")


def validate_no_args_command(commands: list[Command], no_args_command: str) -> None:
    if no_args_command == HELP_COMMAND:
        return
    if no_args_command not in {c.name for c in walk(commands)}:
        raise ConfigurationError(f"no_args_command {no_args_command!r} is not a defined command")
