"""Generate the launcher project's build script and entry source.

Both files come from fixed templates with ``{{field}}`` placeholders filled from a
LauncherFields record. The dispatch logic itself (src/launcher.zig) belongs to
the launcher project and is only referenced here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from relpack.commands import Command, CompoundCommand, SimpleCommand

BUILD_SCRIPT = "build.zig"
ENTRY_SOURCE = "src/main.zig"
METADATA_FILE = "src/metadata.json"

BUILD_ZIG_TEMPLATE = """\
// Generated by relpack. Do not edit.
const std = @import("std");

pub fn build(b: *std.Build) void {
    const target = b.standardTargetOptions(.{});
    const optimize = b.standardOptimizeOption(.{});

    const options = b.addOptions();
    options.addOption([]const u8, "release_name", {{release_name}});
    options.addOption([]const u8, "release_version", {{release_version}});
    options.addOption([]const u8, "release_path", {{release_path}});
    options.addOption([]const u8, "target", {{target}});

    const exe = b.addExecutable(.{
        .name = {{executable_name}},
        .root_source_file = b.path("src/main.zig"),
        .target = target,
        .optimize = optimize,
    });
    exe.root_module.addOptions("build_options", options);
    b.installArtifact(exe);
}
"""

MAIN_ZIG_TEMPLATE = """\
// Generated by relpack. Do not edit.
const std = @import("std");
const launcher = @import("launcher.zig");
const build_options = @import("build_options");

const Command = launcher.Command;

pub const executable_name = {{executable_name}};
pub const no_args_command = {{no_args_command}};

pub const hidden = [_][]const u8{ {{hidden}} };

pub const commands = [_]Command{
{{commands}}
};

pub const help = [_]launcher.HelpEntry{
{{help}}
};

pub fn main() !void {
    try launcher.run(.{
        .executable_name = executable_name,
        .no_args_command = no_args_command,
        .release_name = build_options.release_name,
        .release_version = build_options.release_version,
        .commands = &commands,
        .hidden = &hidden,
        .help = &help,
    });
}
"""


@dataclass(frozen=True, slots=True)
class LauncherFields:
    executable_name: str
    release_name: str
    release_version: str
    release_path: str
    target: str
    commands: tuple[Command, ...]
    help: dict[str, str]
    no_args_command: str
    hidden: tuple[str, ...]


def zig_string(s: str) -> str:
    """Quote s as a Zig string literal."""
    out = s.replace("\\", "\\\\").replace('"', '\\"')
    out = out.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    return f'"{out}"'


def zig_multiline(text: str, indent: str) -> str:
    """Zig multi-line string literal; every line prefixed with \\\\."""
    return "\n".join(f"{indent}\\\\{line}" for line in text.split("\n"))


def zig_command(command: Command, indent: str = "    ") -> str:
    if isinstance(command, CompoundCommand):
        if command.children:
            inner = ",\n".join(zig_command(c, indent + "        ") for c in command.children)
            children = f"&[_]Command{{\n{inner},\n{indent}    }}"
        else:
            children = "&[_]Command{}"
        return (
            f"{indent}.{{ .name = {zig_string(command.name)}, .help = {zig_string(command.help)}, "
            f".kind = .compound, .hidden = {str(command.hidden).lower()}, "
            f".expression = \"\", .args = &[_][]const u8{{}},\n"
            f"{indent}    .children = {children} }}"
        )
    if isinstance(command, SimpleCommand):
        args = ", ".join(zig_string(a) for a in command.args)
        return (
            f"{indent}.{{ .name = {zig_string(command.name)}, .help = {zig_string(command.help)}, "
            f".kind = .{command.kind}, .hidden = {str(command.hidden).lower()}, "
            f".expression = {zig_string(command.expression or '')}, "
            f".args = &[_][]const u8{{{args}}}, .children = &[_]Command{{}} }}"
        )
    raise TypeError(f"not a command: {command!r}")


def zig_help_entries(help_by_name: dict[str, str]) -> str:
    entries = []
    for name in sorted(help_by_name):
        entries.append(
            f"    .{{ .name = {zig_string(name)}, .text =\n"
            f"{zig_multiline(help_by_name[name], '        ')}\n"
            "    },"
        )
    return "\n".join(entries)


def fill_template(template: str, values: dict[str, str]) -> str:
    content = template
    for key, value in values.items():
        content = content.replace("{{" + key + "}}", value)
    return content


def render_build_script(fields: LauncherFields) -> str:
    return fill_template(
        BUILD_ZIG_TEMPLATE,
        {
            "executable_name": zig_string(fields.executable_name),
            "release_name": zig_string(fields.release_name),
            "release_version": zig_string(fields.release_version),
            "release_path": zig_string(fields.release_path),
            "target": zig_string(fields.target),
        },
    )


def render_launcher_source(fields: LauncherFields) -> str:
    commands = ",\n".join(zig_command(c) for c in fields.commands)
    return fill_template(
        MAIN_ZIG_TEMPLATE,
        {
            "executable_name": zig_string(fields.executable_name),
            "no_args_command": zig_string(fields.no_args_command),
            "hidden": ", ".join(zig_string(h) for h in fields.hidden),
            "commands": commands + ("," if commands else ""),
            "help": zig_help_entries(fields.help),
        },
    )


def metadata(fields: LauncherFields, runtime_version: str) -> dict[str, str]:
    return {
        "app_name": fields.release_name,
        "app_version": fields.release_version,
        "runtime_version": runtime_version,
        "target": fields.target,
        "executable_name": fields.executable_name,
    }


def generated_files(launcher_dir: Path) -> list[Path]:
    return [launcher_dir / BUILD_SCRIPT, launcher_dir / ENTRY_SOURCE, launcher_dir / METADATA_FILE]


def write_launcher_sources(
    launcher_dir: Path, fields: LauncherFields, runtime_version: str
) -> list[Path]:
    """Write build.zig, src/main.zig and src/metadata.json. Returns the written paths."""
    build_path, entry_path, metadata_path = generated_files(launcher_dir)
    entry_path.parent.mkdir(parents=True, exist_ok=True)
    build_path.write_text(render_build_script(fields))
    entry_path.write_text(render_launcher_source(fields))
    metadata_path.write_text(json.dumps(metadata(fields, runtime_version), indent=2) + "\n")
    return [build_path, entry_path, metadata_path]
