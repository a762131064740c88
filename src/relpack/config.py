"""Packaging configuration: relpack.yaml -> one immutable PackageConfig per run.

relpack.yaml::

    release:
      name: simple
      version: 0.1.0
      runtime_version: "14.2.5"
      path: _build/prod/rel/simple
    package:
      executable_name: simple-cli
      targets: [windows]
      no_args_command: start
      hide: [eval, rpc]
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from relpack.errors import ConfigurationError

DEFAULT_CONFIG_NAME = "relpack.yaml"

DEFAULT_PACKAGE_OPTIONS: dict[str, Any] = {
    "targets": ["native"],
    "debug": False,
    "no_clean": False,
    "executable_name": None,
    "commands": None,
    "hide": [],
    "no_args_command": "help",
    "output_dir": "relpack_out",
    "launcher_dir": "launcher",
    "toolchain": "zig",
    "runtime_dist_url": None,
    "runtime_prefix": "erts",
    "strict_runtime_version": False,
    "deps_dir": "deps",
    "extensions": [],
}

_REQUIRED_RELEASE_KEYS = ("name", "version", "runtime_version", "path")


@dataclass(frozen=True, slots=True)
class ReleaseBundle:
    """Pre-built release produced by the release builder; read-only here."""

    name: str
    version: str
    runtime_version: str
    file_tree_root: Path
    companion_version: str | None = None


@dataclass(frozen=True, slots=True)
class PackageConfig:
    release: ReleaseBundle
    project_root: Path
    targets: tuple[str, ...] = ("native",)
    debug: bool = False
    no_clean: bool = False
    executable_name: str = ""
    commands: tuple[Any, ...] | None = None
    hide: frozenset[str] = frozenset()
    no_args_command: str = "help"
    output_dir: Path = Path("relpack_out")
    launcher_dir: Path = Path("launcher")
    toolchain: str = "zig"
    runtime_dist_url: str | None = None
    runtime_prefix: str = "erts"
    strict_runtime_version: bool = False
    deps_dir: Path = Path("deps")
    extensions: tuple[dict[str, Any], ...] = ()

    def with_overrides(self, **changes: Any) -> PackageConfig:
        """Copy with non-None changes applied (CLI flags)."""
        return dataclasses.replace(self, **{k: v for k, v in changes.items() if v is not None})


def resolve_package_options(options: dict[str, Any] | None) -> dict[str, Any]:
    """Return package options with defaults filled. Unknown keys are dropped."""
    out = dict(DEFAULT_PACKAGE_OPTIONS)
    if options:
        out.update({k: v for k, v in options.items() if k in out})
    return out


def _as_path(project_root: Path, value: str | Path) -> Path:
    p = Path(value)
    return p if p.is_absolute() else project_root / p


def _release_from_dict(data: Any, project_root: Path) -> ReleaseBundle:
    if not isinstance(data, dict):
        raise ConfigurationError("relpack config needs a 'release' mapping")
    missing = [k for k in _REQUIRED_RELEASE_KEYS if not data.get(k)]
    if missing:
        raise ConfigurationError(f"release is missing: {', '.join(missing)}")
    companion = data.get("companion_version")
    return ReleaseBundle(
        name=str(data["name"]),
        version=str(data["version"]),
        runtime_version=str(data["runtime_version"]),
        file_tree_root=_as_path(project_root, str(data["path"])),
        companion_version=str(companion) if companion else None,
    )


def config_from_dict(data: dict[str, Any], project_root: Path) -> PackageConfig:
    release = _release_from_dict(data.get("release"), project_root)
    opts = resolve_package_options(data.get("package"))

    targets = opts["targets"]
    if isinstance(targets, str):
        targets = [targets]
    commands = opts["commands"]
    if commands is not None and not isinstance(commands, list):
        raise ConfigurationError("package.commands must be a list")
    extensions = opts["extensions"] or []
    if not isinstance(extensions, list) or not all(isinstance(e, dict) for e in extensions):
        raise ConfigurationError("package.extensions must be a list of mappings")

    return PackageConfig(
        release=release,
        project_root=project_root,
        targets=tuple(str(t) for t in targets),
        debug=bool(opts["debug"]),
        no_clean=bool(opts["no_clean"]),
        executable_name=str(opts["executable_name"] or release.name),
        commands=tuple(commands) if commands is not None else None,
        hide=frozenset(str(h) for h in opts["hide"] or []),
        no_args_command=str(opts["no_args_command"]),
        output_dir=_as_path(project_root, opts["output_dir"]),
        launcher_dir=_as_path(project_root, opts["launcher_dir"]),
        toolchain=str(opts["toolchain"]),
        runtime_dist_url=opts["runtime_dist_url"],
        runtime_prefix=str(opts["runtime_prefix"]),
        strict_runtime_version=bool(opts["strict_runtime_version"]),
        deps_dir=_as_path(project_root, opts["deps_dir"]),
        extensions=tuple(extensions),
    )


def load_config(project_root: Path, config_path: Path | None = None) -> PackageConfig:
    """Load relpack.yaml (or config_path) relative to project_root."""
    path = config_path or (project_root / DEFAULT_CONFIG_NAME)
    if not path.is_file():
        raise ConfigurationError(f"Config not found: {path}")
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")
    return config_from_dict(data, project_root)
