"""Rebuild native-extension modules with the cross toolchain.

Each flagged module is rebuilt with `make` using the toolchain's cc/c++/ar/ranlib
and the fetched runtime's headers, then its priv/ files are copied over the
matching lib/{name}-<version>/priv directory of the staged release.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from relpack.errors import ConfigurationError, ExtensionRecompileError
from relpack.helpers import single_match
from relpack.process import stream_command

log = logging.getLogger(__name__)

SHARED_OBJECT_SUFFIXES = (".so", ".dll", ".dylib")


@dataclass(frozen=True, slots=True)
class NativeExtension:
    name: str
    path: Path
    needs_recompile: bool = True


def _looks_native(dep_dir: Path) -> bool:
    if not (dep_dir / "Makefile").is_file():
        return False
    if (dep_dir / "c_src").is_dir():
        return True
    priv = dep_dir / "priv"
    return priv.is_dir() and any(
        f.suffix in SHARED_OBJECT_SUFFIXES for f in priv.iterdir() if f.is_file()
    )


def discover_extensions(deps_dir: Path) -> list[NativeExtension]:
    """Dependencies under deps_dir that carry a Makefile and native sources or objects."""
    if not deps_dir.is_dir():
        return []
    return [
        NativeExtension(d.name, d)
        for d in sorted(deps_dir.iterdir())
        if d.is_dir() and _looks_native(d)
    ]


def collect_extensions(
    deps_dir: Path, configured: Iterable[Mapping[str, Any]], project_root: Path
) -> list[NativeExtension]:
    """Discovered extensions merged with configured ones; configured entries win by name."""
    by_name = {ext.name: ext for ext in discover_extensions(deps_dir)}
    for entry in configured:
        name = entry.get("name")
        if not name:
            raise ConfigurationError(f"Extension entry missing name: {dict(entry)!r}")
        raw_path = Path(str(entry.get("path") or deps_dir / str(name)))
        path = raw_path if raw_path.is_absolute() else project_root / raw_path
        needs_recompile = bool(entry.get("recompile", True))
        if needs_recompile and not path.is_dir():
            raise ConfigurationError(f"Extension {name!r}: source directory not found: {path}")
        by_name[str(name)] = NativeExtension(str(name), path, needs_recompile)
    return list(by_name.values())


def cross_build_env(
    toolchain: str,
    target_triple: str,
    runtime_headers_path: Path,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    include = f"-I{runtime_headers_path}"
    env.update(
        {
            "RANLIB": f"{toolchain} ranlib",
            "AR": f"{toolchain} ar",
            "CC": f"{toolchain} cc -target {target_triple} -v -shared",
            "CXX": f"{toolchain} c++ -target {target_triple} -v -shared",
            "CFLAGS": include,
            "CXXFLAGS": include,
        }
    )
    return env


def recompile(
    module: NativeExtension,
    stage_dir: Path,
    runtime_headers_path: Path,
    target_triple: str,
    *,
    toolchain: str = "zig",
) -> None:
    """Rebuild module for target_triple and copy its priv/ files into the staged tree.

    Raises ExtensionRecompileError with the captured build output on failure.
    Partial state is left in place for inspection.
    """
    print(f"🔨 Recompiling native extension {module.name} -> {target_triple}")

    env = cross_build_env(toolchain, target_triple, runtime_headers_path)
    try:
        # Status ignored: a fresh checkout may have nothing to clean.
        stream_command(["make", "clean"], module.path, env)
        returncode, output = stream_command(["make", "--always-make"], module.path, env)
    except OSError as e:
        raise ExtensionRecompileError(module.name, f"could not run make: {e}") from e
    if returncode != 0:
        raise ExtensionRecompileError(
            module.name, f"make exited with status {returncode}", output=output
        )
    log.info("Rebuilt %s for %s", module.name, target_triple)

    try:
        dest_priv = single_match(stage_dir / "lib", f"{module.name}-[0-9]*/priv")
    except LookupError as e:
        raise ExtensionRecompileError(module.name, f"no unique private-data dir: {e}") from e

    src_priv = module.path / "priv"
    files = sorted(f for f in src_priv.glob("*") if f.is_file()) if src_priv.is_dir() else []
    for f in files:
        log.info("%s -> %s", f, dest_priv)
        try:
            shutil.copy2(f, dest_priv / f.name)
        except OSError as e:
            raise ExtensionRecompileError(module.name, f"copy of {f} failed: {e}") from e
    print(f"✅ Rebuilt {module.name} for {target_triple} ({len(files)} file(s) staged)")
