"""Shared helpers for relpack (naming, path matching, tree removal)."""

from __future__ import annotations

import shutil
from pathlib import Path

# --- Naming ---


def toolchain_binary_name(executable_name: str, is_windows: bool) -> str:
    """Name the toolchain gives the launcher binary: {exe}[.exe]."""
    return f"{executable_name}.exe" if is_windows else executable_name


def artifact_name(executable_name: str, target_id: str, is_windows: bool) -> str:
    """Delivered binary name: {exe}_{target}[.exe]."""
    base = f"{executable_name}_{target_id}"
    return f"{base}.exe" if is_windows else base


# --- Path ---


def single_match(base: Path, pattern: str) -> Path:
    """The one path under base matching pattern. Raises LookupError on zero or many."""
    matches = sorted(base.glob(pattern))
    if len(matches) != 1:
        found = ", ".join(str(m) for m in matches) or "none"
        msg = f"expected exactly one match for {base / pattern}, found {found}"
        raise LookupError(msg)
    return matches[0]


def remove_path(p: Path) -> None:
    """Remove a file or directory tree if present."""
    if p.is_dir() and not p.is_symlink():
        shutil.rmtree(p)
    elif p.exists() or p.is_symlink():
        p.unlink()
