"""Pytest fixtures for relpack tests."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from pathlib import Path

import pytest

from relpack.config import PackageConfig, ReleaseBundle
from relpack.targets import Host

LINUX_HOST = Host("linux", "x86_64")
DIST_URL = "https://dist.example.com/runtime/{version}/{os}-{cpu}.tar.gz"


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project root with a release tree and an (empty) launcher project."""
    root = tmp_path / "project"
    rel = root / "_build" / "rel" / "simple"
    (rel / "bin").mkdir(parents=True)
    (rel / "bin" / "simple").write_text("#!/bin/sh\n")
    (rel / "erts-14.2" / "bin").mkdir(parents=True)
    (rel / "erts-14.2" / "bin" / "beam").write_text("host runtime\n")
    (rel / "lib" / "crypto_nif-1.0.0" / "priv").mkdir(parents=True)
    (rel / "lib" / "crypto_nif-1.0.0" / "priv" / "crypto_nif.so").write_text("host build\n")
    (root / "launcher" / "src").mkdir(parents=True)
    (root / "launcher" / "src" / "launcher.zig").write_text("// dispatch\n")
    return root


@pytest.fixture
def make_config(project: Path) -> Callable[..., PackageConfig]:
    def _make(**overrides: object) -> PackageConfig:
        release = ReleaseBundle(
            name="simple",
            version="0.1.0",
            runtime_version="14.2",
            file_tree_root=project / "_build" / "rel" / "simple",
        )
        base = PackageConfig(
            release=release,
            project_root=project,
            executable_name="simple",
            output_dir=project / "relpack_out",
            launcher_dir=project / "launcher",
            deps_dir=project / "deps",
            runtime_dist_url=DIST_URL,
        )
        return dataclasses.replace(base, **overrides)

    return _make


def fake_toolchain(binary_name: str, returncode: int = 0) -> Callable[..., tuple[int, str]]:
    """stream_command stand-in that drops a binary into zig-out/bin like `zig build`."""

    def _stream(cmd: list[str], cwd: Path, env: object = None) -> tuple[int, str]:
        if returncode == 0:
            out = Path(cwd) / "zig-out" / "bin"
            out.mkdir(parents=True, exist_ok=True)
            (out / binary_name).write_bytes(b"\x7fELF launcher")
        (Path(cwd) / ".zig-cache").mkdir(exist_ok=True)
        return returncode, "" if returncode == 0 else "error: build failed\n"

    return _stream
