"""Blocking subprocess helper that streams output live and keeps a copy."""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path


def stream_command(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
) -> tuple[int, str]:
    """Run cmd (stderr merged into stdout), echo each line, return (returncode, output).

    No timeout: the caller waits for the process unconditionally.
    """
    captured: list[str] = []
    with subprocess.Popen(
        cmd,
        cwd=str(cwd),
        env=dict(env) if env is not None else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    ) as proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            sys.stdout.write(line)
            captured.append(line)
        returncode = proc.wait()
    sys.stdout.flush()
    return returncode, "".join(captured)
