"""Target resolution: requested identifiers -> concrete OS/CPU/toolchain triples.

Supported targets live in a static table; adding one is a data change.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from relpack.errors import UnsupportedTargetError

log = logging.getLogger(__name__)

NATIVE = "native"
OVERRIDE_ENV = "RELPACK_TARGET"

# identifier -> (operating_system, cpu_architecture, toolchain triple)
TARGET_TABLE: dict[str, tuple[str, str, str]] = {
    "windows": ("windows", "x86_64", "x86_64-windows-gnu"),
    "darwin": ("darwin", "x86_64", "x86_64-macos"),
    "darwin_arm": ("darwin", "aarch64", "aarch64-macos"),
    "linux": ("linux", "x86_64", "x86_64-linux-gnu"),
    "linux_arm": ("linux", "aarch64", "aarch64-linux-gnu"),
    "linux_musl": ("linux_musl", "x86_64", "x86_64-linux-musl"),
}

_CPU_ALIASES: dict[str, str] = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv8": "aarch64",
}


@dataclass(frozen=True, slots=True)
class Host:
    """The machine running the pipeline."""

    operating_system: str
    cpu_architecture: str


@dataclass(frozen=True, slots=True)
class Target:
    """One resolved build target. ``toolchain_triple`` is empty iff ``is_native``."""

    identifier: str
    operating_system: str
    cpu_architecture: str
    toolchain_triple: str
    is_native: bool

    @property
    def is_windows(self) -> bool:
        return self.operating_system == "windows"


def supported_identifiers() -> list[str]:
    return [NATIVE, *TARGET_TABLE]


def detect_host() -> Host:
    """Detect the current OS (with libc flavour on Linux) and CPU."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    cpu = _CPU_ALIASES.get(machine, machine)
    if system == "windows":
        return Host("windows", cpu)
    if system == "darwin":
        return Host("darwin", cpu)
    return Host(_linux_libc_flavour(), cpu)


def _linux_libc_flavour() -> str:
    try:
        r = subprocess.run(["ldd", "--version"], capture_output=True, text=True, check=False)
    except FileNotFoundError:
        log.debug("ldd not in PATH; assuming glibc")
        return "linux"
    # musl's ldd prints its banner to stderr
    if "musl" in (r.stdout or "") + (r.stderr or ""):
        return "linux_musl"
    return "linux"


def override_targets(environ: Mapping[str, str] | None = None) -> list[str]:
    """Comma-separated identifiers from RELPACK_TARGET; empty list when unset."""
    env = os.environ if environ is None else environ
    raw = env.get(OVERRIDE_ENV, "")
    return [t.strip() for t in raw.split(",") if t.strip()]


def resolve_target(identifier: str, host: Host) -> Target:
    if identifier == NATIVE:
        return Target(NATIVE, host.operating_system, host.cpu_architecture, "", True)
    entry = TARGET_TABLE.get(identifier)
    if entry is None:
        raise UnsupportedTargetError(identifier, supported_identifiers())
    os_name, cpu, triple = entry
    if (os_name, cpu) == (host.operating_system, host.cpu_architecture):
        return Target(identifier, os_name, cpu, "", True)
    return Target(identifier, os_name, cpu, triple, False)


def resolve(
    requested_ids: Iterable[str],
    current_host: Host,
    *,
    environ: Mapping[str, str] | None = None,
) -> list[Target]:
    """Resolve requested identifiers (or the environment override) into Targets.

    Every identifier is validated before anything is returned, so an unsupported
    entry fails the run before any stage has side effects.
    """
    override = override_targets(environ)
    if override:
        log.info("Override targets: %s", override)
        print(f"Info:  {OVERRIDE_ENV} overrides configured targets: {', '.join(override)}")
        ids = override
    else:
        ids = list(requested_ids)

    seen: set[str] = set()
    out: list[Target] = []
    for identifier in ids:
        if identifier in seen:
            continue
        seen.add(identifier)
        out.append(resolve_target(identifier, current_host))
    return out
