"""Packaging pipeline: release tree -> one self-contained executable per target.

Per target, strictly sequential:

    Init -> Staged -> ExtensionsPrepared -> TemplatesGenerated -> Built
         -> Delivered -> CleanedUp          (any step -> Aborted)

The first failing target aborts the invocation; later targets are not attempted.
The launcher directory (toolchain working dir and zig-out/) is shared by the
sequential runs, so targets must never be built concurrently against it.
"""

from __future__ import annotations

import enum
import logging
import secrets
import shutil
import sys
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from relpack import extensions, runtime
from relpack.commands import Command, hidden_names, parse_commands, validate_no_args_command
from relpack.config import PackageConfig, ReleaseBundle
from relpack.errors import (
    ConfigurationError,
    DeliveryError,
    PackagingError,
    StagingError,
    ToolchainBuildError,
)
from relpack.help import executable_for, render, render_usage
from relpack.helpers import artifact_name, remove_path, toolchain_binary_name
from relpack.launcher import LauncherFields, generated_files, write_launcher_sources
from relpack.process import stream_command
from relpack.targets import Host, Target, detect_host, resolve

log = logging.getLogger(__name__)

SUCCESS_BANNER = "\n\n📦 relpack delivered! 📦"
STAGING_PREFIX = "relpack_build_"
TOOLCHAIN_OUTPUT = Path("zig-out") / "bin"
TOOLCHAIN_STATE_DIRS = ("zig-out", ".zig-cache", "zig-cache")
ARTIFACT_MODE = 0o755


class PipelineState(enum.Enum):
    INIT = "init"
    STAGED = "staged"
    EXTENSIONS_PREPARED = "extensions_prepared"
    TEMPLATES_GENERATED = "templates_generated"
    BUILT = "built"
    DELIVERED = "delivered"
    CLEANED_UP = "cleaned_up"
    ABORTED = "aborted"


@dataclass(slots=True)
class StagedBuild:
    """Ephemeral working copy of the release, owned by exactly one target run."""

    working_directory: Path
    replaced_runtime: Path | None = None
    recompiled_extensions: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    source_path: Path
    destination_path: Path
    executable_bit: bool


@dataclass(slots=True)
class TargetRun:
    """State of one target's pass through the pipeline."""

    target: Target
    state: PipelineState = PipelineState.INIT
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.INIT])
    staged: StagedBuild | None = None
    artifact: BuildArtifact | None = None

    def advance(self, state: PipelineState) -> None:
        log.debug("%s: %s -> %s", self.target.identifier, self.state.value, state.value)
        self.state = state
        self.history.append(state)


# --- Pre-flight ---


def precheck(config: PackageConfig, targets: list[Target]) -> None:
    """Fail before any side effect when required tools or directories are missing."""
    cross = [t for t in targets if not t.is_native]
    if not shutil.which(config.toolchain):
        raise ConfigurationError(f"Build toolchain {config.toolchain!r} not found in PATH")
    if cross and not shutil.which("make"):
        raise ConfigurationError("make not found in PATH (needed to rebuild native extensions)")
    if not config.launcher_dir.is_dir():
        raise ConfigurationError(f"Launcher project not found: {config.launcher_dir}")
    if not cross:
        return
    if not config.runtime_dist_url:
        raise ConfigurationError("runtime_dist_url is required for cross builds")
    for t in cross:
        runtime.runtime_asset_url(config.runtime_dist_url, config.release.runtime_version, t)
    extensions.collect_extensions(config.deps_dir, config.extensions, config.project_root)


def build_command_model(config: PackageConfig, target: Target) -> list[Command]:
    commands = parse_commands(
        config.commands, target_os=target.operating_system, hide=config.hide
    )
    validate_no_args_command(commands, config.no_args_command)
    return commands


# --- Init -> Staged ---


def new_staging_dir(base: Path | None = None) -> Path:
    """Unique, randomly named working dir path (not created)."""
    root = base or Path(tempfile.gettempdir())
    return root / f"{STAGING_PREFIX}{secrets.token_hex(8).upper()}"


def stage_release(release: ReleaseBundle, working_directory: Path) -> StagedBuild:
    """Copy the release tree into working_directory, overwriting on conflict."""
    try:
        shutil.copytree(release.file_tree_root, working_directory, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        msg = f"Could not stage release {release.file_tree_root}: {e}"
        raise StagingError(msg) from e
    print(f"Info:  Build working dir: {working_directory}")
    return StagedBuild(working_directory)


@contextmanager
def staged_release(
    release: ReleaseBundle, *, no_clean: bool, staging_base: Path | None = None
) -> Iterator[StagedBuild]:
    """Scoped staging directory.

    Removed on exit unless no_clean is set, or the run aborted with an error whose
    policy keeps the tree for inspection.
    """
    staged = stage_release(release, new_staging_dir(staging_base))
    keep = no_clean
    try:
        yield staged
    except PackagingError as e:
        if e.preserves_staging:
            keep = True
            print(
                f"Info:  Staging directory kept for inspection: {staged.working_directory}",
                file=sys.stderr,
            )
        raise
    finally:
        if not keep:
            shutil.rmtree(staged.working_directory, ignore_errors=True)


# --- Staged -> ExtensionsPrepared ---


def prepare_extensions(config: PackageConfig, target: Target, staged: StagedBuild) -> None:
    """Cross targets only: swap in the target runtime, then rebuild flagged extensions."""
    if target.is_native:
        return
    release = config.release
    runtime_dir = runtime.fetch(
        release.runtime_version,
        release.companion_version or runtime.detect_companion_version(),
        staged.working_directory,
        target,
        url_template=config.runtime_dist_url,
        runtime_prefix=config.runtime_prefix,
        strict=config.strict_runtime_version,
    )
    staged.replaced_runtime = runtime_dir
    headers = runtime_dir / "include" if runtime_dir else staged.working_directory

    modules = extensions.collect_extensions(
        config.deps_dir, config.extensions, config.project_root
    )
    for module in modules:
        if not module.needs_recompile:
            continue
        extensions.recompile(
            module,
            staged.working_directory,
            headers,
            target.toolchain_triple,
            toolchain=config.toolchain,
        )
        staged.recompiled_extensions.append(module.name)


# --- ExtensionsPrepared -> TemplatesGenerated ---


def launcher_fields(
    config: PackageConfig, target: Target, commands: list[Command], staged: StagedBuild
) -> LauncherFields:
    executable = executable_for(config.executable_name, target.is_windows)
    summary, help_by_name = render(commands, executable, config.no_args_command)
    help_by_name["help"] = render_usage(summary, executable)
    return LauncherFields(
        executable_name=config.executable_name,
        release_name=config.release.name,
        release_version=config.release.version,
        release_path=str(staged.working_directory),
        target=target.identifier,
        commands=tuple(commands),
        help=help_by_name,
        no_args_command=config.no_args_command,
        hidden=tuple(hidden_names(commands)),
    )


def generate_launcher(
    config: PackageConfig, target: Target, commands: list[Command], staged: StagedBuild
) -> LauncherFields:
    print("🔨 Generating launcher sources and CLI help")
    fields = launcher_fields(config, target, commands, staged)
    try:
        write_launcher_sources(config.launcher_dir, fields, config.release.runtime_version)
    except OSError as e:
        raise StagingError(f"Could not write launcher sources: {e}") from e
    return fields


# --- TemplatesGenerated -> Built ---


def toolchain_command(config: PackageConfig, target: Target) -> list[str]:
    cmd = [config.toolchain, "build"]
    if not target.is_native:
        cmd.append(f"-Dtarget={target.toolchain_triple}")
    if not config.debug:
        cmd.append("-Doptimize=ReleaseSmall")
    return cmd


def run_toolchain(config: PackageConfig, target: Target) -> None:
    cmd = toolchain_command(config, target)
    print(f"🔨 Building launcher for {target.identifier}: {' '.join(cmd)}")
    try:
        returncode, _ = stream_command(cmd, config.launcher_dir)
    except OSError as e:
        log.debug("Could not start %s: %s", cmd[0], e)
        raise ToolchainBuildError(127, cmd) from e
    if returncode != 0:
        raise ToolchainBuildError(returncode, cmd)


# --- Built -> Delivered ---


def deliver(config: PackageConfig, target: Target) -> BuildArtifact:
    """Move the toolchain's binary to output_dir as {exe}_{target}[.exe] and mark it executable."""
    src = (
        config.launcher_dir
        / TOOLCHAIN_OUTPUT
        / toolchain_binary_name(config.executable_name, target.is_windows)
    )
    dest = config.output_dir / artifact_name(
        config.executable_name, target.identifier, target.is_windows
    )
    if not src.is_file():
        raise DeliveryError(str(dest), f"toolchain output {src} not found")
    try:
        config.output_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
        src.unlink()
        dest.chmod(ARTIFACT_MODE)
    except OSError as e:
        raise DeliveryError(str(dest), str(e)) from e
    return BuildArtifact(src, dest.resolve(), executable_bit=True)


# --- Delivered -> CleanedUp ---


def clean_toolchain_state(launcher_dir: Path) -> None:
    """Remove toolchain intermediates and the generated launcher sources."""
    for name in TOOLCHAIN_STATE_DIRS:
        remove_path(launcher_dir / name)
    for p in generated_files(launcher_dir):
        remove_path(p)


# --- Driver ---


def package_target(
    config: PackageConfig,
    target: Target,
    commands: list[Command],
    *,
    staging_base: Path | None = None,
) -> TargetRun:
    """Run the full state machine for one target. Raises on the first failure."""
    target_run = TargetRun(target)
    print(f"🔨 relpack build target is: {target.identifier}")
    try:
        with staged_release(
            config.release, no_clean=config.no_clean, staging_base=staging_base
        ) as staged:
            target_run.staged = staged
            target_run.advance(PipelineState.STAGED)

            prepare_extensions(config, target, staged)
            target_run.advance(PipelineState.EXTENSIONS_PREPARED)

            generate_launcher(config, target, commands, staged)
            target_run.advance(PipelineState.TEMPLATES_GENERATED)

            run_toolchain(config, target)
            target_run.advance(PipelineState.BUILT)

            target_run.artifact = deliver(config, target)
            target_run.advance(PipelineState.DELIVERED)
            print(f"{SUCCESS_BANNER}\tOutput Path: {target_run.artifact.destination_path}")

            if not config.no_clean:
                clean_toolchain_state(config.launcher_dir)
        target_run.advance(PipelineState.CLEANED_UP)
    except PackagingError as e:
        if e.target is None:
            e.target = target.identifier
        target_run.advance(PipelineState.ABORTED)
        raise
    return target_run


def package_release(
    config: PackageConfig,
    *,
    host: Host | None = None,
    environ: Mapping[str, str] | None = None,
    staging_base: Path | None = None,
) -> list[TargetRun]:
    """Package every requested target in order; fail fast on the first error."""
    targets = resolve(config.targets, host or detect_host(), environ=environ)
    precheck(config, targets)
    models = {t.identifier: build_command_model(config, t) for t in targets}

    runs: list[TargetRun] = []
    for target in targets:
        runs.append(
            package_target(config, target, models[target.identifier], staging_base=staging_base)
        )
    return runs


def run(
    config: PackageConfig,
    *,
    host: Host | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """CLI entry: package all targets. Returns 0 on success, 1 on error."""
    try:
        runs = package_release(config, host=host, environ=environ)
    except (PackagingError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        print(
            "❌ relpack failed to wrap up your app! Check the output above for details.",
            file=sys.stderr,
        )
        return 1
    for r in runs:
        if r.artifact is not None:
            print(f"✅ {r.target.identifier}: {r.artifact.destination_path}")
    return 0
