"""Error taxonomy for the packaging pipeline.

Every error aborts the whole invocation. ``preserves_staging`` tells the staging
scope whether to leave the working copy on disk for postmortem inspection.
"""

from __future__ import annotations


class PackagingError(Exception):
    """Base class for fatal packaging failures."""

    preserves_staging = False

    def __init__(self, message: str, *, target: str | None = None) -> None:
        super().__init__(message)
        self.target = target

    def __str__(self) -> str:
        msg = super().__str__()
        if self.target:
            return f"[{self.target}] {msg}"
        return msg


class ConfigurationError(PackagingError):
    """Invalid configuration, raised before any side effect."""


class UnsupportedTargetError(ConfigurationError):
    def __init__(self, identifier: str, supported: list[str]) -> None:
        super().__init__(
            f"The target {identifier!r} is not supported. "
            f"Supported targets are: {', '.join(supported)}"
        )
        self.identifier = identifier
        self.supported = supported


class StagingError(PackagingError):
    """Copying the release tree into the staging directory failed."""


class RuntimeFetchError(PackagingError):
    """Fetching or substituting the target runtime distribution failed."""


class ExtensionRecompileError(PackagingError):
    """A native extension could not be rebuilt for the cross target."""

    preserves_staging = True

    def __init__(
        self, module: str, message: str, *, output: str = "", target: str | None = None
    ) -> None:
        super().__init__(f"{module}: {message}", target=target)
        self.module = module
        self.output = output

    def __str__(self) -> str:
        msg = super().__str__()
        if self.output:
            return f"{msg}\n{self.output.rstrip()}"
        return msg


class ToolchainBuildError(PackagingError):
    """The external build toolchain exited non-zero."""

    preserves_staging = True

    def __init__(self, returncode: int, command: list[str], *, target: str | None = None) -> None:
        super().__init__(
            f"{' '.join(command)} exited with status {returncode}", target=target
        )
        self.returncode = returncode
        self.command = command


class DeliveryError(PackagingError):
    """Copying the built binary to the output directory failed."""

    def __init__(self, destination: str, message: str, *, target: str | None = None) -> None:
        super().__init__(f"could not deliver {destination}: {message}", target=target)
        self.destination = destination
