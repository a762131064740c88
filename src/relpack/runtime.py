"""Substitute the staged runtime distribution with one built for the cross target."""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from relpack.errors import ConfigurationError, RuntimeFetchError
from relpack.targets import Target

log = logging.getLogger(__name__)

VERSION_FILE = "VERSION"
COMPANION_VERSION_FILE = "OTP_VERSION"
URL_SCHEMES = ("http", "https", "file")


def runtime_asset_url(url_template: str, version: str, target: Target) -> str:
    """Fill {version}, {os} and {cpu}. Raises ConfigurationError on any other placeholder."""
    try:
        url = url_template.format(
            version=version,
            os=target.operating_system,
            cpu=target.cpu_architecture,
        )
    except (KeyError, IndexError, ValueError) as e:
        msg = (
            f"runtime_dist_url {url_template!r} is invalid "
            f"(placeholders are {{version}}, {{os}}, {{cpu}}): {e!r}"
        )
        raise ConfigurationError(msg, target=target.identifier) from e
    if urlparse(url).scheme not in URL_SCHEMES:
        msg = f"runtime_dist_url must be an http(s) or file URL, got {url!r}"
        raise ConfigurationError(msg, target=target.identifier)
    return url


def download(url: str, dest: Path) -> Path:
    """Download url to dest. Blocks until done; no timeout, no retry."""
    try:
        req = Request(url, headers={"User-Agent": "relpack"})
    except ValueError as e:
        raise RuntimeFetchError(f"Invalid runtime download URL {url!r}: {e}") from e
    try:
        with urlopen(req) as response, dest.open("wb") as out:
            shutil.copyfileobj(response, out)
    except HTTPError as e:
        msg = f"Runtime download failed: HTTP {e.code} {e.reason} ({url})"
        raise RuntimeFetchError(msg) from e
    except URLError as e:
        raise RuntimeFetchError(f"Runtime download failed: {e.reason} ({url})") from e
    return dest


def _advertised_version(root: Path) -> str | None:
    p = root / VERSION_FILE
    if not p.is_file():
        return None
    return p.read_text().strip() or None


def detect_companion_version(runtime_executable: str = "erl") -> str | None:
    """Version of the locally installed runtime, read from <root>/releases/*/OTP_VERSION.

    <root> is the install prefix of runtime_executable found on PATH (symlinks
    resolved). Returns None, with a warning, when it cannot be determined.
    """
    exe = shutil.which(runtime_executable)
    if exe is None:
        log.warning("%s not in PATH; local runtime version unknown", runtime_executable)
        return None
    root = Path(exe).resolve().parent.parent
    found = sorted((root / "releases").glob(f"*/{COMPANION_VERSION_FILE}"))
    if not found:
        log.warning("No releases/*/%s under %s; local runtime version unknown",
                    COMPANION_VERSION_FILE, root)
        return None
    version = found[-1].read_text().strip() or None
    log.debug("Local runtime version %s (%s)", version, found[-1])
    return version


def check_companion_version(
    local_companion_version: str | None,
    advertised: str | None,
    *,
    strict: bool,
    target: str,
) -> None:
    """Warn on a local/fetched companion version mismatch; raise only when strict."""
    if not local_companion_version or not advertised:
        log.debug("Skipping companion version check (local=%s, fetched=%s)",
                  local_companion_version, advertised)
        return
    if local_companion_version == advertised:
        return
    msg = (
        f"Local toolchain companion version {local_companion_version} does not match "
        f"fetched runtime distribution version {advertised}"
    )
    if strict:
        raise RuntimeFetchError(msg, target=target)
    log.warning(msg)
    print(f"Warning: {msg}")


def fetch(
    expected_runtime_version: str,
    local_companion_version: str | None,
    stage_dir: Path,
    target: Target,
    *,
    url_template: str | None,
    runtime_prefix: str = "erts",
    strict: bool = False,
) -> Path | None:
    """Replace stage_dir/{prefix}-* with the target's runtime distribution.

    Returns the staged runtime directory, or None (no-op) for native targets.
    """
    if target.is_native:
        return None
    if not url_template:
        raise RuntimeFetchError(
            "runtime_dist_url is required for cross builds", target=target.identifier
        )

    url = runtime_asset_url(url_template, expected_runtime_version, target)
    dir_name = f"{runtime_prefix}-{expected_runtime_version}"
    print(f"🔨 Fetching runtime {dir_name} for {target.identifier}: {url}")

    with tempfile.TemporaryDirectory(prefix="relpack_runtime_") as tmp:
        tmp_path = Path(tmp)
        archive = download(url, tmp_path / "runtime.tar.gz")
        extracted = tmp_path / "extracted"
        try:
            with tarfile.open(archive) as tar:
                tar.extractall(extracted, filter="data")
        except (tarfile.TarError, OSError) as e:
            msg = f"Could not unpack runtime archive from {url}: {e}"
            raise RuntimeFetchError(msg, target=target.identifier) from e

        fetched = extracted / dir_name
        if not fetched.is_dir():
            msg = f"Runtime archive from {url} has no {dir_name}/ directory"
            raise RuntimeFetchError(msg, target=target.identifier)

        check_companion_version(
            local_companion_version,
            _advertised_version(extracted),
            strict=strict,
            target=target.identifier,
        )

        staged = stage_dir / dir_name
        try:
            for old in sorted(stage_dir.glob(f"{runtime_prefix}-*")):
                log.debug("Removing staged runtime %s", old)
                shutil.rmtree(old)
            shutil.copytree(fetched, staged)
        except OSError as e:
            msg = f"Could not replace staged runtime with {dir_name}: {e}"
            raise RuntimeFetchError(msg, target=target.identifier) from e

    print(f"✅ Runtime replaced: {staged}")
    return staged
