# src/cratestitch/actions.py
import os
import re
import subprocess
import tempfile
from collections.abc import Callable
from contextlib import suppress
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as dist_version
from pathlib import Path

from .pipeline import BundleResult, bundle
from .config_types import CompressionConfig, WatchConfig
from .logs import getAppLogger
from .meta import PROGRAM_PACKAGE, Metadata
from .watch import (
    CancellationToken,
    PollingChangeSource,
    ThreadRunner,
    WatchSession,
    default_extra_files,
)


def write_output(text: str, dest: Path) -> None:
    """Write `text` to `dest` atomically.

    The text goes to a temporary file next to `dest` which then replaces it,
    so readers never observe a half-written bundle.
    """
    logger = getAppLogger()
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        tmp_path.replace(dest)
    except BaseException:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise
    logger.trace("[write_output] wrote %d characters to %s", len(text), dest)


def _report_failure(error: BaseException) -> None:
    logger = getAppLogger()
    logger.error("❌ Bundle failed: %s", error)
    logger.info("Waiting for the next change...")


def watch_for_changes(  # noqa: PLR0913
    project_root: Path,
    config: CompressionConfig,
    watch_config: WatchConfig,
    *,
    emit: Callable[[BundleResult], None],
    binary: str | None = None,
    token: CancellationToken | None = None,
) -> BundleResult | None:
    """Bundle once, then re-bundle whenever watched files change.

    `emit` receives every successful result (writing it out is its job); a
    failed attempt is logged and the session keeps watching. Stops on
    KeyboardInterrupt or when `token` is cancelled, letting a bundle that is
    already running finish first.
    """
    logger = getAppLogger()
    token = token or CancellationToken()

    def rebuild() -> BundleResult:
        result = bundle(project_root, config, binary=binary)
        emit(result)
        return result

    # initial bundle; a failure here is reported like any later one
    last: BundleResult | None = None
    try:
        last = rebuild()
    except Exception as e:  # noqa: BLE001
        _report_failure(e)

    session: WatchSession[BundleResult] = WatchSession(
        rebuild,
        debounce=watch_config.debounce_seconds,
        token=token,
        runner=ThreadRunner(),
        on_failure=_report_failure,
        poll_interval=watch_config.poll_interval,
    )
    source = PollingChangeSource(
        session,
        watch_config.watch_dir,
        interval=watch_config.poll_interval,
        extra_files=default_extra_files(project_root),
    )

    logger.info(
        "👀 Watching %s (debounce=%dms)... Press Ctrl+C to stop.",
        watch_config.watch_dir,
        watch_config.debounce_ms,
    )
    source.start()
    try:
        output = session.run()
    except KeyboardInterrupt:
        output = session.last_output
    finally:
        token.cancel()
        source.join(timeout=watch_config.poll_interval * 10)
    logger.info("🛑 Watch stopped.")
    return output or last


def _get_metadata_from_pyproject(root: Path) -> str:
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return "unknown"
    text = pyproject.read_text(encoding="utf-8")
    match = re.search(r'(?m)^\s*version\s*=\s*["\']([^"\']+)["\']', text)
    return match.group(1) if match else "unknown"


def get_metadata() -> Metadata:
    """Return (version, commit) for this tool.

    The version comes from pyproject.toml when running from a checkout, else
    from the installed distribution; the commit comes from git when available.
    """
    logger = getAppLogger()
    root = Path(__file__).resolve().parents[2]
    logger.trace("get_metadata ran from: %s", Path(__file__).resolve())

    version = _get_metadata_from_pyproject(root)
    if version == "unknown":
        with suppress(PackageNotFoundError):
            version = dist_version(PROGRAM_PACKAGE)

    commit = "unknown"
    with suppress(Exception):
        logger.trace("trying to get commit from git")
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            cwd=root,
            capture_output=True,
            text=True,
            check=True,
        )
        commit = result.stdout.strip()

    logger.trace("got package version %s with commit %s", version, commit)
    return Metadata(version, commit)
