# src/cratestitch/config.py
"""Read `[package.metadata.cratestitch]` and merge it with CLI and environment.

Precedence for every setting: CLI flag → environment → Cargo metadata →
built-in default.
"""

import argparse
import os
from pathlib import Path
from typing import Any

from apathetic_schema import (
    ApatheticSchema_ValidationSummary as ValidationSummary,
    check_schema_conformance,
)
from apathetic_utils import cast_hint, plural, schema_from_typeddict

from .config_types import CompressionConfig, MinifyLevel, StitchConfig, WatchConfig
from .constants import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_ENV_DEBOUNCE_MS,
    DEFAULT_EXPAND_MODULES,
    DEFAULT_MINIFY,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SRC_DIR,
    DEFAULT_STRIP_DOCS,
    DEFAULT_STRIP_TESTS,
)
from .errors import ConfigurationError
from .logs import getAppLogger
from .meta import PROGRAM_CONFIG_TABLE, PROGRAM_ENV


# --------------------------------------------------------------------------- #
# loading
# --------------------------------------------------------------------------- #


def parse_minify_level(value: str) -> MinifyLevel:
    """Map `"none"`, `"single-line"` / `"single_line"` or `"aggressive"` to a level."""
    normalized = value.strip().lower().replace("_", "-")
    for level in MinifyLevel:
        if level.value == normalized:
            return level
    choices = ", ".join(repr(level.value) for level in MinifyLevel)
    xmsg = f"Unknown minify level {value!r} (expected one of {choices})"
    raise ConfigurationError(xmsg)


def load_stitch_config(cargo_data: dict[str, Any]) -> StitchConfig:
    """Extract and validate our table from parsed `Cargo.toml` data.

    The table is checked against the `StitchConfig` schema; unknown keys are
    rejected with a close-match hint.

    Raises:
        ConfigurationError: listing every unknown key and wrongly typed value.
    """
    logger = getAppLogger()
    package = cargo_data.get("package") or {}
    metadata = package.get("metadata") or {} if isinstance(package, dict) else {}
    raw = metadata.get(PROGRAM_CONFIG_TABLE) if isinstance(metadata, dict) else None
    if raw is None:
        logger.trace("[config] no [package.metadata.%s] table", PROGRAM_CONFIG_TABLE)
        return {}
    table = f"[package.metadata.{PROGRAM_CONFIG_TABLE}]"
    if not isinstance(raw, dict):
        xmsg = f"{table} must be a table"
        raise ConfigurationError(xmsg)

    summary = ValidationSummary(
        valid=True, errors=[], strict_warnings=[], warnings=[], strict=True
    )
    check_schema_conformance(
        raw,
        schema_from_typeddict(StitchConfig),
        f"in {table}",
        strict_config=True,
        summary=summary,
    )
    problems = [*summary.errors, *summary.strict_warnings]

    # bool is an int subclass, so the schema accepts it for numeric keys
    debounce = raw.get("debounce_ms")
    if isinstance(debounce, bool):
        problems.append(f"in {table}: key `debounce_ms` expected int, got bool")
    elif isinstance(debounce, int) and debounce < 0:
        problems.append(f"in {table}: key `debounce_ms` must not be negative")
    if isinstance(raw.get("minify"), str):
        try:
            parse_minify_level(raw["minify"])
        except ConfigurationError as e:
            problems.append(str(e))

    # the schema reports a scalar mismatch twice with the same text
    problems = list(dict.fromkeys(problems))
    if problems:
        xmsg = (
            f"Invalid {table} ({len(problems)} problem{plural(problems)}):\n  "
            + "\n  ".join(problems)
        )
        raise ConfigurationError(xmsg)

    logger.trace("[config] loaded %s with keys %s", table, sorted(raw))
    return cast_hint(StitchConfig, dict(raw))



# --------------------------------------------------------------------------- #
# resolution
# --------------------------------------------------------------------------- #


def _flag(args: argparse.Namespace, name: str) -> Any:
    return getattr(args, name, None)


def resolve_compression_config(
    args: argparse.Namespace,
    file_cfg: StitchConfig | None = None,
) -> CompressionConfig:
    """Build the `CompressionConfig` for one run."""
    logger = getAppLogger()
    cfg = file_cfg or {}

    strip_tests = cfg.get("strip_tests", DEFAULT_STRIP_TESTS)
    if _flag(args, "keep_tests"):
        strip_tests = False
    strip_docs = cfg.get("strip_docs", DEFAULT_STRIP_DOCS)
    if _flag(args, "keep_docs"):
        strip_docs = False
    expand_modules = cfg.get("expand_modules", DEFAULT_EXPAND_MODULES)
    if _flag(args, "no_expand_modules"):
        expand_modules = False

    # --pretty > --m2 > --minify > metadata > default
    if _flag(args, "pretty"):
        minify_level = MinifyLevel.NONE
    elif _flag(args, "m2"):
        minify_level = MinifyLevel.AGGRESSIVE
    elif _flag(args, "minify"):
        minify_level = MinifyLevel.SINGLE_LINE
    else:
        minify_level = parse_minify_level(cfg.get("minify", DEFAULT_MINIFY))

    config = CompressionConfig(
        strip_tests=strip_tests,
        strip_docs=strip_docs,
        expand_modules=expand_modules,
        minify_level=minify_level,
    )
    logger.trace("[resolve_compression_config] %s", config)
    return config


def resolve_watch_config(
    args: argparse.Namespace,
    project_root: Path,
    file_cfg: StitchConfig | None = None,
) -> WatchConfig:
    """Build the `WatchConfig` (debounce window and watched directory)."""
    logger = getAppLogger()
    cfg = file_cfg or {}

    env_key = f"{PROGRAM_ENV}_{DEFAULT_ENV_DEBOUNCE_MS}"
    env_debounce = os.getenv(env_key)
    if _flag(args, "debounce") is not None:
        debounce_ms = int(args.debounce)
    elif env_debounce is not None:
        try:
            debounce_ms = int(env_debounce)
        except ValueError:
            logger.warning("Invalid %s=%r, using default.", env_key, env_debounce)
            debounce_ms = cfg.get("debounce_ms", DEFAULT_DEBOUNCE_MS)
    else:
        debounce_ms = cfg.get("debounce_ms", DEFAULT_DEBOUNCE_MS)
    if debounce_ms < 0:
        xmsg = f"Debounce must not be negative (got {debounce_ms} ms)"
        raise ConfigurationError(xmsg)

    src_dir = _flag(args, "src_dir") or cfg.get("src_dir", DEFAULT_SRC_DIR)
    watch_dir = (project_root / src_dir).resolve()

    logger.trace(
        "[resolve_watch_config] dir=%s debounce=%dms", watch_dir, debounce_ms
    )
    return WatchConfig(
        watch_dir=watch_dir,
        debounce_ms=debounce_ms,
        poll_interval=DEFAULT_POLL_INTERVAL,
    )
