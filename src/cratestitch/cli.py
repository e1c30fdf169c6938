# src/cratestitch/cli.py

import argparse
import logging
import platform
import sys
from difflib import get_close_matches
from pathlib import Path

from .actions import get_metadata, watch_for_changes, write_output
from .pipeline import BundleResult, bundle
from .config import (
    load_stitch_config,
    resolve_compression_config,
    resolve_watch_config,
)
from .config_types import ProjectDescriptor, StitchConfig
from .constants import DEFAULT_DEBOUNCE_MS, DEFAULT_SRC_DIR
from .errors import BundleError
from .logs import getAppLogger
from .meta import PROGRAM_DISPLAY, PROGRAM_SCRIPT
from .parser import parse
from .project import load_manifest, load_project_descriptor
from .syntax import item_kinds


LOG_LEVELS = ["trace", "debug", "info", "warning", "error", "critical", "silent"]


# --------------------------------------------------------------------------- #
# CLI setup and helpers
# --------------------------------------------------------------------------- #


class HintingArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        # Build known option strings: ["-v", "--verbose", "--log-level", ...]
        known_opts: list[str] = []
        for action in self._actions:
            known_opts.extend([s for s in action.option_strings if s])

        hint_lines: list[str] = []
        # "unrecognized arguments: --mnify ..."
        if "unrecognized arguments:" in message:
            bad = message.split("unrecognized arguments:", 1)[1].strip()
            bad_args = [tok for tok in bad.split() if tok.startswith("-")]
            for arg in bad_args:
                close = get_close_matches(arg, known_opts, n=1, cutoff=0.6)
                if close:
                    hint_lines.append(f"Hint: did you mean {close[0]}?")

        self.print_usage(sys.stderr)
        full = f"{self.prog}: error: {message}"
        if hint_lines:
            full += "\n" + "\n".join(hint_lines)
        self.exit(2, full + "\n")


def _setup_parser() -> argparse.ArgumentParser:
    """Define and return the CLI argument parser."""
    parser = HintingArgumentParser(
        prog=PROGRAM_SCRIPT,
        description="Bundle a multi-file Rust crate into a single source file.",
    )

    parser.add_argument(
        "project",
        nargs="?",
        default=".",
        metavar="PROJECT",
        help="Crate directory containing Cargo.toml (default: current directory).",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Write the bundle to this file instead of stdout.",
    )
    parser.add_argument(
        "--bin",
        dest="binary",
        metavar="NAME",
        help="Binary target to bundle when the crate has several.",
    )

    # --- Transformations ---
    parser.add_argument(
        "--keep-tests",
        action="store_true",
        help="Keep #[test] / #[bench] items (still drops #[cfg(test)] code).",
    )
    parser.add_argument(
        "--keep-docs",
        action="store_true",
        help="Keep doc comments and #[doc] attributes.",
    )
    parser.add_argument(
        "--no-expand-modules",
        action="store_true",
        help="Leave `mod foo;` declarations unresolved.",
    )

    # --- Output shape ---
    shape = parser.add_mutually_exclusive_group()
    shape.add_argument(
        "-m",
        "--minify",
        action="store_true",
        help="Compress the bundle onto a single line.",
    )
    shape.add_argument(
        "--m2",
        action="store_true",
        help="Aggressive compression: keep only spaces the syntax needs.",
    )
    shape.add_argument(
        "--pretty",
        action="store_true",
        help="Never compress, even if Cargo.toml metadata asks for it.",
    )

    # --- Modes ---
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--validate",
        action="store_true",
        help="Bundle and check that the result parses; write nothing.",
    )
    mode.add_argument(
        "--info",
        action="store_true",
        help="Show the crate's targets and exit.",
    )
    mode.add_argument(
        "-w",
        "--watch",
        action="store_true",
        help="Re-bundle whenever the sources change.",
    )
    parser.add_argument(
        "--src-dir",
        metavar="DIR",
        help=f"Directory to watch, relative to PROJECT (default: {DEFAULT_SRC_DIR}).",
    )
    parser.add_argument(
        "--debounce",
        type=int,
        metavar="MS",
        default=None,
        help=f"Watch debounce window in milliseconds (default: {DEFAULT_DEBOUNCE_MS}).",
    )

    # --- Version and verbosity ---
    parser.add_argument("--version", action="store_true", help="Show version info.")

    log_level = parser.add_mutually_exclusive_group()
    log_level.add_argument(
        "-q",
        "--quiet",
        action="store_const",
        const="warning",
        dest="log_level",
        help="Suppress non-critical output (same as --log-level warning).",
    )
    log_level.add_argument(
        "-v",
        "--verbose",
        action="store_const",
        const="debug",
        dest="log_level",
        help="Verbose output (same as --log-level debug).",
    )
    log_level.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        dest="log_level",
        help="Set log verbosity level.",
    )
    return parser


def _initialize_logger(args: argparse.Namespace) -> None:
    """Apply --log-level on top of the environment and default levels."""
    logger = getAppLogger()
    if args.log_level:
        logger.setLevel(args.log_level)
    logger.trace("[BOOT] log-level initialized: %s", logger.getEffectiveLevel())

    logger.debug(
        "Runtime: Python %s (%s)\n    %s",
        platform.python_version(),
        platform.python_implementation(),
        sys.version.replace("\n", " "),
    )


def _handle_early_exits(args: argparse.Namespace) -> int | None:
    """Handle --version; return an exit code to stop early, else None."""
    logger = getAppLogger()
    if getattr(args, "version", None):
        meta = get_metadata()
        logger.info("%s %s (%s)", PROGRAM_DISPLAY, meta.version, meta.commit)
        return 0
    return None


def _describe(descriptor: ProjectDescriptor) -> None:
    logger = getAppLogger()
    logger.info("📦 Crate: %s", descriptor.crate_display_name)
    logger.info("📁 Root: %s", descriptor.project_root)
    logger.info("▶️  Entry: %s", descriptor.entry_file_path)
    if descriptor.library_entry_path is not None:
        logger.info(
            "📚 Library: %s (%s)",
            descriptor.crate_name,
            descriptor.library_entry_path,
        )
    else:
        logger.info("📚 Library: none")
    if descriptor.binary_entry_paths:
        for name, path in sorted(descriptor.binary_entry_paths.items()):
            logger.info("⚙️  Binary: %s (%s)", name, path)
    else:
        logger.info("⚙️  Binary: none")


def _emitter(output: Path | None):  # noqa: ANN202
    """Return the function that delivers a finished bundle."""
    logger = getAppLogger()

    def emit(result: BundleResult) -> None:
        # info logs share stdout, so the bundle goes out alone
        if output is None:
            sys.stdout.write(result.text)
            sys.stdout.flush()
            return
        write_output(result.text, output)
        logger.info(
            "✅ Bundled %s → %s (%d file(s), %d warning(s))",
            result.descriptor.crate_display_name,
            output,
            len(result.source_files),
            len(result.warnings),
        )

    return emit


def _validate(result: BundleResult) -> int:
    logger = getAppLogger()
    kinds = item_kinds(parse(result.text))
    logger.info(
        "🔍 %s: bundle parses (%d item(s), %d character(s), %d warning(s))",
        result.descriptor.crate_display_name,
        len(kinds),
        len(result.text),
        len(result.warnings),
    )
    return 0


def _run(args: argparse.Namespace) -> int:
    logger = getAppLogger()
    project_root = Path(args.project).resolve()

    file_cfg: StitchConfig = load_stitch_config(load_manifest(project_root))
    binary = args.binary or file_cfg.get("bin")
    descriptor = load_project_descriptor(project_root, binary)

    if args.info:
        _describe(descriptor)
        return 0

    config = resolve_compression_config(args, file_cfg)
    out_value = args.output or file_cfg.get("out")
    output = None
    if out_value:
        out_path = Path(out_value)
        # Cargo metadata paths are relative to the crate, CLI paths to cwd
        output = out_path if args.output else project_root / out_path

    if args.watch:
        watch_config = resolve_watch_config(args, project_root, file_cfg)
        watch_for_changes(
            project_root,
            config,
            watch_config,
            emit=_emitter(output),
            binary=binary,
        )
        return 0

    result = bundle(project_root, config, descriptor=descriptor)
    if args.validate:
        return _validate(result)
    _emitter(output)(result)
    return 0


# --------------------------------------------------------------------------- #
# Main entry
# --------------------------------------------------------------------------- #


def main(argv: list[str] | None = None) -> int:
    logger = getAppLogger()  # init (use env + defaults)

    try:
        parser = _setup_parser()
        args = parser.parse_args(argv)

        # --- Early runtime init (use CLI + env + defaults) ---
        _initialize_logger(args)

        # --- Handle early exits (version) ---
        early_exit_code = _handle_early_exits(args)
        if early_exit_code is not None:
            return early_exit_code

        return _run(args)

    except (BundleError, OSError, ValueError) as e:
        # controlled termination
        if logger.isEnabledFor(logging.DEBUG):
            logger.exception("%s", e)
        else:
            logger.error("%s", e)  # noqa: TRY400
        return 1

    except Exception as e:
        # unexpected internal error
        logger.critical("Unexpected internal error: %s", e)
        if logger.isEnabledFor(logging.DEBUG):
            logger.exception("Traceback:")
        return 1
