# tests/50_core/test_app_logger.py
"""Tests for the app logger's console output."""

from pathlib import Path

import pytest

import cratestitch.errors as mod_errors
import cratestitch.logs as mod_logs


def test_each_record_is_printed_once(capsys: pytest.CaptureFixture[str]) -> None:
    # --- setup ---
    logger = mod_logs.getAppLogger()

    # --- execute ---
    logger.info("stitched %d file(s)", 2)
    logger.error("could not stitch")

    # --- verify ---
    captured = capsys.readouterr()
    assert captured.out.count("stitched 2 file(s)") == 1
    assert captured.err.count("could not stitch") == 1
    assert logger.propagate is False


def test_bundle_warnings_go_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    # --- setup ---
    logger = mod_logs.getAppLogger()
    warning = mod_errors.UnresolvedReferenceWarning(
        "`demo::gone` does not name a root item", path=Path("src/main.rs"), line=3
    )

    # --- execute ---
    count = logger.bundleWarnings([warning])

    # --- verify ---
    captured = capsys.readouterr()
    assert count == 1
    assert captured.err.count("`demo::gone` does not name a root item") == 1
    assert captured.out == ""
