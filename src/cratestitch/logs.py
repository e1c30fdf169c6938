# src/cratestitch/logs.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, cast

from apathetic_logging import (
    Logger,
    registerDefaultLogLevel,
    registerLogger,
    registerLogLevelEnvVars,
)

from .constants import DEFAULT_ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL
from .meta import PROGRAM_ENV, PROGRAM_PACKAGE


if TYPE_CHECKING:
    from .errors import TransformationWarning


class AppLogger(Logger):
    """Logger for cratestitch; adds reporting of non-fatal bundle problems."""

    def bundleWarnings(  # noqa: N802
        self, warnings: Iterable[TransformationWarning]
    ) -> int:
        """Log each warning with its source location; return how many."""
        count = 0
        for warning in warnings:
            self.warning("⚠️  %s", warning)
            count += 1
        return count


# --- Logger initialization ---------------------------------------------------

# must run before the first logger is created
logging.setLoggerClass(AppLogger)
AppLogger.extendLoggingModule()  # adds TRACE and SILENT

# CRATESTITCH_LOG_LEVEL wins over LOG_LEVEL; both over the default
registerLogLevelEnvVars(
    [f"{PROGRAM_ENV}_{DEFAULT_ENV_LOG_LEVEL}", DEFAULT_ENV_LOG_LEVEL]
)
registerDefaultLogLevel(DEFAULT_LOG_LEVEL)
registerLogger(PROGRAM_PACKAGE)

_APP_LOGGER = cast("AppLogger", logging.getLogger(PROGRAM_PACKAGE))
# owns its single console handler; records must not reach the root handlers too
_APP_LOGGER.setPropagate(False)  # noqa: FBT003


# --- Convenience utils ---------------------------------------------------------


def getAppLogger() -> AppLogger:  # noqa: N802
    """Return the `cratestitch` logger."""
    return _APP_LOGGER
