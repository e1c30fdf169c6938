# src/cratestitch/meta.py
"""Program identity constants."""

from typing import NamedTuple


PROGRAM_PACKAGE = "cratestitch"
PROGRAM_SCRIPT = "cratestitch"
PROGRAM_DISPLAY = "CrateStitch"
PROGRAM_ENV = "CRATESTITCH"
PROGRAM_CONFIG_TABLE = "cratestitch"  # [package.metadata.cratestitch]


class Metadata(NamedTuple):
    version: str
    commit: str
