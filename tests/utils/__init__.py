# tests/utils/__init__.py

from .constants import DEFAULT_TEST_LOG_LEVEL, PROJ_ROOT
from .crates import make_crate, make_manifest, toks


__all__ = [  # noqa: RUF022
    # constants
    "PROJ_ROOT",
    "DEFAULT_TEST_LOG_LEVEL",
    # crates
    "make_crate",
    "make_manifest",
    "toks",
]
