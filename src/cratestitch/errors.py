# src/cratestitch/errors.py
"""Exception and warning types raised or collected while bundling a crate.

Fatal problems are exceptions deriving from `BundleError`; non-fatal ones are
`TransformationWarning` records returned alongside a successful result.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class BundleError(RuntimeError):
    """Base class for every fatal bundling failure."""


class ConfigurationError(BundleError):
    """The project shape or the supplied configuration is unusable."""


# --------------------------------------------------------------------------- #
# parsing
# --------------------------------------------------------------------------- #


class ParseError(BundleError):
    """Source text could not be turned into a syntax tree."""

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.message = message
        self.path = Path(path) if path is not None else None
        self.line = line
        self.column = column
        super().__init__(self._format())

    def _format(self) -> str:
        where = str(self.path) if self.path else "<input>"
        if self.line is not None:
            where += f":{self.line}"
            if self.column is not None:
                where += f":{self.column}"
        return f"{where}: {self.message}"


# --------------------------------------------------------------------------- #
# module resolution
# --------------------------------------------------------------------------- #


class ResolutionError(BundleError):
    """A module declaration could not be turned into an inline body."""

    def __init__(self, message: str, module_path: str | None = None) -> None:
        self.module_path = module_path
        super().__init__(message)


class FileNotFound(ResolutionError):  # noqa: N818
    def __init__(self, module_path: str, candidates: list[Path]) -> None:
        self.candidates = candidates
        tried = ", ".join(str(c) for c in candidates)
        xmsg = f"No source file for module {module_path} (tried: {tried})"
        super().__init__(xmsg, module_path)


class AmbiguousCandidates(ResolutionError):  # noqa: N818
    def __init__(self, module_path: str, candidates: list[Path]) -> None:
        self.candidates = candidates
        found = " and ".join(str(c) for c in candidates)
        xmsg = (
            f"Module {module_path} is ambiguous: both {found} exist."
            " Remove one of them."
        )
        super().__init__(xmsg, module_path)


class CyclicDeclaration(ResolutionError):  # noqa: N818
    def __init__(self, module_path: str, chain: list[Path]) -> None:
        self.chain = chain
        shown = " -> ".join(str(p) for p in chain)
        xmsg = f"Cyclic module declaration at {module_path}: {shown}"
        super().__init__(xmsg, module_path)


class DuplicateModule(ResolutionError):  # noqa: N818
    def __init__(self, module_path: str) -> None:
        xmsg = f"Module {module_path} is declared more than once"
        super().__init__(xmsg, module_path)


# --------------------------------------------------------------------------- #
# minification
# --------------------------------------------------------------------------- #


class MinificationIntegrityError(BundleError):
    """Compressed text no longer parses to the same item sequence."""

    def __init__(self, expected: list[str], actual: list[str]) -> None:
        self.expected = expected
        self.actual = actual
        index = next(
            (
                i
                for i, (a, b) in enumerate(zip(expected, actual, strict=False))
                if a != b
            ),
            min(len(expected), len(actual)),
        )
        xmsg = (
            "Minification changed the item structure"
            f" (first difference at item #{index + 1};"
            f" {len(expected)} item(s) before, {len(actual)} after)"
        )
        super().__init__(xmsg)


# --------------------------------------------------------------------------- #
# warnings
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class TransformationWarning:
    """Non-fatal problem found while transforming the tree."""

    message: str
    path: Path | None = None
    line: int | None = None

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        where = f"{self.path}:{self.line}" if self.line else str(self.path)
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class UnresolvedReferenceWarning(TransformationWarning):
    """A rewritten crate path points at a name the inlined library lacks."""

    reference: str = ""
