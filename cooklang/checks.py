"""Analysis configuration: definition modes and user supplied checks."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable

from cooklang.error import Severity, SourceDiag, Stage


class DefineMode(enum.Enum):
    """How components in steps are interpreted."""

    ALL = "all"
    COMPONENTS = "components"
    STEPS = "steps"
    TEXT = "text"


class DuplicateMode(enum.Enum):
    """How components with an already used name are interpreted."""

    NEW = "new"
    REFERENCE = "reference"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a user check: ok, or a warning/error with hints.

    Hints are ordered from most to least important.
    """

    severity: Severity | None = None
    hints: tuple[str, ...] = field(default=())

    @classmethod
    def ok(cls) -> CheckResult:
        return cls()

    @classmethod
    def warning(cls, hints) -> CheckResult:
        return cls(Severity.WARNING, tuple(hints))

    @classmethod
    def error(cls, hints) -> CheckResult:
        return cls(Severity.ERROR, tuple(hints))

    def into_source_diag(self, message: str | Callable[[], str]) -> SourceDiag | None:
        """Build an unlabeled analysis diagnostic, or None when the check passed.

        ``message`` may be a callable; it is only called when a diagnostic is made.
        """
        if self.severity is None:
            return None
        text = message() if callable(message) else message
        diag = SourceDiag.unlabeled(text, self.severity, Stage.ANALYSIS)
        for hint in self.hints:
            diag.add_hint(hint)
        return diag


@dataclass
class CheckOptions:
    """How a metadata entry is treated. By default it is kept and checked."""

    included: bool = True
    std_checks: bool = True

    def include(self, do_include: bool) -> None:
        """Whether the entry is kept in the recipe."""
        self.included = do_include

    def run_std_checks(self, do_check: bool) -> None:
        """Whether the checks for standard keys run on the entry."""
        self.std_checks = do_check


RecipeRefCheck = Callable[[str], CheckResult]
MetadataValidator = Callable[[Any, Any, CheckOptions], CheckResult]


@dataclass
class ParseOptions:
    """Extra configuration for the analysis of events."""

    recipe_ref_check: RecipeRefCheck | None = None
    metadata_validator: MetadataValidator | None = None