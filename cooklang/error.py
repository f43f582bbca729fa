"""Diagnostics for recipe sources: severities, labels, reports and pass results."""

from __future__ import annotations

import bisect
import enum
import itertools
import logging
import sys
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Iterator, TextIO, TypeVar

_log = logging.getLogger(__name__)

T = TypeVar("T")
O = TypeVar("O")


class Severity(enum.Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"


class Stage(enum.Enum):
    """Parsing stage where a diagnostic originated."""

    PARSE = "parse"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class Label:
    """A location in the source (character offsets) with an optional hint."""

    start: int
    end: int
    text: str | None = None

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid label span: {self.start}..{self.end}")


@dataclass(eq=False)
class SourceDiag:
    """A diagnostic of source code.

    Labels and hints are ordered from high to low importance. Two diagnostics
    are equal when their severity and message are equal.
    """

    severity: Severity
    stage: Stage
    message: str
    labels: list[Label] = field(default_factory=list)
    hints: list[str] = field(default_factory=list)
    source: BaseException | None = None

    @classmethod
    def error(cls, message: str, label: Label, stage: Stage) -> SourceDiag:
        return cls(Severity.ERROR, stage, message, [label])

    @classmethod
    def warning(cls, message: str, label: Label, stage: Stage) -> SourceDiag:
        return cls(Severity.WARNING, stage, message, [label])

    @classmethod
    def unlabeled(cls, message: str, severity: Severity, stage: Stage) -> SourceDiag:
        return cls(severity, stage, message)

    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def is_warning(self) -> bool:
        return self.severity is Severity.WARNING

    def add_label(self, label: Label) -> None:
        self.labels.append(label)

    def add_hint(self, hint: str) -> None:
        self.hints.append(hint)

    def with_label(self, label: Label) -> SourceDiag:
        """Add a label and return the same diagnostic."""
        self.add_label(label)
        return self

    def with_hint(self, hint: str) -> SourceDiag:
        """Add a hint and return the same diagnostic."""
        self.add_hint(hint)
        return self

    def with_source(self, source: BaseException) -> SourceDiag:
        """Set the lower level error that produced this diagnostic."""
        self.source = source
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceDiag):
            return NotImplemented
        return self.severity is other.severity and self.message == other.message

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.message


class SourceReport:
    """A collection of errors and warnings with rich formatting.

    When ``severity`` is set, every diagnostic in the report has it.
    """

    def __init__(
        self,
        diagnostics: Iterable[SourceDiag] = (),
        severity: Severity | None = None,
    ) -> None:
        self._diags: list[SourceDiag] = list(diagnostics)
        self._severity: Severity | None = None
        self.set_severity(severity)

    @property
    def severity(self) -> Severity | None:
        return self._severity

    def push(self, diag: SourceDiag) -> None:
        if self._severity is not None and diag.severity is not self._severity:
            raise ValueError(
                f"cannot add a {diag.severity.value} to a report of "
                f"{self._severity.value}s"
            )
        self._diags.append(diag)

    def error(self, diag: SourceDiag) -> None:
        if not diag.is_error():
            raise ValueError("expected an error diagnostic")
        self.push(diag)

    def warn(self, diag: SourceDiag) -> None:
        if not diag.is_warning():
            raise ValueError("expected a warning diagnostic")
        self.push(diag)

    def retain(self, predicate: Callable[[SourceDiag], bool]) -> None:
        self._diags = [d for d in self._diags if predicate(d)]

    def set_severity(self, severity: Severity | None) -> None:
        if severity is not None and any(d.severity is not severity for d in self._diags):
            raise ValueError(f"report holds diagnostics that are not {severity.value}s")
        self._severity = severity

    def __iter__(self) -> Iterator[SourceDiag]:
        return iter(self._diags)

    def __len__(self) -> int:
        return len(self._diags)

    def errors(self) -> Iterator[SourceDiag]:
        return (d for d in self._diags if d.is_error())

    def warnings(self) -> Iterator[SourceDiag]:
        return (d for d in self._diags if d.is_warning())

    def has_errors(self) -> bool:
        if self._severity is Severity.WARNING:
            return False
        if self._severity is Severity.ERROR:
            return bool(self._diags)
        return any(True for _ in self.errors())

    def has_warnings(self) -> bool:
        if self._severity is Severity.ERROR:
            return False
        if self._severity is Severity.WARNING:
            return bool(self._diags)
        return any(True for _ in self.warnings())

    def is_empty(self) -> bool:
        return not self._diags

    def unzip(self) -> tuple[SourceReport, SourceReport]:
        """Split into an errors report and a warnings report."""
        return (
            SourceReport(self.errors(), Severity.ERROR),
            SourceReport(self.warnings(), Severity.WARNING),
        )

    def remove_warnings(self) -> None:
        self.retain(SourceDiag.is_error)

    def write(self, file_name: str, source_code: str, color: bool, stream: TextIO) -> None:
        """Write a formatted report, warnings first and then errors."""
        index = _LineIndex(source_code)
        for diag in self.warnings():
            _write_report(stream, diag, index, file_name, color)
        for diag in self.errors():
            _write_report(stream, diag, index, file_name, color)

    def print(self, file_name: str, source_code: str, color: bool) -> None:
        self.write(file_name, source_code, color, sys.stdout)

    def eprint(self, file_name: str, source_code: str, color: bool) -> None:
        self.write(file_name, source_code, color, sys.stderr)

    def __str__(self) -> str:
        return "".join(str(d) for d in self._diags)

    def __repr__(self) -> str:
        return f"SourceReport({self._diags!r}, severity={self._severity!r})"


class ReportError(Exception):
    """Raised when a pass result is not valid; carries the full report."""

    def __init__(self, report: SourceReport) -> None:
        super().__init__(str(report))
        self.report = report


@dataclass
class PassResult(Generic[T]):
    """Output of a parsing pass together with its diagnostics."""

    output: T | None
    report: SourceReport = field(default_factory=SourceReport)

    def has_output(self) -> bool:
        return self.output is not None

    def is_valid(self) -> bool:
        return self.has_output() and not self.report.has_errors()

    def valid_output(self) -> T | None:
        return self.output if self.is_valid() else None

    def into_result(self) -> tuple[T, SourceReport]:
        """Return the output and a warnings-only report, or raise ReportError."""
        if not self.is_valid():
            raise ReportError(self.report)
        self.report.set_severity(Severity.WARNING)
        assert self.output is not None
        return self.output, self.report

    def map(self, func: Callable[[T], O]) -> PassResult[O]:
        output = None if self.output is None else func(self.output)
        return PassResult(output, self.report)


def write_rich_error(
    error: Any, file_name: str, source_code: str, color: bool, stream: TextIO
) -> None:
    """Write a rich report for a single diagnostic or exception."""
    _write_report(stream, error, _LineIndex(source_code), file_name, color)


_RESET = "\x1b[0m"
_RED = "31"
_YELLOW = "33"
_GREEN = "32"
_DIM = "2"
_LABEL_COLORS = ("95", "92", "96", "94", "92", "93", "91")


def _paint(text: str, code: str, color: bool) -> str:
    return f"\x1b[{code}m{text}{_RESET}" if color else text


def _width(text: str) -> int:
    total = 0
    for ch in text.replace("\t", "    "):
        if unicodedata.combining(ch):
            continue
        total += 2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1
    return total


class _LineIndex:
    def __init__(self, source: str) -> None:
        self.source = source
        self.starts: list[int] = []
        self.texts: list[str] = []
        offset = 0
        for piece in source.split("\n"):
            self.starts.append(offset)
            self.texts.append(piece.rstrip("\r"))
            offset += len(piece) + 1

    def locate(self, offset: int) -> tuple[int, int]:
        line = bisect.bisect_right(self.starts, offset) - 1
        return line, offset - self.starts[line]


def _render_block(
    index: _LineIndex, labels: list[Label], file_name: str, color: bool
) -> list[str] | None:
    if any(label.end > len(index.source) for label in labels):
        return None

    by_line: dict[int, list[tuple[int, int, Label, str]]] = {}
    for label, code in zip(labels, itertools.cycle(_LABEL_COLORS)):
        line, col = index.locate(label.start)
        text = index.texts[line]
        col = min(col, len(text))
        end_col = max(col, min(label.end - index.starts[line], len(text)))
        by_line.setdefault(line, []).append((col, end_col, label, code))

    gutter = len(str(max(by_line) + 1))
    pad = " " * (gutter + 1)
    out = [f"{pad}╭─{_paint('[', _DIM, color)}{file_name}{_paint(']', _DIM, color)}"]
    previous: int | None = None
    for line in sorted(by_line):
        if previous is not None and line > previous + 1:
            out.append(f"{pad}┆")
        previous = line
        text = index.texts[line]
        out.append(f"{line + 1:>{gutter}} │ {text.replace(chr(9), '    ')}")
        for col, end_col, label, code in by_line[line]:
            indent = " " * _width(text[:col])
            span_width = max(_width(text[col:end_col]), 1)
            marker = "┬" + "─" * (span_width - 1)
            out.append(f"{pad}┆ {indent}{_paint(marker, code, color)}")
            if label.text:
                out.append(f"{pad}┆ {indent}{_paint('╰─ ' + label.text, code, color)}")
    out.append("─" * (gutter + 1) + "╯")
    return out


def _write_report(
    stream: TextIO, error: Any, index: _LineIndex, file_name: str, color: bool
) -> None:
    severity = getattr(error, "severity", Severity.ERROR)
    sev_code = _RED if severity is Severity.ERROR else _YELLOW
    title = "Error:" if severity is Severity.ERROR else "Warning:"
    stream.write(f"{_paint(title, sev_code, color)} {error}\n")

    source = getattr(error, "source", None)
    if source is None and isinstance(error, BaseException):
        source = error.__cause__
    if source is not None:
        stream.write(f"  {_paint('╰▶ ', sev_code, color)} {source}\n")

    labels = sorted(getattr(error, "labels", ()) or (), key=lambda l: (l.start, l.end))
    if labels:
        block = _render_block(index, labels, file_name, color)
        if block is None:
            _log.error("Failed to format code span, this is a bug.")
            return
        stream.write("\n".join(block) + "\n")

    hints = list(getattr(error, "hints", ()) or ())
    if hints:
        stream.write(f"{_paint('Help:', _GREEN, color)} {hints[0]}\n")
    if len(hints) > 1:
        stream.write(f"{_paint('Note:', _GREEN, color)} {hints[1]}\n")
    if len(hints) > 2:
        _log.warning("the report builder only supports 2 hints, more will be ignored")