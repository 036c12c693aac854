"""Core result data structures for the scanner."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Dict, Iterable, List, Sequence, Tuple

from .errors import ScanError
from .severity import Severity

SEVERITY_ORDER: Sequence[Severity] = (
    Severity.ERROR,
    Severity.WARNING,
)


@dataclass(frozen=True)
class Violation:
    """Capture a single reported finding.

    Carries the source position alongside the token index so a formatter
    never has to look back into the token stream.
    """

    position: int
    rule: str
    severity: Severity
    message_template: str
    message_args: Tuple[str, ...] = ()
    line: int = 0
    column: int = 0

    @property
    def message(self) -> str:
        if not self.message_args:
            return self.message_template
        return self.message_template % self.message_args

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["message_args"] = list(self.message_args)
        data["message"] = self.message
        return data


@dataclass
class Summary:
    """Aggregate violation counts by severity."""

    error: int = 0
    warning: int = 0

    def increment(self, severity: Severity) -> None:
        attr = severity.value.lower()
        setattr(self, attr, getattr(self, attr) + 1)

    def merge(self, other: "Summary") -> None:
        for severity in SEVERITY_ORDER:
            attr = severity.value.lower()
            setattr(self, attr, getattr(self, attr) + getattr(other, attr))

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, getattr(self, severity.value.lower())) for severity in SEVERITY_ORDER]

    @property
    def total(self) -> int:
        return sum(getattr(self, severity.value.lower()) for severity in SEVERITY_ORDER)


@dataclass
class ScanResult:
    """Bundle the violations and rule diagnostics for one scanned file."""

    path: str = "<memory>"
    summary: Summary = field(default_factory=Summary)
    violations: List[Violation] = field(default_factory=list)
    errors: List[ScanError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def passed(self) -> bool:
        return self.summary.error == 0

    def add_violation(self, violation: Violation) -> None:
        self.summary.increment(violation.severity)
        self.violations.append(violation)

    def add_error(self, error: ScanError) -> None:
        self.errors.append(error)

    def to_dict(self) -> Dict[str, object]:
        return {
            "path": self.path,
            "summary": self.summary.to_dict(),
            "violations": [violation.to_dict() for violation in self.violations],
            "errors": [error.to_dict() for error in self.errors],
            "passed": self.passed,
            "cancelled": self.cancelled,
        }

    def exit_code(self) -> int:
        if self.summary.error > 0:
            return 2
        if self.summary.warning > 0:
            return 1
        return 0


def combined_exit_code(results: Iterable[ScanResult]) -> int:
    return max((result.exit_code() for result in results), default=0)


def format_summary_table(results: Sequence[ScanResult], max_violations: int = 10) -> str:
    """Create a human-readable summary table for console output."""

    totals = Summary()
    for result in results:
        totals.merge(result.summary)

    lines: List[str] = []
    lines.append("Scan Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in totals.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    status = "PASS" if all(result.passed for result in results) else "FAIL"
    lines.append(f"Status    : {status}")
    lines.append(f"Files     : {len(results)}")
    lines.append(f"Violations: {totals.total}")

    shown = 0
    for result in results:
        for violation in result.violations:
            if shown == 0:
                lines.append("")
                lines.append("Violations")
                lines.append("-" * 40)
            if shown >= max_violations:
                break
            lines.append(
                f"[{violation.severity.value}] {result.path}:{violation.line}:{violation.column} "
                f"{violation.message} ({violation.rule})"
            )
            shown += 1

    rule_errors = [(result.path, error) for result in results for error in result.errors]
    if rule_errors:
        lines.append("")
        lines.append("Rule Errors")
        lines.append("-" * 40)
        for path, error in rule_errors:
            lines.append(f"{path}: {error.rule} failed at token {error.position}: {error.message}")
    return "\n".join(lines)
