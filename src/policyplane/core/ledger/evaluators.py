"""
Built-in run evaluators.

Each evaluator inspects one finalized :class:`RunEvent` and returns an
:class:`EvaluatorResult`. Evaluators are plain objects with a ``name`` and
an ``evaluate(event)`` method; the ledger runs them in registration order.
"""
from __future__ import annotations

import re
from typing import List, Optional, Pattern, Protocol, Sequence

from policyplane.core.config import LedgerConfig
from policyplane.core.utils.patterns import matches_any_pattern

from .models import EvaluatorResult, RunEvent

DEFAULT_FORBIDDEN_COMMANDS = (
    r"\brm\s+-rf\s+/",
    r"\bgit\s+push\s+--force\s+origin\s+(?:main|master)\b",
    r"\bcurl\s+.*\|\s*(?:sh|bash)\b",
    r"\beval\s*\(",
    r"\bexec\s*\(",
)


class Evaluator(Protocol):
    name: str

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        ...


class TestsPassEvaluator:
    """Fails when tests were not run or any test failed."""

    __test__ = False
    name = "tests-pass"

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        results = event.test_results
        if not results.ran:
            return EvaluatorResult(self.name, False, "Tests were not run during this task", 0.0)

        passed = results.failed == 0
        total = results.total
        details = (
            f"All {results.passed} tests passed ({results.skipped} skipped)"
            if passed
            else f"{results.failed} of {total} tests failed"
        )
        return EvaluatorResult(self.name, passed, details, results.passed / total if total else 0.0)


class ForbiddenCommandEvaluator:
    """Regex scan over the commands/tools recorded on the event."""

    name = "forbidden-command-scan"

    def __init__(self, patterns: Optional[Sequence[str]] = None) -> None:
        sources = list(DEFAULT_FORBIDDEN_COMMANDS if patterns is None else patterns)
        self.patterns: List[Pattern[str]] = [re.compile(p) for p in sources]

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        hits = [
            f'Forbidden command pattern: {pattern.pattern} matched in "{tool}"'
            for tool in event.tools_used
            for pattern in self.patterns
            if pattern.search(tool)
        ]
        if not hits:
            return EvaluatorResult(self.name, True, "No forbidden commands detected", 1.0)
        return EvaluatorResult(
            self.name, False, f"Found {len(hits)} forbidden command(s): {'; '.join(hits)}", 0.0
        )


class ForbiddenDependencyEvaluator:
    """Flag touched dependency manifests for manual review.

    File contents are not available to the ledger, so this never fails a
    run; it only reports which manifests changed.
    """

    name = "forbidden-dependency-scan"

    def __init__(self, forbidden_packages: Sequence[str] = (), manifests: Sequence[str] = ()) -> None:
        self.forbidden_packages = list(forbidden_packages)
        self.manifests = list(manifests)

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        if not self.forbidden_packages:
            return EvaluatorResult(self.name, True, "No forbidden dependencies configured", 1.0)

        touched = [f for f in event.files_touched if self._is_manifest(f)]
        if touched:
            details = f"Package files modified: {', '.join(touched)} - manual review recommended"
        else:
            details = "No package files modified"
        return EvaluatorResult(self.name, True, details, 1.0)

    def _is_manifest(self, path: str) -> bool:
        return matches_any_pattern(path, self.manifests)


class ViolationRateEvaluator:
    name = "violation-rate"

    def __init__(self, max_violations: int = 0) -> None:
        self.max_violations = max_violations

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        count = len(event.violations)
        passed = count <= self.max_violations
        verdict = "within threshold" if passed else "exceeds threshold"
        return EvaluatorResult(
            self.name,
            passed,
            f"{count} violation(s) {verdict} (max: {self.max_violations})",
            max(0.0, 1 - count / max(self.max_violations + 1, 1)),
        )


class DiffQualityEvaluator:
    """Pass when rework stays within ``max_rework_ratio`` of the diff."""

    name = "diff-quality"

    def __init__(self, max_rework_ratio: float = 0.3) -> None:
        self.max_rework_ratio = max_rework_ratio

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        total = event.diff_summary.total_lines
        if total == 0:
            return EvaluatorResult(self.name, True, "No diff produced", 1.0)

        ratio = event.rework_lines / total
        return EvaluatorResult(
            self.name,
            ratio <= self.max_rework_ratio,
            f"Rework ratio: {ratio * 100:.1f}% ({event.rework_lines:g}/{total} lines). "
            f"Threshold: {self.max_rework_ratio * 100:.0f}%",
            max(0.0, 1 - ratio),
        )


def default_evaluators(config: Optional[LedgerConfig] = None) -> List[Evaluator]:
    """Return the built-in evaluator battery configured from ``config``."""
    cfg = config or LedgerConfig()
    return [
        TestsPassEvaluator(),
        ForbiddenCommandEvaluator([*DEFAULT_FORBIDDEN_COMMANDS, *cfg.forbidden_commands]),
        ForbiddenDependencyEvaluator(cfg.forbidden_packages, cfg.dependency_manifests),
        ViolationRateEvaluator(cfg.max_violations),
        DiffQualityEvaluator(cfg.max_rework_ratio),
    ]


__all__ = [
    "DEFAULT_FORBIDDEN_COMMANDS",
    "Evaluator",
    "TestsPassEvaluator",
    "ForbiddenCommandEvaluator",
    "ForbiddenDependencyEvaluator",
    "ViolationRateEvaluator",
    "DiffQualityEvaluator",
    "default_evaluators",
]
