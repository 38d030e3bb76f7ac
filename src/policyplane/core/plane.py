"""GuidanceControlPlane: one caller-owned context wiring all components together.

Owns a compiler, retriever, gates, ledger and optimizer configured from the
same repository root. Compilation, retrieval and gate checks are pure;
ledger and optimizer mutation is serialized with a single re-entrant lock.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from policyplane.core.audit import configure_stdlib_logging
from policyplane.core.config import (
    CompilerConfig,
    GatesConfig,
    LedgerConfig,
    LoggingConfig,
    OptimizerConfig,
    RetrieverConfig,
)
from policyplane.core.exceptions import StateError
from policyplane.core.gates import EnforcementGates, GateResult
from policyplane.core.ledger import EvaluatorResult, RunEvent, RunLedger, Violation
from policyplane.core.optimizer import OptimizerLoop
from policyplane.core.retrieval import EmbeddingProvider, RetrievalRequest, RetrievalResult, ShardRetriever
from policyplane.core.rules import GuidanceCompiler, PolicyBundle

logger = logging.getLogger(__name__)

TOP_VIOLATIONS_REPORTED = 5


class GuidanceControlPlane:
    """Compile, retrieve, gate, record and optimize guidance for one repository.

    Example:
        >>> plane = GuidanceControlPlane()
        >>> _ = plane.compile("# Safety\\n- [R001] Never force push to main\\n")
        >>> [r.decision.value for r in plane.evaluate_command("rm -rf /")]
        ['block']
    """

    def __init__(
        self,
        repo_root: Optional[Path] = None,
        *,
        embeddings: Optional[EmbeddingProvider] = None,
        ledger: Optional[RunLedger] = None,
    ) -> None:
        self.repo_root = repo_root
        self.logging_config = LoggingConfig(repo_root)
        audit = self.logging_config
        if audit.log_file is not None:
            configure_stdlib_logging(log_path=audit.log_file, level=audit.level)

        self.compiler = GuidanceCompiler(CompilerConfig(repo_root), audit=audit)
        self.retriever = ShardRetriever(RetrieverConfig(repo_root), embeddings=embeddings)
        self.gates = EnforcementGates(GatesConfig(repo_root), audit=audit)
        self.ledger = ledger or RunLedger(LedgerConfig(repo_root), audit=audit)
        self.optimizer = OptimizerLoop(OptimizerConfig(repo_root), compiler=self.compiler, audit=audit)

        self._lock = threading.RLock()
        self._bundle: Optional[PolicyBundle] = None

    @property
    def bundle(self) -> Optional[PolicyBundle]:
        return self._bundle

    def close(self) -> None:
        """Release resources held by the components (the wrapped embedding provider)."""
        self.retriever.close()

    def __enter__(self) -> "GuidanceControlPlane":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def compile(self, root_text: str, local_text: Optional[str] = None) -> PolicyBundle:
        """Compile guidance and make it the active policy."""
        bundle = self.compiler.compile(root_text, local_text)
        self._activate(bundle)
        return bundle

    def _activate(self, bundle: PolicyBundle) -> None:
        with self._lock:
            self._bundle = bundle
            self.retriever.load_bundle(bundle)
            self.gates.bind_rules(bundle)

    # ------------------------------------------------------------------
    # Per-task policy
    # ------------------------------------------------------------------
    def retrieve_for_task(self, request: Union[RetrievalRequest, str]) -> RetrievalResult:
        """Return the policy for one task.

        Raises:
            StateError: If nothing has been compiled yet.
        """
        if isinstance(request, str):
            request = RetrievalRequest(task_description=request)
        return self.retriever.retrieve(request)

    def evaluate_command(self, command: str) -> List[GateResult]:
        return self.gates.evaluate_command(command)

    def evaluate_edit(self, path: str, content: str, diff_lines: int) -> List[GateResult]:
        return self.gates.evaluate_edit(path, content, diff_lines)

    def evaluate_tool(self, tool: str) -> Optional[GateResult]:
        result = self.gates.evaluate_tool_allowlist(tool)
        self.gates.record_decision("tool", [result] if result else [])
        return result

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    def start_run(self, task_id: str, intent: str, *, session_id: Optional[str] = None) -> RunEvent:
        """Open a run event stamped with the active constitution hash."""
        guidance_hash = self._bundle.constitution.hash if self._bundle is not None else ""
        return self.ledger.create_event(task_id, intent, guidance_hash, session_id=session_id)

    def record_violation(self, event: RunEvent, violation: Violation) -> None:
        with self._lock:
            event.add_violation(violation)

    def finalize_run(self, event: RunEvent) -> List[EvaluatorResult]:
        """Append ``event`` to the ledger and evaluate it.

        Evaluators run one at a time; a crashing evaluator is reported as a
        failed result and the rest still run.
        """
        with self._lock:
            self.ledger.finalize_event(event)
            evaluators = self.ledger.evaluators

        results: List[EvaluatorResult] = []
        for evaluator in evaluators:
            try:
                results.append(evaluator.evaluate(event))
            except Exception as exc:
                logger.warning("Evaluator %s failed on event %s: %s", evaluator.name, event.event_id, exc)
                results.append(
                    EvaluatorResult(
                        name=evaluator.name,
                        passed=False,
                        details=f"Evaluator error: {exc}",
                        score=0.0,
                    )
                )
        return results

    # ------------------------------------------------------------------
    # Reporting and optimization
    # ------------------------------------------------------------------
    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            metrics = self.ledger.compute_metrics()
            rankings = self.ledger.rank_violations()
        payload = metrics.to_dict()
        payload["violationRatePer10Tasks"] = metrics.violation_rate
        payload["topViolations"] = [r.to_dict() for r in rankings[:TOP_VIOLATIONS_REPORTED]]
        return payload

    def get_status(self) -> Dict[str, Any]:
        bundle = self._bundle
        return {
            "initialized": bundle is not None,
            "constitutionLoaded": bundle is not None and bool(bundle.constitution.rules),
            "shardCount": self.retriever.shard_count,
            "activeGates": self.gates.active_gate_count,
            "ledgerEventCount": self.ledger.event_count,
            "lastOptimizationRun": self.optimizer.last_run,
            "metrics": self.ledger.compute_metrics().to_dict(),
        }

    def optimize(self) -> Dict[str, Any]:
        """Run one optimizer cycle and apply its promotions to the active bundle.

        Skipped (nothing promoted, no ADRs) while the ledger holds fewer than
        ``minEventsForOptimization`` events.

        Raises:
            StateError: If nothing has been compiled yet.
        """
        with self._lock:
            if self._bundle is None:
                raise StateError("No policy bundle compiled; call compile() first")

            needed = self.optimizer.config.min_events_for_optimization
            if self.ledger.event_count < needed:
                logger.info(
                    "Skipping optimization: %d event(s) recorded, %d required",
                    self.ledger.event_count,
                    needed,
                )
                return {"promoted": [], "demoted": [], "adrsCreated": 0}

            cycle = self.optimizer.run_cycle(self.ledger, self._bundle)
            if cycle.promoted:
                updated = self.optimizer.apply_promotions(self._bundle, cycle.promoted, cycle.changes)
                self._activate(updated)

            return {
                "promoted": list(cycle.promoted),
                "demoted": list(cycle.demoted),
                "adrsCreated": len(cycle.adrs),
            }


__all__ = ["GuidanceControlPlane"]
