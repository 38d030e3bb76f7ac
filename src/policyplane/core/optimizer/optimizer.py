"""Optimizer loop: propose, score and promote rule changes from ledger history.

A cycle ranks violations in the ledger, proposes one change per top-ranked
rule, scores each change against the ledger baseline and records an ADR for
every decision. Rules that win ``promotion_wins`` consecutive evaluations are
reported as promoted; :meth:`OptimizerLoop.apply_promotions` moves them into
the constitution.

Scoring is a fixed-multiplier estimate per change type
(:data:`EFFECT_MULTIPLIERS`), not a live experiment.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from policyplane.core.audit import audit_event
from policyplane.core.config import LoggingConfig, OptimizerConfig
from policyplane.core.exceptions import NotFoundError, StateError, ValidationError
from policyplane.core.ledger import OptimizationMetrics, RunLedger, ViolationRanking
from policyplane.core.rules import GuidanceCompiler
from policyplane.core.rules.models import (
    GuidanceRule,
    PolicyBundle,
    RiskClass,
    RuleSource,
    TaskIntent,
)
from policyplane.core.schemas import validate_payload
from policyplane.core.taxonomy import infer_domains, infer_intents
from policyplane.core.utils.time import now_ms

from .models import ABTestResult, ChangeType, CycleResult, PromotionState, RuleADR, RuleChange

logger = logging.getLogger(__name__)

OPTIMIZER_STATE_SCHEMA = "optimizer-state"

# (share of affected-ratio violation reduction, share of triggering cost removed)
EFFECT_MULTIPLIERS: Dict[ChangeType, Tuple[float, float]] = {
    ChangeType.MODIFY: (0.4, 0.3),
    ChangeType.ADD: (0.6, 0.5),
    ChangeType.PROMOTE: (0.8, 0.6),
    ChangeType.REMOVE: (-0.2, -0.1),
    ChangeType.DEMOTE: (0.0, 0.0),
}

FREQUENT_VIOLATION_THRESHOLD = 5
COSTLY_VIOLATION_THRESHOLD = 50


@dataclass
class _TrackerEntry:
    state: PromotionState = PromotionState.UNTRACKED
    wins: int = 0


class OptimizerLoop:
    """Closed-loop rule optimizer.

    Holds proposed changes, test results, ADRs and the per-rule promotion
    tracker in memory. Not safe for concurrent mutation; callers sharing an
    instance across threads serialize access themselves.
    """

    def __init__(
        self,
        config: Optional[OptimizerConfig] = None,
        *,
        compiler: Optional[GuidanceCompiler] = None,
        audit: Optional[LoggingConfig] = None,
    ) -> None:
        self.config = config or OptimizerConfig()
        self._compiler = compiler or GuidanceCompiler(audit=audit)
        self._audit = audit
        self._proposed_changes: List[RuleChange] = []
        self._test_results: List[ABTestResult] = []
        self._adrs: List[RuleADR] = []
        self._tracker: Dict[str, _TrackerEntry] = {}
        self._last_run: Optional[int] = None

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------
    def run_cycle(self, ledger: RunLedger, bundle: PolicyBundle) -> CycleResult:
        """Run one rank → propose → evaluate → record cycle."""
        self._last_run = now_ms()

        rankings = ledger.rank_violations()
        if not rankings:
            logger.info("Optimization cycle skipped: no violations recorded")
            return CycleResult()

        changes = self.propose_changes(rankings[: self.config.top_violations_per_cycle], bundle)
        self._proposed_changes.extend(changes)

        baseline = ledger.compute_metrics()
        result = CycleResult(rankings=rankings, changes=changes)
        for change in changes:
            test = self.evaluate_change(change, baseline, ledger)
            result.results.append(test)
            self._test_results.append(test)
            result.adrs.append(self._record_adr(test))
            rule_id = change.target_rule_id
            if self._record_outcome(test):
                result.promoted.append(rule_id)
            elif change.change_type is ChangeType.PROMOTE:
                result.demoted.append(rule_id)

        logger.info(
            "Optimization cycle: %d change(s), %d promoted, %d demoted",
            len(changes),
            len(result.promoted),
            len(result.demoted),
        )
        audit_event(
            "optimizer.cycle",
            settings=self._audit,
            rankings=len(rankings),
            changes=[c.change_id for c in changes],
            promoted=result.promoted,
            demoted=result.demoted,
        )
        return result

    def propose_changes(
        self, rankings: Sequence[ViolationRanking], bundle: PolicyBundle
    ) -> List[RuleChange]:
        """One change per ranking: modify an existing rule, or add a new one."""
        changes = []
        for ranking in rankings:
            rule = bundle.find_rule(ranking.rule_id)
            if rule is not None:
                changes.append(self._propose_modification(rule, ranking))
            else:
                changes.append(self._propose_new_rule(ranking))
            entry = self._tracker.setdefault(ranking.rule_id, _TrackerEntry())
            if entry.state is PromotionState.UNTRACKED:
                entry.state = PromotionState.PROPOSED
        return changes

    def _propose_modification(self, rule: GuidanceRule, ranking: ViolationRanking) -> RuleChange:
        proposed = rule.text
        if ranking.frequency > FREQUENT_VIOLATION_THRESHOLD:
            proposed = f"{rule.text}. This rule requires automated enforcement via gates."
        elif ranking.cost > COSTLY_VIOLATION_THRESHOLD:
            proposed = (
                f"[HIGH PRIORITY] {rule.text}. Violations of this rule are costly "
                f"(avg {ranking.cost:.0f} rework lines)."
            )

        change_type = ChangeType.MODIFY
        if rule.source is RuleSource.LOCAL and self._wins(rule.id) >= self.config.promotion_wins - 1:
            change_type = ChangeType.PROMOTE

        return RuleChange(
            change_id=str(uuid.uuid4()),
            target_rule_id=rule.id,
            change_type=change_type,
            original_text=rule.text,
            proposed_text=proposed,
            rationale=(
                f"Violated {ranking.frequency} times with avg cost of {ranking.cost:.0f} "
                f"rework lines (score: {ranking.score:.1f})"
            ),
            triggering_violation=ranking,
        )

    def _propose_new_rule(self, ranking: ViolationRanking) -> RuleChange:
        return RuleChange(
            change_id=str(uuid.uuid4()),
            target_rule_id=ranking.rule_id,
            change_type=ChangeType.ADD,
            proposed_text=(
                f'[{ranking.rule_id}] Enforce compliance for pattern "{ranking.rule_id}". '
                f"Auto-generated from {ranking.frequency} violations with avg cost "
                f"{ranking.cost:.0f} lines."
            ),
            rationale=(
                f'No existing rule covers violations classified as "{ranking.rule_id}". '
                f"{ranking.frequency} occurrences detected."
            ),
            triggering_violation=ranking,
        )

    def evaluate_change(
        self, change: RuleChange, baseline: OptimizationMetrics, ledger: RunLedger
    ) -> ABTestResult:
        """Estimate ``change``'s effect and decide whether it wins.

        Affected events are those that violated or retrieved the target rule.
        """
        target = change.target_rule_id
        affected = sum(
            1
            for event in ledger.get_events()
            if target in event.retrieved_rule_ids or any(v.rule_id == target for v in event.violations)
        )
        candidate = self._simulate(change, baseline, affected)

        risk_increase = candidate.violation_rate - baseline.violation_rate
        rework_decrease = baseline.rework_lines - candidate.rework_lines
        improvement = rework_decrease / max(baseline.rework_lines, 1)
        max_risk = self.config.max_risk_increase
        threshold = self.config.improvement_threshold

        should_promote = (
            risk_increase <= max_risk and rework_decrease > 0 and improvement >= threshold
        )
        if should_promote:
            reason = (
                f"Rework decreased by {rework_decrease:.1f} lines ({improvement * 100:.1f}%) "
                "without increasing risk"
            )
        elif risk_increase > max_risk:
            reason = f"Risk increased by {risk_increase:.2f} (exceeds threshold {max_risk:g})"
        else:
            reason = (
                f"Insufficient rework improvement ({improvement * 100:.1f}% < "
                f"{threshold * 100:.0f}% required)"
            )
        return ABTestResult(
            change=change,
            baseline=baseline,
            candidate=candidate,
            should_promote=should_promote,
            reason=reason,
        )

    @staticmethod
    def _simulate(
        change: RuleChange, baseline: OptimizationMetrics, affected_count: int
    ) -> OptimizationMetrics:
        affected_ratio = affected_count / baseline.task_count if baseline.task_count > 0 else 0.0
        violation_share, rework_share = EFFECT_MULTIPLIERS[change.change_type]
        violation_reduction = affected_ratio * violation_share
        rework_reduction = change.triggering_violation.cost * rework_share
        return OptimizationMetrics(
            violation_rate=max(0.0, baseline.violation_rate * (1 - violation_reduction)),
            self_correction_rate=min(1.0, baseline.self_correction_rate + violation_reduction * 0.1),
            rework_lines=max(0.0, baseline.rework_lines - rework_reduction),
            clarifying_questions=baseline.clarifying_questions,
            task_count=baseline.task_count,
        )

    def _record_outcome(self, result: ABTestResult) -> bool:
        """Advance the promotion state machine; True when the rule is promoted."""
        rule_id = result.change.target_rule_id
        entry = self._tracker.setdefault(rule_id, _TrackerEntry())
        if result.should_promote:
            entry.wins += 1
            if entry.wins >= self.config.promotion_wins:
                entry.state = PromotionState.PROMOTED
                return True
            entry.state = PromotionState.TESTED_PASS
            return False

        entry.wins = 0
        if result.change.change_type is ChangeType.PROMOTE:
            entry.state = PromotionState.DEMOTED
        else:
            entry.state = PromotionState.TESTED_FAIL
        return False

    def _record_adr(self, result: ABTestResult) -> RuleADR:
        change = result.change
        kind = change.change_type.value
        if result.should_promote:
            title = f"Promote: {kind} rule {change.target_rule_id}"
            decision = f"Apply {kind} to rule {change.target_rule_id}"
        else:
            title = f"Reject: {kind} rule {change.target_rule_id}"
            decision = f"Reject proposed {kind} for rule {change.target_rule_id}"

        adr = RuleADR(
            number=len(self._adrs) + 1,
            title=title,
            decision=decision,
            rationale=result.reason,
            change=change,
            test_result=result,
            date=now_ms(),
        )
        self._adrs.append(adr)
        audit_event(
            "optimizer.adr",
            settings=self._audit,
            number=adr.number,
            title=adr.title,
            ruleId=change.target_rule_id,
            shouldPromote=result.should_promote,
        )
        return adr

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------
    def apply_promotions(
        self, bundle: PolicyBundle, promoted: Sequence[str], changes: Sequence[RuleChange]
    ) -> PolicyBundle:
        """Return a new bundle with each promoted rule moved into the constitution.

        The promoted rule takes the change's proposed text, gains
        the compiler's ``constitutionPriorityBonus`` and is sourced from the
        optimizer. A promoted ``add`` change creates its rule. Rules already
        in the constitution are left alone. The manifest is carried over
        unchanged and is stale until the caller recompiles.

        Raises:
            StateError: If a promoted id has no corresponding change.
            NotFoundError: If a promoted id is not in the bundle (and the
                change does not add it).
        """
        constitution_rules = list(bundle.constitution.rules)
        shards = list(bundle.shards)
        changed = False

        for rule_id in promoted:
            change = next((c for c in reversed(changes) if c.target_rule_id == rule_id), None)
            if change is None:
                raise StateError(
                    f"No evaluated change for promoted rule {rule_id}",
                    context={"ruleId": rule_id},
                )
            if any(r.id == rule_id for r in constitution_rules):
                logger.debug("Rule %s is already in the constitution", rule_id)
                continue

            index = next((i for i, s in enumerate(shards) if s.rule.id == rule_id), None)
            if index is not None:
                rule = shards.pop(index).rule
                constitution_rules.append(
                    replace(
                        rule,
                        text=change.proposed_text or rule.text,
                        priority=rule.priority + self._compiler.config.constitution_priority_bonus,
                        source=RuleSource.OPTIMIZER,
                        is_constitution=True,
                        updated_at=now_ms(),
                    )
                )
            elif change.change_type is ChangeType.ADD:
                constitution_rules.append(self._rule_from_change(change))
            else:
                raise NotFoundError(
                    f"Promoted rule {rule_id} is not in the bundle",
                    context={"ruleId": rule_id},
                )
            changed = True
            logger.info("Promoted rule %s into the constitution", rule_id)

        constitution = (
            self._compiler.build_constitution(constitution_rules) if changed else bundle.constitution
        )
        return PolicyBundle(constitution=constitution, shards=shards, manifest=bundle.manifest)

    def _rule_from_change(self, change: RuleChange) -> GuidanceRule:
        now = now_ms()
        text = change.proposed_text
        defaults = self._compiler.config
        return GuidanceRule(
            id=change.target_rule_id,
            text=text,
            risk_class=RiskClass(defaults.default_risk_class),
            intents=[TaskIntent(i) for i in infer_intents(text)],
            domains=infer_domains(text),
            priority=defaults.default_priority + defaults.constitution_priority_bonus,
            source=RuleSource.OPTIMIZER,
            is_constitution=True,
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def last_run(self) -> Optional[int]:
        return self._last_run

    def get_adrs(self) -> List[RuleADR]:
        return list(self._adrs)

    def get_adr(self, number: int) -> RuleADR:
        if 1 <= number <= len(self._adrs):
            return self._adrs[number - 1]
        raise NotFoundError(f"ADR {number} does not exist", context={"number": number})

    def get_proposed_changes(self) -> List[RuleChange]:
        return list(self._proposed_changes)

    def get_test_results(self) -> List[ABTestResult]:
        return list(self._test_results)

    def get_promotion_tracker(self) -> Dict[str, int]:
        """Consecutive win count per tracked rule id."""
        return {rule_id: entry.wins for rule_id, entry in self._tracker.items()}

    def get_promotion_state(self, rule_id: str) -> PromotionState:
        entry = self._tracker.get(rule_id)
        return entry.state if entry is not None else PromotionState.UNTRACKED

    def _wins(self, rule_id: str) -> int:
        entry = self._tracker.get(rule_id)
        return entry.wins if entry is not None else 0

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def export_state(self) -> Dict[str, Any]:
        return {
            "adrs": [a.to_dict() for a in self._adrs],
            "promotionTracker": {
                rule_id: {"state": entry.state.value, "wins": entry.wins}
                for rule_id, entry in self._tracker.items()
            },
            "lastRun": self._last_run,
        }

    def import_state(self, snapshot: Mapping[str, Any]) -> None:
        """Restore ADRs and the promotion tracker from :meth:`export_state` output.

        Raises:
            ValidationError: If the snapshot is malformed or ADR numbers are
                not the sequence 1..n.
            StateError: If this optimizer already recorded ADRs.
        """
        validate_payload(dict(snapshot), OPTIMIZER_STATE_SCHEMA)
        if self._adrs:
            raise StateError("Cannot import optimizer state over existing ADRs")

        adrs = [RuleADR.from_dict(a) for a in snapshot["adrs"]]
        numbers = [a.number for a in adrs]
        if numbers != list(range(1, len(adrs) + 1)):
            raise ValidationError(
                "ADR numbers must be sequential starting at 1",
                context={"numbers": numbers},
            )

        self._adrs = adrs
        self._tracker = {
            str(rule_id): _TrackerEntry(state=PromotionState(raw["state"]), wins=int(raw["wins"]))
            for rule_id, raw in snapshot["promotionTracker"].items()
        }
        self._last_run = snapshot.get("lastRun")
        logger.info("Imported optimizer state with %d ADR(s)", len(adrs))


__all__ = [
    "OptimizerLoop",
    "EFFECT_MULTIPLIERS",
    "OPTIMIZER_STATE_SCHEMA",
]
