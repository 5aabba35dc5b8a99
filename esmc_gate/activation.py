"""
L5 checkpoint activation for esmc-gate.

Decides whether strategic mode must be forced from four trigger signals.
Two or more active triggers force activation, in which case the decision
carries a fixed set of clarifying questions (WHERE, WHEN, WHO, WHY).

The evaluator is pure. Reading the vetting/execution-state files and writing
the checkpoint result are separate helpers used by the CLI.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .config import CheckpointConfig

logger = logging.getLogger(__name__)

ACTIVATION_THRESHOLD = 2

ITERATION_THRESHOLD = 3
INTERVENTION_THRESHOLD = 3
ERROR_MATCH_THRESHOLD = 0.70


def _as_count(value: Any) -> int:
    """Coerce a count, treating anything invalid as zero."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(int(value), 0)
    return 0


def _as_fraction(value: Any) -> float:
    """Coerce a percentage, treating anything invalid as zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        value = float(value)
    except OverflowError:
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


@dataclass(frozen=True)
class TriggerSet:
    """
    The four signals feeding the activation decision.

    Missing or malformed values default to zero/False.
    """

    iteration_count: int = 0
    intervention_count: int = 0
    error_match_percentage: float = 0.0
    post_action_context: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> TriggerSet:
        """Build from a partial record with camelCase or snake_case keys."""
        if not isinstance(data, Mapping):
            return cls()

        def pick(snake: str, camel: str) -> Any:
            return data[snake] if snake in data else data.get(camel)

        return cls(
            iteration_count=_as_count(pick("iteration_count", "iterationCount")),
            intervention_count=_as_count(pick("intervention_count", "interventionCount")),
            error_match_percentage=_as_fraction(
                pick("error_match_percentage", "errorMatchPercentage")
            ),
            post_action_context=pick("post_action_context", "postActionContext") is True,
        )

    def active_triggers(self) -> dict[str, bool]:
        """Evaluate each trigger predicate, keyed by trigger code."""
        return {
            "IC": self.iteration_count >= ITERATION_THRESHOLD,
            "UID": self.intervention_count >= INTERVENTION_THRESHOLD,
            "EMP": self.error_match_percentage >= ERROR_MATCH_THRESHOLD,
            "PAC": self.post_action_context is True,
        }


@dataclass(frozen=True)
class FollowUpQuestion:
    """A clarifying question asked when strategic mode is forced."""

    dimension: str
    question: str
    elaboration: str
    rationale: str


@dataclass
class ActivationDecision:
    """Result of evaluating a trigger set."""

    activate: bool
    active_count: int
    threshold: int = ACTIVATION_THRESHOLD
    triggers: dict[str, bool] = field(default_factory=dict)
    questions: list[FollowUpQuestion] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the checkpoint result document."""
        result: dict[str, Any] = {
            "activate": self.activate,
            "active_count": self.active_count,
            "threshold": self.threshold,
            "triggers": dict(self.triggers),
        }
        if self.activate:
            result["questions"] = [asdict(q) for q in self.questions]
        return result


def build_questions(triggers: TriggerSet) -> list[FollowUpQuestion]:
    """Build the fixed WHERE/WHEN/WHO/WHY question list."""
    return [
        FollowUpQuestion(
            dimension="WHERE",
            question="Where exactly does the failure surface?",
            elaboration=(
                "Name the file, function, endpoint or environment where the "
                "problem is observed, not where it is assumed to originate."
            ),
            rationale="Repeated fixes in the wrong location are the most common cause of loops.",
        ),
        FollowUpQuestion(
            dimension="WHEN",
            question="When did it last work, and what changed since?",
            elaboration=(
                "Identify the last known-good state and the commits, configuration "
                "or dependency changes made after it."
            ),
            rationale="A known-good baseline bounds the search space for the root cause.",
        ),
        FollowUpQuestion(
            dimension="WHO",
            question="Who or what else touches this code path?",
            elaboration=(
                "List the callers, services, jobs or users that interact with the "
                "affected component."
            ),
            rationale="Hidden collaborators often invalidate fixes made in isolation.",
        ),
        FollowUpQuestion(
            dimension="WHY",
            question="Why have previous attempts not resolved it?",
            elaboration=(
                f"This issue has taken {triggers.iteration_count} iteration(s) and "
                f"{triggers.intervention_count} intervention(s) so far. State what each "
                "attempt assumed and which assumption turned out to be wrong."
            ),
            rationale="Naming the failed assumption prevents repeating it.",
        ),
    ]


def evaluate(triggers: TriggerSet | Mapping[str, Any] | None = None) -> ActivationDecision:
    """
    Evaluate the L5 checkpoint.

    Args:
        triggers: A TriggerSet, or a partial record that is coerced into one

    Returns:
        ActivationDecision; questions are attached only when activated
    """
    if not isinstance(triggers, TriggerSet):
        triggers = TriggerSet.from_dict(triggers)

    active = triggers.active_triggers()
    active_count = sum(1 for hit in active.values() if hit)
    activate = active_count >= ACTIVATION_THRESHOLD

    return ActivationDecision(
        activate=activate,
        active_count=active_count,
        triggers=active,
        questions=build_questions(triggers) if activate else [],
    )


def extract_triggers(vetting_result: Any, execution_state: Any) -> TriggerSet:
    """
    Extract a trigger set from the vetting result and execution state.

    The vetting result supplies the iteration, intervention and error-match
    values; the execution state supplies the post-action flag.
    """
    vetting = vetting_result if isinstance(vetting_result, Mapping) else {}
    state = execution_state if isinstance(execution_state, Mapping) else {}

    merged = {
        key: vetting[key]
        for key in (
            "iterationCount",
            "iteration_count",
            "interventionCount",
            "intervention_count",
            "errorMatchPercentage",
            "error_match_percentage",
        )
        if key in vetting
    }
    for key in ("postActionContext", "post_action_context"):
        if key in state:
            merged[key] = state[key]

    return TriggerSet.from_dict(merged)


def _read_json(path: Path) -> Any:
    if not path.exists():
        logger.debug("Checkpoint input %s not found, treating as empty", path)
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read checkpoint input %s: %s", path, e)
        return {}


def read_trigger_files(root: Path, config: CheckpointConfig | None = None) -> TriggerSet:
    """Read the vetting result and execution state files under ``root``."""
    config = config or CheckpointConfig()
    return extract_triggers(
        _read_json(root / config.vetting_result_file),
        _read_json(root / config.execution_state_file),
    )


def write_checkpoint_result(
    root: Path,
    decision: ActivationDecision,
    config: CheckpointConfig | None = None,
) -> Path:
    """Write the decision document under ``root`` and return its path."""
    config = config or CheckpointConfig()
    path = root / config.result_file
    path.write_text(json.dumps(decision.to_dict(), indent=2) + "\n", encoding="utf-8")
    return path


__all__ = [
    "ACTIVATION_THRESHOLD",
    "ActivationDecision",
    "FollowUpQuestion",
    "TriggerSet",
    "build_questions",
    "evaluate",
    "extract_triggers",
    "read_trigger_files",
    "write_checkpoint_result",
]
