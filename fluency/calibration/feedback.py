"""Learner-facing feedback text for multi-component evaluations."""

from __future__ import annotations

from fluency.calibration.scoring import (
    ComponentEvaluation,
    ErrorType,
    MultiComponentEvaluation,
)
from fluency.core.components import COMPONENT_DISPLAY_NAMES


def component_feedback(evaluation: ComponentEvaluation) -> str:
    name = COMPONENT_DISPLAY_NAMES[evaluation.component]

    if evaluation.correct:
        if evaluation.partial_credit >= 0.95:
            return f"{name}: Excellent!"
        return f"{name}: Good - minor variation acceptable."

    messages = {
        ErrorType.OMISSION: f"{name}: Some elements are missing. Check for completeness.",
        ErrorType.SUBSTITUTION: f'{name}: Wrong choice used. Expected: "{evaluation.correction}".',
        ErrorType.ADDITION: f"{name}: Extra elements added. Simplify your response.",
        ErrorType.ORDERING: f"{name}: Word order issue. Review the structure.",
        ErrorType.FORM: f'{name}: Form error (e.g., tense, number). Expected: "{evaluation.correction}".',
        ErrorType.USAGE: f"{name}: Inappropriate in this context. Consider the register.",
    }
    return messages[evaluation.error_type or ErrorType.SUBSTITUTION]


def multi_component_feedback(evaluation: MultiComponentEvaluation) -> str:
    """Status line, a blank line, then one ✓/✗ line per component."""
    if evaluation.overall_correct:
        lines = ["All components correct!"]
    else:
        lines = [f"Score: {round(evaluation.composite_score * 100)}%"]

    lines.append("")
    for component_eval in evaluation.component_evaluations:
        icon = "✓" if component_eval.correct else "✗"
        lines.append(f"{icon} {component_feedback(component_eval)}")

    return "\n".join(lines)
