"""
Suspicious-activity policy.

Everything here is a pure function of its arguments: the same history and the
same signal always produce the same classification. Signal types are open
string tags; anything missing from the policy table falls back to
``DEFAULT_RULE`` and never raises.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional


SEVERITIES = ("low", "medium", "high", "critical")
ACTIONS = ("none", "warning", "flag", "terminate")

TERMINATE_CRITICAL = "critical_violation"
TERMINATE_LIMIT = "violation_limit"


@dataclass(frozen=True)
class PolicyRule:
    severity: str
    score_delta: int
    action: str
    # n-th occurrence of the type (1-based) from which the action goes up one step
    escalate_at: Optional[int] = None
    counts_as_violation: bool = True
    # rule applied instead when the signal arrives already escalated
    escalated: Optional["PolicyRule"] = None


DEFAULT_RULE = PolicyRule("low", 0, "none", counts_as_violation=False)


POLICY_TABLE: Dict[str, PolicyRule] = {
    "tab_switch": PolicyRule("medium", -5, "warning", escalate_at=3),
    "window_blur": PolicyRule("low", -2, "warning", escalate_at=3),
    "window_resize": PolicyRule("low", -2, "none", escalate_at=3),
    "right_click": PolicyRule("low", -2, "warning", escalate_at=5),
    "keyboard_shortcut": PolicyRule("low", -2, "warning", escalate_at=5),
    "copy_paste": PolicyRule("high", -15, "flag"),
    "no_face_detected": PolicyRule(
        "medium", -5, "warning",
        escalated=PolicyRule("high", -10, "flag"),
    ),
    "multiple_faces": PolicyRule("high", -20, "flag"),
    "multiple_voices": PolicyRule("medium", -10, "warning", escalate_at=3),
    "suspicious_movement": PolicyRule("medium", -5, "warning", escalate_at=3),
    "fullscreen_exit": PolicyRule("high", -15, "flag"),
    "external_device": PolicyRule("high", -15, "flag"),
    "network_change": PolicyRule("low", -2, "none", escalate_at=3),
    "print_screen": PolicyRule("high", -15, "flag"),
    "screen_capture": PolicyRule("high", -15, "flag"),
    "developer_tools": PolicyRule("critical", -30, "flag"),
    "screen_share": PolicyRule("critical", -30, "flag"),
}


@dataclass(frozen=True)
class Signal:
    type: str
    details: str = ""
    escalated: bool = False


@dataclass(frozen=True)
class HistorySummary:
    """What the classifier is allowed to know about a session's past"""
    violation_count: int = 0
    security_score: int = 100
    type_counts: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class TerminationPolicy:
    max_suspicious_activities: int = 5
    auto_terminate_on_critical: bool = True


@dataclass(frozen=True)
class Classification:
    severity: str
    score_delta: int
    action: str
    counts_as_violation: bool
    termination_reason: Optional[str] = None

    @property
    def should_terminate(self) -> bool:
        return self.action == "terminate"


def _step_up(action: str) -> str:
    # repetition alone never terminates; that is the threshold's job
    if action in ("flag", "terminate"):
        return action
    return ACTIONS[ACTIONS.index(action) + 1]


def resolve_rule(signal_type: str, extra_rules: Optional[Mapping[str, PolicyRule]] = None) -> PolicyRule:
    if extra_rules and signal_type in extra_rules:
        return extra_rules[signal_type]
    return POLICY_TABLE.get(signal_type, DEFAULT_RULE)


def classify(
    summary: HistorySummary,
    signal: Signal,
    policy: TerminationPolicy,
    extra_rules: Optional[Mapping[str, PolicyRule]] = None,
) -> Classification:
    rule = resolve_rule(signal.type, extra_rules)
    if signal.escalated and rule.escalated is not None:
        rule = replace(rule.escalated, counts_as_violation=rule.counts_as_violation)

    action = rule.action
    occurrence = summary.type_counts.get(signal.type, 0) + 1
    if rule.escalate_at is not None and occurrence >= rule.escalate_at:
        action = _step_up(action)

    score_delta = min(0, rule.score_delta)

    termination_reason = None
    if rule.counts_as_violation:
        if policy.auto_terminate_on_critical and rule.severity == "critical":
            termination_reason = TERMINATE_CRITICAL
        elif summary.violation_count + 1 >= policy.max_suspicious_activities:
            termination_reason = TERMINATE_LIMIT
    if termination_reason:
        action = "terminate"

    return Classification(
        severity=rule.severity,
        score_delta=score_delta,
        action=action,
        counts_as_violation=rule.counts_as_violation,
        termination_reason=termination_reason,
    )


def apply_score(score: int, delta: int) -> int:
    return max(0, min(100, score + min(0, delta)))


def derive_risk_level(security_score: int, severity_counts: Mapping[str, int]) -> str:
    if severity_counts.get("critical", 0) > 0 or security_score <= 25:
        return "critical"
    if severity_counts.get("high", 0) > 0 or security_score <= 50:
        return "high"
    if severity_counts.get("medium", 0) > 0 or security_score < 90:
        return "medium"
    return "low"
