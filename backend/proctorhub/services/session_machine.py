"""
Proctoring session lifecycle as a pure reducer.

uninitialized -> initialized -> active -> ended | terminated

The persistence layer loads a ``SessionSnapshot`` from the database row, runs
the guards and the reducer, and writes the resulting snapshot back.
"""
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Mapping, Optional

from ..core.exceptions import (
    AlreadyReviewed,
    InvalidSessionState,
    SessionClosed,
)
from .risk_classifier import (
    ACTIONS,
    Classification,
    HistorySummary,
    apply_score,
    derive_risk_level,
)


UNINITIALIZED = "uninitialized"
INITIALIZED = "initialized"
ACTIVE = "active"
ENDED = "ended"
TERMINATED = "terminated"

LIVE_STATUSES = (INITIALIZED, ACTIVE)
TERMINAL_STATUSES = (ENDED, TERMINATED)

FORCED_END_REASONS = frozenset({"terminated", "forced", "critical_violation", "violation_limit"})


@dataclass(frozen=True)
class SessionSnapshot:
    status: str = UNINITIALIZED
    security_score: int = 100
    violation_count: int = 0
    event_count: int = 0
    type_counts: Mapping[str, int] = field(default_factory=dict)
    severity_counts: Mapping[str, int] = field(default_factory=dict)
    risk_level: str = "low"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def history(self) -> HistorySummary:
        return HistorySummary(
            violation_count=self.violation_count,
            security_score=self.security_score,
            type_counts=dict(self.type_counts),
        )


def _reject(operation: str, status: str):
    if status in TERMINAL_STATUSES:
        raise SessionClosed(operation, status)
    raise InvalidSessionState(operation, status)


def ensure_can_initialize(status: str):
    if status != UNINITIALIZED:
        _reject("initialize", status)


def ensure_can_check_system(status: str):
    if status != INITIALIZED:
        _reject("record a system check for", status)


def ensure_can_start(status: str):
    if status != INITIALIZED:
        _reject("start", status)


def ensure_accepts_signals(status: str, operation: str = "record signals for"):
    if status != ACTIVE:
        _reject(operation, status)


def ensure_can_end(status: str):
    if status != ACTIVE:
        _reject("end", status)


def ensure_can_review(status: str, session_id: str, already_reviewed: bool):
    if status not in TERMINAL_STATUSES:
        raise InvalidSessionState("review", status, message="Only ended or terminated sessions can be reviewed")
    if already_reviewed:
        raise AlreadyReviewed(session_id)


def initialize(snapshot: SessionSnapshot) -> SessionSnapshot:
    ensure_can_initialize(snapshot.status)
    return replace(snapshot, status=INITIALIZED)


def start(snapshot: SessionSnapshot) -> SessionSnapshot:
    ensure_can_start(snapshot.status)
    return replace(snapshot, status=ACTIVE)


def end_status_for(reason: Optional[str]) -> str:
    return TERMINATED if reason in FORCED_END_REASONS else ENDED


def end(snapshot: SessionSnapshot, reason: Optional[str]) -> SessionSnapshot:
    ensure_can_end(snapshot.status)
    return replace(snapshot, status=end_status_for(reason))


def apply_classification(
    snapshot: SessionSnapshot,
    signal_type: str,
    classification: Classification,
) -> SessionSnapshot:
    """Fold one classified event into the running aggregates"""
    ensure_accepts_signals(snapshot.status)

    type_counts = dict(snapshot.type_counts)
    type_counts[signal_type] = type_counts.get(signal_type, 0) + 1
    severity_counts = dict(snapshot.severity_counts)
    severity_counts[classification.severity] = severity_counts.get(classification.severity, 0) + 1

    score = apply_score(snapshot.security_score, classification.score_delta)
    violations = snapshot.violation_count + (1 if classification.counts_as_violation else 0)

    return replace(
        snapshot,
        status=TERMINATED if classification.should_terminate else snapshot.status,
        security_score=score,
        violation_count=violations,
        event_count=snapshot.event_count + 1,
        type_counts=type_counts,
        severity_counts=severity_counts,
        risk_level=derive_risk_level(score, severity_counts),
    )


def missing_requirements(config, check) -> List[str]:
    """Capabilities the config demands that the system check did not confirm"""
    required = []
    if config.webcam_required:
        required.append("camera")
    if config.audio_monitoring:
        required.append("microphone")
    if config.screen_recording:
        required.append("screen")
    if config.browser_lockdown:
        required.append("browser")
    if check is None:
        return required
    return [name for name in required if not getattr(check, name, False)]


def recommend_decision(risk_level: str, security_score: int) -> str:
    if risk_level in ("high", "critical") or security_score < 70:
        return "flagged"
    return "approved"


def strongest_action(actions: Iterable[str]) -> str:
    return max(actions, key=ACTIONS.index, default="none")
