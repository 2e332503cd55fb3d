import pytest

from proctorhub.core.exceptions import AlreadyReviewed, InvalidSessionState, SessionClosed
from proctorhub.schemas.proctoring import ProctorConfig, SystemCheck
from proctorhub.services import session_machine as machine
from proctorhub.services.risk_classifier import Signal, TerminationPolicy, classify


def active_snapshot(**kwargs):
    return machine.SessionSnapshot(status=machine.ACTIVE, **kwargs)


def fold(snapshot, signal_types, policy=TerminationPolicy(100, False)):
    for signal_type in signal_types:
        classification = classify(snapshot.history(), Signal(type=signal_type), policy)
        snapshot = machine.apply_classification(snapshot, signal_type, classification)
    return snapshot


def test_lifecycle_happy_path():
    snapshot = machine.initialize(machine.SessionSnapshot())
    assert snapshot.status == machine.INITIALIZED

    snapshot = machine.start(snapshot)
    assert snapshot.status == machine.ACTIVE

    snapshot = machine.end(snapshot, "exam_completed")
    assert snapshot.status == machine.ENDED
    assert snapshot.is_terminal


@pytest.mark.parametrize("reason,status", [
    ("exam_completed", machine.ENDED),
    ("time_expired", machine.ENDED),
    (None, machine.ENDED),
    ("terminated", machine.TERMINATED),
    ("forced", machine.TERMINATED),
    ("critical_violation", machine.TERMINATED),
    ("violation_limit", machine.TERMINATED),
])
def test_end_status_for_reason(reason, status):
    assert machine.end_status_for(reason) == status


def test_start_twice_is_rejected():
    with pytest.raises(InvalidSessionState) as exc_info:
        machine.start(active_snapshot())
    assert not isinstance(exc_info.value, SessionClosed)


def test_start_after_end_reports_closed():
    with pytest.raises(SessionClosed):
        machine.start(machine.SessionSnapshot(status=machine.ENDED))


def test_signals_rejected_before_start():
    with pytest.raises(InvalidSessionState) as exc_info:
        machine.ensure_accepts_signals(machine.INITIALIZED)
    assert not isinstance(exc_info.value, SessionClosed)


@pytest.mark.parametrize("status", [machine.ENDED, machine.TERMINATED])
def test_signals_rejected_after_close(status):
    with pytest.raises(SessionClosed):
        machine.ensure_accepts_signals(status)


def test_end_requires_active():
    with pytest.raises(InvalidSessionState):
        machine.end(machine.SessionSnapshot(status=machine.INITIALIZED), "exam_completed")
    with pytest.raises(SessionClosed):
        machine.end(machine.SessionSnapshot(status=machine.TERMINATED), "exam_completed")


def test_review_guard():
    with pytest.raises(InvalidSessionState):
        machine.ensure_can_review(machine.ACTIVE, "s1", already_reviewed=False)
    with pytest.raises(AlreadyReviewed):
        machine.ensure_can_review(machine.ENDED, "s1", already_reviewed=True)
    machine.ensure_can_review(machine.TERMINATED, "s1", already_reviewed=False)


def test_apply_classification_updates_aggregates():
    snapshot = fold(active_snapshot(), ["tab_switch", "copy_paste", "telepathy"])

    assert snapshot.security_score == 80
    assert snapshot.violation_count == 2
    assert snapshot.event_count == 3
    assert snapshot.type_counts == {"tab_switch": 1, "copy_paste": 1, "telepathy": 1}
    assert snapshot.severity_counts == {"medium": 1, "high": 1, "low": 1}
    assert snapshot.risk_level == "high"
    assert snapshot.status == machine.ACTIVE


def test_score_is_monotonic_and_floored():
    snapshot = active_snapshot()
    scores = [snapshot.security_score]
    for signal_type in ["developer_tools", "copy_paste", "tab_switch", "screen_share", "developer_tools", "copy_paste"]:
        snapshot = fold(snapshot, [signal_type])
        scores.append(snapshot.security_score)

    assert scores == sorted(scores, reverse=True)
    assert scores[-1] == 0
    assert snapshot.risk_level == "critical"


def test_terminating_classification_closes_snapshot():
    policy = TerminationPolicy(max_suspicious_activities=1)
    snapshot = fold(active_snapshot(), ["tab_switch"], policy)

    assert snapshot.status == machine.TERMINATED
    assert snapshot.event_count == 1


def test_apply_classification_rejects_closed_snapshot():
    snapshot = machine.SessionSnapshot(status=machine.ENDED)
    classification = classify(snapshot.history(), Signal(type="tab_switch"), TerminationPolicy())

    with pytest.raises(SessionClosed):
        machine.apply_classification(snapshot, "tab_switch", classification)


def test_missing_requirements_follow_config():
    config = ProctorConfig(audio_monitoring=True, browser_lockdown=False)

    assert machine.missing_requirements(config, None) == ["camera", "microphone", "screen"]
    assert machine.missing_requirements(config, SystemCheck(camera=True, screen=True)) == ["microphone"]
    assert machine.missing_requirements(config, SystemCheck(camera=True, microphone=True, screen=True)) == []


@pytest.mark.parametrize("risk,score,decision", [
    ("low", 100, "approved"),
    ("medium", 85, "approved"),
    ("medium", 69, "flagged"),
    ("high", 80, "flagged"),
    ("critical", 90, "flagged"),
])
def test_recommend_decision(risk, score, decision):
    assert machine.recommend_decision(risk, score) == decision


def test_strongest_action():
    assert machine.strongest_action([]) == "none"
    assert machine.strongest_action(["warning", "flag", "none"]) == "flag"
    assert machine.strongest_action(["flag", "terminate"]) == "terminate"
