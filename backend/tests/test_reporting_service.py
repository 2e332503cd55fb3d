import pytest

from proctorhub.core.exceptions import SessionNotFound
from proctorhub.schemas.proctoring import BiometricSampleRequest, FaceDetection, ScreenActivityRequest


def test_analytics_for_empty_range(reporting, clock):
    result = reporting.get_analytics_summary(now=clock.now)

    assert result["summary"] == {
        "totalSessions": 0,
        "completedSessions": 0,
        "terminatedSessions": 0,
        "flaggedSessions": 0,
        "averageSecurityScore": 100.0,
        "totalSuspiciousActivities": 0,
        "commonViolations": [],
    }
    assert result["riskDistribution"] == {"low": 0, "medium": 0, "high": 0, "critical": 0}
    assert result["timeframe"] == "7d"


def test_analytics_aggregates_sessions(service, reporting, clock, start_session):
    clean = start_session("assignment-1")
    service.end(clean, "exam_completed")

    cheated = start_session("assignment-1")
    service.report_suspicious_activity(cheated, "developer_tools")

    running = start_session("assignment-1")
    service.report_suspicious_activity(running, "tab_switch")

    start_session("assignment-2")

    result = reporting.get_analytics_summary("assignment-1", "all", now=clock.now)
    summary = result["summary"]

    assert summary["totalSessions"] == 3
    assert summary["completedSessions"] == 1
    assert summary["terminatedSessions"] == 1
    assert summary["flaggedSessions"] == 1
    assert summary["averageSecurityScore"] == 85.0
    assert summary["totalSuspiciousActivities"] == 2
    assert summary["commonViolations"] == [
        {"type": "developer_tools", "count": 1},
        {"type": "tab_switch", "count": 1},
    ]
    assert result["riskDistribution"] == {"low": 1, "medium": 1, "high": 0, "critical": 1}
    assert result["timeframe"] == "all"


def test_common_violations_sorted_by_frequency(service, reporting, clock, start_session):
    session_id = start_session(max_suspicious_activities=50, auto_terminate_on_critical=False)
    for signal_type in ["window_blur", "copy_paste", "window_blur", "tab_switch", "window_blur", "copy_paste"]:
        service.report_suspicious_activity(session_id, signal_type)

    violations = reporting.get_analytics_summary(now=clock.now)["summary"]["commonViolations"]

    assert violations == [
        {"type": "window_blur", "count": 3},
        {"type": "copy_paste", "count": 2},
        {"type": "tab_switch", "count": 1},
    ]


def test_review_overrides_recommended_decision(service, reporting, clock, start_session):
    session_id = start_session()
    service.report_suspicious_activity(session_id, "copy_paste")
    service.end(session_id)
    assert reporting.get_analytics_summary(now=clock.now)["summary"]["flaggedSessions"] == 1

    service.review(session_id, "faculty-1", "approved")

    assert reporting.get_analytics_summary(now=clock.now)["summary"]["flaggedSessions"] == 0


def test_timeframe_window(service, reporting, clock, start_session):
    start_session()
    clock.advance(2 * 24 * 3600)
    start_session()

    assert reporting.get_analytics_summary(timeframe="1d", now=clock.now)["summary"]["totalSessions"] == 1
    assert reporting.get_analytics_summary(timeframe="7d", now=clock.now)["summary"]["totalSessions"] == 2


def test_unknown_timeframe_falls_back_to_default(reporting, clock):
    assert reporting.get_analytics_summary(timeframe="forever", now=clock.now)["timeframe"] == "7d"


def test_live_monitoring_shows_active_sessions_only(service, reporting, clock, start_session):
    active = start_session("assignment-1", max_suspicious_activities=50)
    for _ in range(7):
        service.report_suspicious_activity(active, "window_blur")

    finished = start_session("assignment-1")
    service.end(finished)
    service.initialize("assignment-1", "student-waiting")

    clock.advance(120)
    result = reporting.get_live_monitoring("assignment-1", now=clock.now)

    assert result["activeSessions"] == 1
    entry = result["sessions"][0]
    assert entry["sessionId"] == active
    assert entry["duration"] == 120
    assert entry["securityScore"] == 86
    assert [e["sequence"] for e in entry["recentActivity"]] == [3, 4, 5, 6, 7]
    assert result["lastUpdated"] == clock.now.isoformat()


def test_live_monitoring_filters_by_assignment(reporting, clock, start_session):
    start_session("assignment-1")
    start_session("assignment-2")

    assert reporting.get_live_monitoring(now=clock.now)["activeSessions"] == 2
    assert reporting.get_live_monitoring("assignment-2", now=clock.now)["activeSessions"] == 1


def test_list_assignment_sessions_filters_and_pages(service, reporting, clock, start_session):
    ids = []
    for _ in range(3):
        ids.append(start_session("assignment-1"))
        clock.advance(60)
    service.report_suspicious_activity(ids[0], "copy_paste")
    service.end(ids[1])

    first_page = reporting.list_assignment_sessions("assignment-1", page=1, limit=2)
    assert first_page["totalSessions"] == 3
    assert first_page["totalPages"] == 2
    assert [s["sessionId"] for s in first_page["sessions"]] == [ids[2], ids[1]]

    second_page = reporting.list_assignment_sessions("assignment-1", page=2, limit=2)
    assert [s["sessionId"] for s in second_page["sessions"]] == [ids[0]]

    active = reporting.list_assignment_sessions("assignment-1", status="active")
    assert {s["sessionId"] for s in active["sessions"]} == {ids[0], ids[2]}

    risky = reporting.list_assignment_sessions("assignment-1", risk_level="high")
    assert [s["sessionId"] for s in risky["sessions"]] == [ids[0]]

    assert reporting.list_assignment_sessions("assignment-9")["totalPages"] == 0


def test_session_detail_includes_logs(service, reporting, clock, start_session):
    session_id = start_session()
    service.record_biometric_sample(session_id, BiometricSampleRequest(face_detection=FaceDetection(confidence=0.9)))
    service.record_screen_activity(session_id, ScreenActivityRequest(action="paste", details="pasted answer"))
    clock.advance(600)
    service.end(session_id)

    detail = reporting.get_session_detail(session_id)

    assert detail["status"] == "ended"
    assert detail["duration"] == 600
    assert detail["securityScore"] == 85
    assert detail["suspiciousActivityCount"] == 1
    assert detail["suspiciousActivities"][0]["type"] == "copy_paste"
    assert detail["suspiciousActivities"][0]["details"] == "pasted answer"
    assert detail["biometricData"][0]["faceDetection"]["confidence"] == 0.9
    assert detail["screenActivity"][0]["action"] == "paste"
    assert detail["recordingChunks"] == []


def test_session_detail_unknown_session(reporting):
    with pytest.raises(SessionNotFound):
        reporting.get_session_detail("proctor_nope")
