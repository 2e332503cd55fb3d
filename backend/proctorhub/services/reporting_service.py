import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import SessionNotFound
from ..models.activity_event import ActivityEvent
from ..models.proctoring_session import ProctoringSession
from ..models.recording_chunk import RecordingChunk
from ..models.signal_log import BiometricSample, ScreenActivity
from ..utils.timezone import get_utc_now, seconds_between
from .risk_classifier import SEVERITIES
from .session_machine import ACTIVE, ENDED, TERMINAL_STATUSES, TERMINATED


TIMEFRAMES = {
    "1d": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}
DEFAULT_TIMEFRAME = "7d"

FLAGGED_DECISIONS = ("flagged", "disqualified")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_event(event: ActivityEvent) -> Dict[str, Any]:
    return {
        "sequence": event.sequence,
        "type": event.event_type,
        "severity": event.severity,
        "automaticAction": event.automatic_action,
        "scoreDelta": event.score_delta,
        "details": event.details,
        "metadata": event.event_metadata,
        "source": event.source,
        "timestamp": _iso(event.timestamp),
    }


def serialize_biometric_sample(sample: BiometricSample) -> Dict[str, Any]:
    return {
        "timestamp": _iso(sample.timestamp),
        "faceDetection": sample.face_detection,
        "eyeTracking": sample.eye_tracking,
        "environmentAudio": sample.environment_audio,
    }


def serialize_screen_activity(activity: ScreenActivity) -> Dict[str, Any]:
    return {
        "timestamp": _iso(activity.timestamp),
        "action": activity.action,
        "details": activity.details,
        "duration": activity.duration,
    }


def serialize_chunk(chunk: RecordingChunk) -> Dict[str, Any]:
    return {
        "recordingType": chunk.recording_type,
        "chunkIndex": chunk.sequence,
        "sizeBytes": chunk.size_bytes,
        "duration": chunk.duration,
        "contentType": chunk.content_type,
        "checksum": chunk.checksum,
        "processed": chunk.processed,
        "uploadedAt": _iso(chunk.created_at),
    }


def session_duration(record: ProctoringSession, now: Optional[datetime] = None) -> Optional[int]:
    """Seconds between start and end; for a running session, between start and ``now``"""
    if record.start_time is None:
        return None
    if record.end_time is not None:
        return seconds_between(record.start_time, record.end_time)
    if now is not None and record.status == ACTIVE:
        return seconds_between(record.start_time, now)
    return None


def serialize_session(record: ProctoringSession) -> Dict[str, Any]:
    return {
        "sessionId": record.id,
        "assignmentId": record.assignment_id,
        "studentId": record.student_id,
        "status": record.status,
        "config": record.config,
        "browserInfo": record.browser_info,
        "deviceInfo": record.device_info,
        "systemCheck": record.system_check,
        "startTime": _iso(record.start_time),
        "endTime": _iso(record.end_time),
        "endReason": record.end_reason,
        "duration": session_duration(record),
        "securityScore": record.security_score,
        "riskLevel": record.risk_level,
        "violationCount": record.violation_count,
        "suspiciousActivityCount": record.event_count,
        "recordings": record.recordings,
        "recommendedDecision": record.recommended_decision,
        "finalDecision": record.final_decision,
        "proctorReview": record.proctor_review,
        "createdAt": _iso(record.created_at),
        "updatedAt": _iso(record.updated_at),
    }


class ReportingService:
    """Read-only projections over proctoring sessions for faculty dashboards"""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, session_id: str) -> ProctoringSession:
        record = self.db.get(ProctoringSession, session_id)
        if record is None:
            raise SessionNotFound(session_id)
        return record

    def get_session_detail(self, session_id: str) -> Dict[str, Any]:
        record = self._get(session_id)
        detail = serialize_session(record)
        detail["suspiciousActivities"] = [serialize_event(e) for e in record.events]
        detail["biometricData"] = [serialize_biometric_sample(s) for s in record.biometric_samples]
        detail["screenActivity"] = [serialize_screen_activity(a) for a in record.screen_activity_log]
        detail["recordingChunks"] = [serialize_chunk(c) for c in record.recording_chunks]
        return detail

    def _recent_events(self, session_id: str, limit: int) -> List[ActivityEvent]:
        events = self.db.query(ActivityEvent).filter(
            ActivityEvent.session_id == session_id
        ).order_by(ActivityEvent.sequence.desc()).limit(limit).all()
        return list(reversed(events))

    def get_live_monitoring(self, assignment_id: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or get_utc_now()
        query = self.db.query(ProctoringSession).filter(ProctoringSession.status == ACTIVE)
        if assignment_id:
            query = query.filter(ProctoringSession.assignment_id == assignment_id)

        sessions = []
        for record in query.order_by(ProctoringSession.start_time.desc()).all():
            entry = serialize_session(record)
            entry["duration"] = session_duration(record, now)
            entry["recentActivity"] = [
                serialize_event(e) for e in self._recent_events(record.id, settings.live_recent_activity_limit)
            ]
            sessions.append(entry)

        return {
            "activeSessions": len(sessions),
            "sessions": sessions,
            "lastUpdated": now.isoformat(),
        }

    def list_assignment_sessions(
        self,
        assignment_id: str,
        status: Optional[str] = None,
        risk_level: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = self.db.query(ProctoringSession).filter(ProctoringSession.assignment_id == assignment_id)
        if status:
            query = query.filter(ProctoringSession.status == status)
        if risk_level:
            query = query.filter(ProctoringSession.risk_level == risk_level)

        total = query.count()
        records = query.order_by(
            ProctoringSession.start_time.desc().nulls_last(),
            ProctoringSession.created_at.desc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "sessions": [serialize_session(r) for r in records],
            "totalSessions": total,
            "currentPage": page,
            "totalPages": math.ceil(total / limit) if total else 0,
        }

    def get_analytics_summary(
        self,
        assignment_id: Optional[str] = None,
        timeframe: str = DEFAULT_TIMEFRAME,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or get_utc_now()
        if timeframe not in TIMEFRAMES:
            timeframe = DEFAULT_TIMEFRAME

        filters = []
        if TIMEFRAMES[timeframe] is not None:
            filters.append(ProctoringSession.created_at >= now - TIMEFRAMES[timeframe])
        if assignment_id:
            filters.append(ProctoringSession.assignment_id == assignment_id)

        effective_decision = func.coalesce(ProctoringSession.final_decision, ProctoringSession.recommended_decision)
        terminal = ProctoringSession.status.in_(TERMINAL_STATUSES)
        totals = self.db.query(
            func.count(ProctoringSession.id),
            func.sum(case((ProctoringSession.status == ENDED, 1), else_=0)),
            func.sum(case((ProctoringSession.status == TERMINATED, 1), else_=0)),
            func.sum(case((effective_decision.in_(FLAGGED_DECISIONS), 1), else_=0)),
            func.avg(case((terminal, ProctoringSession.security_score), else_=None)),
            func.sum(ProctoringSession.event_count),
        ).filter(*filters).one()

        total, completed, terminated, flagged, average, activities = totals

        violation_rows = self.db.query(
            ActivityEvent.event_type, func.count(ActivityEvent.id)
        ).join(ProctoringSession, ActivityEvent.session_id == ProctoringSession.id).filter(
            *filters
        ).group_by(ActivityEvent.event_type).all()
        common_violations = [
            {"type": event_type, "count": count}
            for event_type, count in sorted(violation_rows, key=lambda row: (-row[1], row[0]))
        ]

        risk_distribution = {level: 0 for level in SEVERITIES}
        for level, count in self.db.query(
            ProctoringSession.risk_level, func.count(ProctoringSession.id)
        ).filter(*filters).group_by(ProctoringSession.risk_level).all():
            risk_distribution[level] = count

        return {
            "summary": {
                "totalSessions": total or 0,
                "completedSessions": completed or 0,
                "terminatedSessions": terminated or 0,
                "flaggedSessions": flagged or 0,
                "averageSecurityScore": round(float(average), 2) if average is not None else 100.0,
                "totalSuspiciousActivities": activities or 0,
                "commonViolations": common_violations,
            },
            "riskDistribution": risk_distribution,
            "timeframe": timeframe,
            "generatedAt": now.isoformat(),
        }
