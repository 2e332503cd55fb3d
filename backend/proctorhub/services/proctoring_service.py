import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.exceptions import (
    DuplicateSession,
    SessionNotFound,
    SystemRequirementsNotMet,
    UnknownIncident,
)
from ..core.locks import SessionLockRegistry, session_locks
from ..models.activity_event import ActivityEvent
from ..models.proctoring_session import ProctoringSession
from ..models.signal_log import BiometricSample, ScreenActivity
from ..schemas.proctoring import (
    BiometricSampleRequest,
    ProctorConfig,
    ScreenActivityRequest,
    SignalDecision,
    SystemCheck,
)
from ..utils.timezone import get_utc_now
from . import session_machine as machine
from .risk_classifier import Classification, PolicyRule, Signal, TerminationPolicy, classify
from .signal_analysis import NoFaceRun, analyze_biometric_sample, signal_for_screen_action

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_session_id() -> str:
    return f"proctor_{uuid.uuid4().hex[:12]}"


def load_config(record: ProctoringSession) -> ProctorConfig:
    return ProctorConfig.model_validate(record.config)


def custom_rules(config: ProctorConfig) -> Dict[str, PolicyRule]:
    return {
        signal_type: PolicyRule(
            severity=rule.severity,
            score_delta=rule.score_delta,
            action=rule.action,
            escalate_at=rule.escalate_at,
            counts_as_violation=rule.counts_as_violation,
        )
        for signal_type, rule in config.custom_rules.items()
    }


def snapshot_of(record: ProctoringSession) -> machine.SessionSnapshot:
    return machine.SessionSnapshot(
        status=record.status,
        security_score=record.security_score,
        violation_count=record.violation_count,
        event_count=record.event_count,
        type_counts=dict(record.type_counts or {}),
        severity_counts=dict(record.severity_counts or {}),
        risk_level=record.risk_level,
    )


def _store_snapshot(record: ProctoringSession, snapshot: machine.SessionSnapshot):
    record.status = snapshot.status
    record.security_score = snapshot.security_score
    record.violation_count = snapshot.violation_count
    record.event_count = snapshot.event_count
    record.type_counts = dict(snapshot.type_counts)
    record.severity_counts = dict(snapshot.severity_counts)
    record.risk_level = snapshot.risk_level


class ProctoringService:
    """
    Write side of proctoring sessions.

    Every mutation of a session runs as one load-check-apply-commit unit under
    the session's lock. The row's version column catches writers in other
    processes; a stale write is rolled back and the whole unit is replayed.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = get_utc_now,
        locks: SessionLockRegistry = session_locks,
        max_retries: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.max_retries = max_retries or settings.session_write_retries

    def get_session(self, session_id: str) -> ProctoringSession:
        record = self.db.get(ProctoringSession, session_id, populate_existing=True)
        if record is None:
            raise SessionNotFound(session_id)
        return record

    def mutate(self, session_id: str, operation: Callable[[ProctoringSession], T]) -> T:
        with self.locks.hold(session_id):
            attempt = 0
            while True:
                attempt += 1
                record = self.get_session(session_id)
                try:
                    result = operation(record)
                    self.db.commit()
                    return result
                except StaleDataError:
                    self.db.rollback()
                    if attempt >= self.max_retries:
                        logger.error(f"Giving up on session {session_id} after {attempt} conflicting writes")
                        raise
                    logger.warning(f"Concurrent update of session {session_id}, retrying ({attempt})")
                except Exception:
                    self.db.rollback()
                    raise

    # lifecycle

    def initialize(
        self,
        assignment_id: str,
        student_id: str,
        config: Optional[ProctorConfig] = None,
        browser_info: Optional[Dict[str, Any]] = None,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> ProctoringSession:
        config = config or ProctorConfig()
        with self.locks.hold(f"attempt:{assignment_id}:{student_id}"):
            existing = self._live_session_for(assignment_id, student_id)
            if existing is not None:
                raise DuplicateSession(existing.id)

            snapshot = machine.initialize(machine.SessionSnapshot())
            record = ProctoringSession(
                id=new_session_id(),
                assignment_id=assignment_id,
                student_id=student_id,
                config=config.model_dump(by_alias=True),
                browser_info=browser_info or {},
                device_info=device_info or {},
                recordings={
                    "webcam": {"enabled": config.webcam_required, "chunks": 0, "totalDuration": 0.0},
                    "screen": {"enabled": config.screen_recording, "chunks": 0, "totalDuration": 0.0},
                    "audio": {"enabled": config.audio_monitoring, "chunks": 0, "totalDuration": 0.0},
                },
                created_at=self.clock(),
            )
            _store_snapshot(record, snapshot)
            self.db.add(record)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                existing = self._live_session_for(assignment_id, student_id)
                if existing is None:
                    raise
                raise DuplicateSession(existing.id)

        logger.info(f"Initialized proctored session {record.id} for student {student_id} on assignment {assignment_id}")
        return record

    def _live_session_for(self, assignment_id: str, student_id: str) -> Optional[ProctoringSession]:
        return self.db.query(ProctoringSession).filter(
            ProctoringSession.assignment_id == assignment_id,
            ProctoringSession.student_id == student_id,
            ProctoringSession.status.in_(machine.LIVE_STATUSES),
        ).first()

    def record_system_check(self, session_id: str, check: SystemCheck) -> List[str]:
        def operation(record: ProctoringSession) -> List[str]:
            machine.ensure_can_check_system(record.status)
            missing = machine.missing_requirements(load_config(record), check)
            record.system_check = {
                **check.model_dump(),
                "missing": missing,
                "checkedAt": self.clock().isoformat(),
            }
            return missing

        missing = self.mutate(session_id, operation)
        logger.info(f"System check for session {session_id}: missing={missing}")
        return missing

    def start(self, session_id: str, system_check: Optional[SystemCheck] = None) -> ProctoringSession:
        def operation(record: ProctoringSession) -> ProctoringSession:
            snapshot = machine.start(snapshot_of(record))

            check = system_check
            if check is None and record.system_check:
                check = SystemCheck.model_validate(record.system_check)
            missing = machine.missing_requirements(load_config(record), check)
            if missing:
                raise SystemRequirementsNotMet(missing)

            now = self.clock()
            if system_check is not None:
                record.system_check = {**system_check.model_dump(), "missing": [], "checkedAt": now.isoformat()}
            _store_snapshot(record, snapshot)
            record.start_time = now
            return record

        record = self.mutate(session_id, operation)
        logger.info(f"Proctored session {session_id} started")
        return record

    def end(self, session_id: str, reason: Optional[str] = None) -> ProctoringSession:
        def operation(record: ProctoringSession) -> ProctoringSession:
            snapshot = machine.end(snapshot_of(record), reason)
            _store_snapshot(record, snapshot)
            self._close(record, reason or "exam_completed")
            return record

        record = self.mutate(session_id, operation)
        logger.info(f"Proctored session {session_id} {record.status} ({record.end_reason})")
        return record

    def _close(self, record: ProctoringSession, reason: str):
        record.end_time = self.clock()
        record.end_reason = reason
        record.no_face_since = None
        record.recommended_decision = machine.recommend_decision(record.risk_level, record.security_score)

    def review(
        self,
        session_id: str,
        reviewer_id: str,
        decision: str,
        notes: Optional[str] = None,
        overall_rating: Optional[int] = None,
        flagged_incidents: Optional[List[int]] = None,
    ) -> ProctoringSession:
        flagged_incidents = list(flagged_incidents or [])

        def operation(record: ProctoringSession) -> ProctoringSession:
            machine.ensure_can_review(record.status, record.id, record.final_decision is not None)

            if flagged_incidents:
                known = {
                    sequence for (sequence,) in self.db.query(ActivityEvent.sequence).filter(
                        ActivityEvent.session_id == record.id
                    )
                }
                unknown = sorted(set(flagged_incidents) - known)
                if unknown:
                    raise UnknownIncident(unknown)

            record.proctor_review = {
                "reviewerId": reviewer_id,
                "reviewedAt": self.clock().isoformat(),
                "decision": decision,
                "notes": notes,
                "flaggedIncidents": flagged_incidents,
                "overallRating": overall_rating,
            }
            record.final_decision = decision
            return record

        record = self.mutate(session_id, operation)
        logger.info(f"Session {session_id} reviewed by {reviewer_id}: {decision}")
        return record

    # signal ingestion

    def record_biometric_sample(self, session_id: str, sample: BiometricSampleRequest) -> SignalDecision:
        def operation(record: ProctoringSession) -> SignalDecision:
            machine.ensure_accepts_signals(record.status, "record biometric data for")
            now = self.clock()
            self.db.add(BiometricSample(
                session_id=record.id,
                timestamp=now,
                face_detection=sample.face_detection.model_dump(by_alias=True) if sample.face_detection else None,
                eye_tracking=sample.eye_tracking.model_dump(by_alias=True) if sample.eye_tracking else None,
                environment_audio=sample.environment_audio.model_dump(by_alias=True) if sample.environment_audio else None,
            ))

            run = NoFaceRun(since=record.no_face_since, level=record.no_face_level or "none")
            signals, run = analyze_biometric_sample(sample, load_config(record), run, now)
            record.no_face_since = run.since
            record.no_face_level = run.level

            return self._ingest(record, signals, source="biometric", now=now)

        return self.mutate(session_id, operation)

    def record_screen_activity(self, session_id: str, activity: ScreenActivityRequest) -> SignalDecision:
        def operation(record: ProctoringSession) -> SignalDecision:
            machine.ensure_accepts_signals(record.status, "record screen activity for")
            now = self.clock()
            self.db.add(ScreenActivity(
                session_id=record.id,
                timestamp=now,
                action=activity.action,
                details=activity.details,
                duration=activity.duration,
            ))

            signal = signal_for_screen_action(activity.action, activity.details)
            return self._ingest(record, [signal] if signal else [], source="screen", now=now)

        return self.mutate(session_id, operation)

    def report_suspicious_activity(
        self,
        session_id: str,
        activity_type: str,
        details: str = "",
        severity_hint: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SignalDecision:
        metadata = dict(metadata or {})
        if severity_hint:
            metadata["clientSeverity"] = severity_hint

        def operation(record: ProctoringSession) -> SignalDecision:
            machine.ensure_accepts_signals(record.status, "report suspicious activity for")
            signal = Signal(type=activity_type, details=details)
            return self._ingest(record, [signal], source="client", now=self.clock(), metadata=metadata or None)

        return self.mutate(session_id, operation)

    def _ingest(
        self,
        record: ProctoringSession,
        signals: List[Signal],
        source: str,
        now: datetime,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SignalDecision:
        classifications: List[Classification] = []
        for signal in signals:
            # an earlier signal of the same request may already have terminated the session
            if record.status != machine.ACTIVE:
                break
            classifications.append(self._append_event(record, signal, source, now, metadata))

        return SignalDecision(
            action=machine.strongest_action(c.action for c in classifications),
            should_terminate=any(c.should_terminate for c in classifications),
            security_score=record.security_score,
            risk_level=record.risk_level,
            status=record.status,
            events_recorded=len(classifications),
        )

    def _append_event(
        self,
        record: ProctoringSession,
        signal: Signal,
        source: str,
        now: datetime,
        metadata: Optional[Dict[str, Any]],
    ) -> Classification:
        config = load_config(record)
        snapshot = snapshot_of(record)
        policy = TerminationPolicy(
            max_suspicious_activities=config.max_suspicious_activities,
            auto_terminate_on_critical=config.auto_terminate_on_critical,
        )
        classification = classify(snapshot.history(), signal, policy, extra_rules=custom_rules(config))
        updated = machine.apply_classification(snapshot, signal.type, classification)

        self.db.add(ActivityEvent(
            session_id=record.id,
            sequence=updated.event_count,
            event_type=signal.type,
            severity=classification.severity,
            automatic_action=classification.action,
            score_delta=classification.score_delta,
            details=signal.details,
            event_metadata=metadata,
            source=source,
            timestamp=now,
        ))
        _store_snapshot(record, updated)

        if classification.should_terminate:
            self._close(record, classification.termination_reason)
            logger.warning(
                f"Session {record.id} terminated automatically ({classification.termination_reason}) "
                f"after {signal.type}; score={record.security_score}"
            )
        elif classification.action == "flag":
            logger.info(f"Session {record.id} flagged for {signal.type} (severity {classification.severity})")

        return classification
