from sqlalchemy import Column, String, DateTime, Integer, JSON, Index, text
from sqlalchemy.orm import relationship
from ..core.database import Base
from ..utils.timezone import get_utc_now


class ProctoringSession(Base):
    __tablename__ = "proctoring_sessions"

    id = Column(String, primary_key=True, index=True)
    assignment_id = Column(String, nullable=False, index=True)
    student_id = Column(String, nullable=False, index=True)

    config = Column(JSON, nullable=False)
    browser_info = Column(JSON, default=dict)
    device_info = Column(JSON, default=dict)
    system_check = Column(JSON, nullable=True)

    status = Column(String, nullable=False, default="initialized", index=True)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    end_reason = Column(String, nullable=True)

    security_score = Column(Integer, nullable=False, default=100)
    risk_level = Column(String, nullable=False, default="low", index=True)
    violation_count = Column(Integer, nullable=False, default=0)
    event_count = Column(Integer, nullable=False, default=0)
    type_counts = Column(JSON, default=dict)
    severity_counts = Column(JSON, default=dict)

    no_face_since = Column(DateTime, nullable=True)
    # "none" | "medium" | "high": highest no-face event emitted in the current run
    no_face_level = Column(String, nullable=False, default="none")

    recordings = Column(JSON, default=dict)

    recommended_decision = Column(String, nullable=True)
    final_decision = Column(String, nullable=True, index=True)
    proctor_review = Column(JSON, nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=get_utc_now, index=True)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    events = relationship(
        "ActivityEvent",
        back_populates="session",
        order_by="ActivityEvent.sequence",
        cascade="all, delete-orphan",
    )
    biometric_samples = relationship(
        "BiometricSample",
        back_populates="session",
        order_by="BiometricSample.id",
        cascade="all, delete-orphan",
    )
    screen_activity_log = relationship(
        "ScreenActivity",
        back_populates="session",
        order_by="ScreenActivity.id",
        cascade="all, delete-orphan",
    )
    recording_chunks = relationship(
        "RecordingChunk",
        back_populates="session",
        order_by="RecordingChunk.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_proctoring_sessions_attempt", "assignment_id", "student_id"),
        # at most one initialized/active session per attempt
        Index(
            "uq_proctoring_sessions_live_attempt",
            "assignment_id",
            "student_id",
            unique=True,
            sqlite_where=text("status IN ('initialized', 'active')"),
            postgresql_where=text("status IN ('initialized', 'active')"),
        ),
    )

    def __repr__(self):
        return f"<ProctoringSession {self.id} {self.status} score={self.security_score}>"
