from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from ..core.database import Base


class ActivityEvent(Base):
    """One suspicious activity as it was classified when it arrived. Never updated."""
    __tablename__ = "proctoring_activity_events"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("proctoring_sessions.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    event_type = Column(String, nullable=False, index=True)
    severity = Column(String, nullable=False)
    automatic_action = Column(String, nullable=False, default="none")
    score_delta = Column(Integer, nullable=False, default=0)
    details = Column(Text, default="")
    event_metadata = Column(JSON, nullable=True)
    source = Column(String, nullable=False, default="client")
    timestamp = Column(DateTime, nullable=False)

    session = relationship("ProctoringSession", back_populates="events")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_activity_event_sequence"),
    )

    def __repr__(self):
        return f"<ActivityEvent #{self.sequence} {self.event_type} for session {self.session_id}>"
