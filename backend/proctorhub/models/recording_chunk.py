from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, Boolean, BigInteger, UniqueConstraint
from sqlalchemy.orm import relationship
from ..core.database import Base
from ..utils.timezone import get_utc_now


class RecordingChunk(Base):
    __tablename__ = "proctoring_recording_chunks"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("proctoring_sessions.id"), nullable=False, index=True)
    recording_type = Column(String, nullable=False)
    sequence = Column(Integer, nullable=False)
    file_path = Column(String, nullable=False)
    content_type = Column(String, nullable=True)
    size_bytes = Column(BigInteger, nullable=False, default=0)
    duration = Column(Float, nullable=False, default=0.0)
    checksum = Column(String, nullable=True)
    processed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=get_utc_now)

    session = relationship("ProctoringSession", back_populates="recording_chunks")

    __table_args__ = (
        UniqueConstraint("session_id", "recording_type", "sequence", name="uq_recording_chunk"),
    )
