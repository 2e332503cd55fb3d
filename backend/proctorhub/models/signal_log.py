from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from ..core.database import Base


class BiometricSample(Base):
    __tablename__ = "proctoring_biometric_samples"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("proctoring_sessions.id"), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False)
    face_detection = Column(JSON, nullable=True)
    eye_tracking = Column(JSON, nullable=True)
    environment_audio = Column(JSON, nullable=True)

    session = relationship("ProctoringSession", back_populates="biometric_samples")


class ScreenActivity(Base):
    __tablename__ = "proctoring_screen_activity"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("proctoring_sessions.id"), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False)
    action = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)

    session = relationship("ProctoringSession", back_populates="screen_activity_log")
