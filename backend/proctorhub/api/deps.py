from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..services.proctoring_service import ProctoringService
from ..services.recording_service import RecordingService
from ..services.reporting_service import ReportingService


def get_proctoring_service(db: Session = Depends(get_db)) -> ProctoringService:
    return ProctoringService(db)


def get_reporting_service(db: Session = Depends(get_db)) -> ReportingService:
    return ReportingService(db)


def get_recording_service(
    db: Session = Depends(get_db),
    sessions: ProctoringService = Depends(get_proctoring_service),
) -> RecordingService:
    return RecordingService(db, sessions)
