from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool
from typing import Optional, Dict, Any
import logging

from ....api.deps import get_proctoring_service, get_reporting_service
from ....core.cache import acached
from ....core.database import SessionLocal
from ....schemas.proctoring import (
    BiometricSampleRequest,
    EndSessionRequest,
    InitializeSessionRequest,
    InitializeSessionResponse,
    ReviewRequest,
    ScreenActivityRequest,
    SignalDecision,
    StartSessionRequest,
    SuspiciousActivityRequest,
    SystemCheck,
    SystemCheckResponse,
)
from ....services.proctoring_service import ProctoringService
from ....services.reporting_service import ReportingService, session_duration

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sessions/initialize", response_model=InitializeSessionResponse, status_code=201)
def initialize_session(
    payload: InitializeSessionRequest,
    service: ProctoringService = Depends(get_proctoring_service),
):
    """Create the proctored session for one attempt"""
    record = service.initialize(
        assignment_id=payload.assignment_id,
        student_id=payload.student_id,
        config=payload.proctor_config,
        browser_info=payload.browser_info,
        device_info=payload.device_info,
    )
    return InitializeSessionResponse(session_id=record.id, config=record.config, status=record.status)


@router.post("/sessions/{session_id}/system-check", response_model=SystemCheckResponse)
def record_system_check(
    session_id: str,
    payload: SystemCheck,
    service: ProctoringService = Depends(get_proctoring_service),
):
    missing = service.record_system_check(session_id, payload)
    return SystemCheckResponse(session_id=session_id, passed=not missing, missing=missing)


@router.put("/sessions/{session_id}/start")
def start_session(
    session_id: str,
    payload: Optional[StartSessionRequest] = None,
    service: ProctoringService = Depends(get_proctoring_service),
) -> Dict[str, Any]:
    """Start the session; without a body the last recorded system check is used"""
    record = service.start(session_id, payload.system_check if payload else None)
    return {
        "message": "Proctored session started successfully",
        "sessionId": record.id,
        "status": record.status,
        "startTime": record.start_time.isoformat(),
    }


@router.post("/sessions/{session_id}/biometric-data", response_model=SignalDecision)
def record_biometric_data(
    session_id: str,
    payload: BiometricSampleRequest,
    service: ProctoringService = Depends(get_proctoring_service),
):
    return service.record_biometric_sample(session_id, payload)


@router.post("/sessions/{session_id}/screen-activity", response_model=SignalDecision)
def record_screen_activity(
    session_id: str,
    payload: ScreenActivityRequest,
    service: ProctoringService = Depends(get_proctoring_service),
):
    return service.record_screen_activity(session_id, payload)


@router.post("/sessions/{session_id}/suspicious-activity", response_model=SignalDecision)
def report_suspicious_activity(
    session_id: str,
    payload: SuspiciousActivityRequest,
    service: ProctoringService = Depends(get_proctoring_service),
):
    """
    Record a client-detected suspicious activity.

    The severity the client sends is kept for the record but the stored
    severity and the returned action come from the server-side policy.
    """
    return service.report_suspicious_activity(
        session_id,
        activity_type=payload.type,
        details=payload.details,
        severity_hint=payload.severity,
        metadata=payload.metadata,
    )


@router.put("/sessions/{session_id}/end")
def end_session(
    session_id: str,
    payload: EndSessionRequest,
    service: ProctoringService = Depends(get_proctoring_service),
) -> Dict[str, Any]:
    record = service.end(session_id, payload.reason)
    return {
        "message": "Proctored session ended successfully",
        "sessionId": record.id,
        "status": record.status,
        "duration": session_duration(record),
        "recommendedDecision": record.recommended_decision,
        "riskLevel": record.risk_level,
        "securityScore": record.security_score,
        "suspiciousActivities": record.event_count,
    }


@router.post("/sessions/{session_id}/review")
def submit_review(
    session_id: str,
    payload: ReviewRequest,
    service: ProctoringService = Depends(get_proctoring_service),
) -> Dict[str, Any]:
    record = service.review(
        session_id,
        reviewer_id=payload.reviewer_id,
        decision=payload.decision,
        notes=payload.notes,
        overall_rating=payload.overall_rating,
        flagged_incidents=payload.flagged_incidents,
    )
    return {
        "message": "Proctor review submitted successfully",
        "sessionId": record.id,
        "finalDecision": record.final_decision,
        "proctorReview": record.proctor_review,
    }


@router.get("/sessions/live/monitoring")
def get_live_monitoring(
    assignment_id: Optional[str] = Query(None, alias="assignmentId"),
    reporting: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    """Active sessions for the faculty live view; safe to poll"""
    return reporting.get_live_monitoring(assignment_id)


@router.get("/sessions/{session_id}")
def get_session(
    session_id: str,
    reporting: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    return reporting.get_session_detail(session_id)


@router.get("/assignments/{assignment_id}/sessions")
def get_assignment_sessions(
    assignment_id: str,
    status: Optional[str] = None,
    risk_level: Optional[str] = Query(None, alias="riskLevel"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    reporting: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    return reporting.list_assignment_sessions(
        assignment_id, status=status, risk_level=risk_level, page=page, limit=limit
    )


def _analytics_summary(assignment_id: Optional[str], timeframe: str) -> Dict[str, Any]:
    db = SessionLocal()
    try:
        return ReportingService(db).get_analytics_summary(assignment_id, timeframe)
    finally:
        db.close()


@acached("analytics_cache_ttl", key_prefix="proctoring:analytics")
async def cached_analytics_summary(assignment_id: Optional[str], timeframe: str) -> Dict[str, Any]:
    return await run_in_threadpool(_analytics_summary, assignment_id, timeframe)


@router.get("/analytics/summary")
async def get_analytics_summary(
    assignment_id: Optional[str] = Query(None, alias="assignmentId"),
    timeframe: str = "7d",
) -> Dict[str, Any]:
    return await cached_analytics_summary(assignment_id, timeframe)
