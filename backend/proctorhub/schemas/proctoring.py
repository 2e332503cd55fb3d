from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal


class CamelModel(BaseModel):
    """Request/response bodies use the browser client's camelCase names"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CustomRule(CamelModel):
    """Per-assessment policy entry for a signal type"""
    severity: Literal["low", "medium", "high", "critical"]
    score_delta: int = Field(0, le=0)
    action: Literal["none", "warning", "flag"] = "warning"
    escalate_at: Optional[int] = Field(None, ge=1)
    counts_as_violation: bool = True


class ProctorConfig(CamelModel):
    webcam_required: bool = True
    screen_recording: bool = True
    audio_monitoring: bool = False
    face_detection: bool = True
    eye_tracking: bool = False
    browser_lockdown: bool = True
    prevent_copy_paste: bool = True
    prevent_right_click: bool = True
    prevent_tab_switch: bool = True
    allow_calculator: bool = False
    allow_notes: bool = False
    max_suspicious_activities: int = Field(5, ge=1)
    auto_terminate_on_critical: bool = True
    recording_quality: Literal["low", "medium", "high"] = "medium"
    monitoring_interval: int = Field(5000, ge=250)
    no_face_threshold_seconds: int = Field(5, ge=0)
    no_face_escalation_seconds: int = Field(30, ge=0)
    # signal type -> rule, overriding or extending the built-in policy table
    custom_rules: Dict[str, CustomRule] = Field(default_factory=dict)


class SystemCheck(CamelModel):
    camera: bool = False
    microphone: bool = False
    screen: bool = False
    browser: bool = False


class InitializeSessionRequest(CamelModel):
    assignment_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    proctor_config: ProctorConfig = Field(default_factory=ProctorConfig)
    browser_info: Dict[str, Any] = Field(default_factory=dict)
    device_info: Dict[str, Any] = Field(default_factory=dict)


class InitializeSessionResponse(CamelModel):
    session_id: str
    config: Dict[str, Any]
    status: str
    message: str = "Proctored session initialized successfully"


class StartSessionRequest(CamelModel):
    system_check: Optional[SystemCheck] = None


class SystemCheckResponse(CamelModel):
    session_id: str
    passed: bool
    missing: List[str]


class FaceDetection(CamelModel):
    detected: bool = True
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    multiple_faces: bool = False
    face_bounds: Optional[Dict[str, float]] = None


class EyeTracking(CamelModel):
    gaze_direction: Optional[str] = None
    look_away_duration: Optional[float] = None


class EnvironmentAudio(CamelModel):
    detected: bool = False
    suspicious_noises: bool = False
    multiple_voices: bool = False


class BiometricSampleRequest(CamelModel):
    face_detection: Optional[FaceDetection] = None
    eye_tracking: Optional[EyeTracking] = None
    environment_audio: Optional[EnvironmentAudio] = None


class ScreenActivityRequest(CamelModel):
    action: str = Field(..., min_length=1, max_length=64)
    details: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)


class SuspiciousActivityRequest(CamelModel):
    type: str = Field(..., min_length=1, max_length=64)
    details: str = ""
    # advisory only; the server classifies
    severity: Optional[Literal["low", "medium", "high", "critical"]] = None
    metadata: Optional[Dict[str, Any]] = None


class SignalDecision(CamelModel):
    action: str
    should_terminate: bool
    security_score: int
    risk_level: str
    status: str
    events_recorded: int


class EndSessionRequest(CamelModel):
    reason: str = "exam_completed"


class ReviewRequest(CamelModel):
    reviewer_id: str = Field(..., min_length=1)
    decision: Literal["approved", "flagged", "disqualified", "needs_review"]
    notes: Optional[str] = None
    overall_rating: Optional[int] = Field(None, ge=1, le=10)
    flagged_incidents: List[int] = Field(default_factory=list)
