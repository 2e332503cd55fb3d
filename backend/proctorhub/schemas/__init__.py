from .proctoring import (
    CustomRule,
    ProctorConfig,
    SystemCheck,
    InitializeSessionRequest,
    InitializeSessionResponse,
    StartSessionRequest,
    SystemCheckResponse,
    BiometricSampleRequest,
    ScreenActivityRequest,
    SuspiciousActivityRequest,
    SignalDecision,
    EndSessionRequest,
    ReviewRequest,
)
__all__ = [
    "CustomRule",
    "ProctorConfig",
    "SystemCheck",
    "InitializeSessionRequest",
    "InitializeSessionResponse",
    "StartSessionRequest",
    "SystemCheckResponse",
    "BiometricSampleRequest",
    "ScreenActivityRequest",
    "SuspiciousActivityRequest",
    "SignalDecision",
    "EndSessionRequest",
    "ReviewRequest",
]
