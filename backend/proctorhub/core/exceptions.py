from typing import Any, Dict, List, Optional


class ProctoringError(Exception):
    """Base class for policy violations reported back to the caller"""

    status_code: int = 400
    error_code: str = "proctoring_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.error_code, "message": self.message}
        payload.update(self.extra)
        return payload


class SessionNotFound(ProctoringError):
    status_code = 404
    error_code = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(f"Proctored session {session_id} not found", sessionId=session_id)


class DuplicateSession(ProctoringError):
    status_code = 409
    error_code = "duplicate_session"

    def __init__(self, existing_session_id: str):
        super().__init__(
            "A live proctored session already exists for this attempt",
            sessionId=existing_session_id,
        )


class InvalidSessionState(ProctoringError):
    status_code = 409
    error_code = "invalid_session_state"

    def __init__(self, operation: str, status: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot {operation} a session in status '{status}'",
            operation=operation,
            status=status,
        )


class SessionClosed(InvalidSessionState):
    error_code = "session_closed"

    def __init__(self, operation: str, status: str):
        super().__init__(operation, status, message=f"Session is {status}; {operation} is no longer accepted")


class SystemRequirementsNotMet(ProctoringError):
    status_code = 400
    error_code = "system_requirements_not_met"

    def __init__(self, missing: List[str]):
        super().__init__("System requirements not met", missing=missing)
        self.missing = missing


class AlreadyReviewed(ProctoringError):
    status_code = 409
    error_code = "already_reviewed"

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} has already been reviewed", sessionId=session_id)


class UnknownIncident(ProctoringError):
    status_code = 422
    error_code = "unknown_incident"

    def __init__(self, unknown: List[int]):
        super().__init__("Flagged incidents do not belong to this session", unknownIncidents=unknown)


class InvalidRecording(ProctoringError):
    status_code = 400
    error_code = "invalid_recording"


class DuplicateChunk(ProctoringError):
    status_code = 409
    error_code = "duplicate_chunk"

    def __init__(self, recording_type: str, sequence: int):
        super().__init__(
            f"Chunk {sequence} of {recording_type} recording already uploaded",
            recordingType=recording_type,
            chunkIndex=sequence,
        )
