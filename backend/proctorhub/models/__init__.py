from .proctoring_session import ProctoringSession
from .activity_event import ActivityEvent
from .signal_log import BiometricSample, ScreenActivity
from .recording_chunk import RecordingChunk

__all__ = [
    "ProctoringSession",
    "ActivityEvent",
    "BiometricSample",
    "ScreenActivity",
    "RecordingChunk",
]
