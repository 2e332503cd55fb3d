"""
Turns raw biometric samples and screen activity records into suspicious
activity signals for the classifier.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from ..schemas.proctoring import BiometricSampleRequest, ProctorConfig
from .risk_classifier import Signal


SCREEN_ACTION_SIGNALS = {
    "tab_switch": "tab_switch",
    "window_resize": "window_resize",
    "fullscreen_exit": "fullscreen_exit",
    "developer_tools": "developer_tools",
    "right_click": "right_click",
    "print_screen": "print_screen",
    "screen_capture": "screen_capture",
    "copy": "copy_paste",
    "paste": "copy_paste",
    "focus_lost": "window_blur",
    "key_combination": "keyboard_shortcut",
}


@dataclass(frozen=True)
class NoFaceRun:
    since: Optional[datetime] = None
    level: str = "none"


def signal_for_screen_action(action: str, details: Optional[str]) -> Optional[Signal]:
    signal_type = SCREEN_ACTION_SIGNALS.get(action)
    if signal_type is None:
        return None
    return Signal(type=signal_type, details=details or f"Detected {action} activity")


def _track_no_face(run: NoFaceRun, config: ProctorConfig, now: datetime) -> Tuple[Optional[Signal], NoFaceRun]:
    since = run.since or now
    elapsed = (now - since).total_seconds()

    if elapsed > config.no_face_escalation_seconds and run.level != "high":
        signal = Signal(
            type="no_face_detected",
            details=f"No face detected in webcam feed for {int(elapsed)}s",
            escalated=True,
        )
        return signal, NoFaceRun(since=since, level="high")

    if elapsed >= config.no_face_threshold_seconds and run.level == "none":
        signal = Signal(
            type="no_face_detected",
            details=f"No face detected in webcam feed for {int(elapsed)}s",
        )
        return signal, NoFaceRun(since=since, level="medium")

    return None, NoFaceRun(since=since, level=run.level)


def analyze_biometric_sample(
    sample: BiometricSampleRequest,
    config: ProctorConfig,
    run: NoFaceRun,
    now: datetime,
) -> Tuple[List[Signal], NoFaceRun]:
    """
    Signals raised by one biometric sample.

    A single frame without a face is not suspicious; only a run of samples
    without a face that lasts ``no_face_threshold_seconds`` is, and it is
    raised again, escalated, once the run exceeds ``no_face_escalation_seconds``.
    """
    signals: List[Signal] = []
    face = sample.face_detection

    if config.face_detection and face is not None:
        if face.detected:
            run = NoFaceRun()
        else:
            signal, run = _track_no_face(run, config, now)
            if signal:
                signals.append(signal)

        if face.multiple_faces:
            signals.append(Signal(type="multiple_faces", details="Multiple faces detected in webcam feed"))

    audio = sample.environment_audio
    if config.audio_monitoring and audio is not None and audio.multiple_voices:
        signals.append(Signal(type="multiple_voices", details="Multiple voices detected by microphone"))

    return signals, run
