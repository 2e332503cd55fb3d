"""
Where uploaded recording chunks live on disk
"""
import os
import uuid

from ..core.config import settings


CONTENT_TYPE_EXTENSIONS = {
    "video/webm": "webm",
    "audio/webm": "webm",
    "video/mp4": "mp4",
}


def ensure_recordings_directory(session_id: str) -> str:
    """
    Creates the per-session recordings directory and returns its absolute path
    """
    full_dir = os.path.join(settings.recordings_dir, session_id)
    os.makedirs(full_dir, exist_ok=True)
    return full_dir


def chunk_file_path(session_id: str, recording_type: str, sequence: int, content_type: str) -> str:
    extension = CONTENT_TYPE_EXTENSIONS.get(content_type, "bin")
    filename = f"{session_id}_{recording_type}_{sequence:05d}.{extension}"
    return os.path.join(ensure_recordings_directory(session_id), filename)


def temporary_upload_path(session_id: str) -> str:
    return os.path.join(ensure_recordings_directory(session_id), f".upload_{uuid.uuid4().hex}.part")
