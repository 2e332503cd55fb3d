import logging
import os
from typing import Optional

import aiofiles
from fastapi import UploadFile
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import DuplicateChunk, InvalidRecording
from ..models.proctoring_session import ProctoringSession
from ..models.recording_chunk import RecordingChunk
from ..utils.file_paths import CONTENT_TYPE_EXTENSIONS
from . import session_machine as machine
from .proctoring_service import ProctoringService, load_config

logger = logging.getLogger(__name__)


# recording type -> config flag that enables it
RECORDING_TYPES = {
    "webcam": "webcam_required",
    "screen": "screen_recording",
    "audio": "audio_monitoring",
}

UPLOAD_READ_SIZE = 1024 * 1024


class RecordingService:
    """
    Bookkeeping for uploaded media chunks.

    The bytes are written before the session lock is taken; only the metadata
    registration is serialized with the session's other writes.
    """

    def __init__(self, db: Session, sessions: Optional[ProctoringService] = None):
        self.db = db
        self.sessions = sessions or ProctoringService(db)

    def _existing_chunk(self, session_id: str, recording_type: str, sequence: int) -> Optional[RecordingChunk]:
        return self.db.query(RecordingChunk).filter(
            RecordingChunk.session_id == session_id,
            RecordingChunk.recording_type == recording_type,
            RecordingChunk.sequence == sequence,
        ).first()

    def _check(self, record: ProctoringSession, recording_type: str, sequence: int, content_type: Optional[str]):
        machine.ensure_accepts_signals(record.status, "upload recordings for")

        flag = RECORDING_TYPES.get(recording_type)
        if flag is None:
            raise InvalidRecording(f"Unknown recording type '{recording_type}'", recordingType=recording_type)
        if not getattr(load_config(record), flag):
            raise InvalidRecording(
                f"{recording_type} recording is not enabled for this session",
                recordingType=recording_type,
            )
        if content_type not in CONTENT_TYPE_EXTENSIONS:
            raise InvalidRecording(f"Invalid file type for recording: {content_type}", contentType=content_type)
        if self._existing_chunk(record.id, recording_type, sequence) is not None:
            raise DuplicateChunk(recording_type, sequence)

    def validate_upload(self, session_id: str, recording_type: str, sequence: int, content_type: Optional[str]):
        """Cheap pre-check so rejected uploads are not streamed to disk"""
        record = self.sessions.get_session(session_id)
        self._check(record, recording_type, sequence, content_type)

    async def store_upload(self, upload: UploadFile, path: str) -> int:
        size = 0
        try:
            async with aiofiles.open(path, "wb") as out:
                while True:
                    block = await upload.read(UPLOAD_READ_SIZE)
                    if not block:
                        break
                    size += len(block)
                    if size > settings.max_recording_chunk_size:
                        raise InvalidRecording(
                            "Recording chunk exceeds the size limit",
                            maxBytes=settings.max_recording_chunk_size,
                        )
                    await out.write(block)
        except Exception:
            if os.path.exists(path):
                os.remove(path)
            raise
        return size

    def register_chunk(
        self,
        session_id: str,
        recording_type: str,
        sequence: int,
        file_path: str,
        size_bytes: int,
        duration: float,
        content_type: str,
    ) -> RecordingChunk:
        def operation(record: ProctoringSession) -> RecordingChunk:
            self._check(record, recording_type, sequence, content_type)

            chunk = RecordingChunk(
                session_id=record.id,
                recording_type=recording_type,
                sequence=sequence,
                file_path=file_path,
                content_type=content_type,
                size_bytes=size_bytes,
                duration=duration,
                created_at=self.sessions.clock(),
            )
            self.db.add(chunk)

            recordings = {key: dict(value) for key, value in (record.recordings or {}).items()}
            entry = recordings.setdefault(recording_type, {"enabled": True, "chunks": 0, "totalDuration": 0.0})
            entry["chunks"] = entry.get("chunks", 0) + 1
            entry["totalDuration"] = round(entry.get("totalDuration", 0.0) + duration, 3)
            record.recordings = recordings
            return chunk

        chunk = self.sessions.mutate(session_id, operation)
        logger.info(f"Registered {recording_type} chunk {sequence} for session {session_id} ({size_bytes} bytes)")
        return chunk

    def mark_processed(self, chunk_id: int, size_bytes: int, checksum: str) -> Optional[RecordingChunk]:
        chunk = self.db.get(RecordingChunk, chunk_id)
        if chunk is None:
            return None
        chunk.size_bytes = size_bytes
        chunk.checksum = checksum
        chunk.processed = True
        self.db.commit()
        return chunk
