from fastapi import APIRouter, Depends, File, Form, UploadFile
from starlette.concurrency import run_in_threadpool
from typing import Dict, Any
import os
import logging

from ....api.deps import get_recording_service
from ....services.recording_service import RecordingService
from ....tasks.file_processing import process_recording_chunk
from ....utils.file_paths import chunk_file_path, temporary_upload_path

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sessions/{session_id}/recordings", status_code=201)
async def upload_recording_chunk(
    session_id: str,
    recording_type: str = Form(..., alias="recordingType"),
    chunk_index: int = Form(..., alias="chunkIndex", ge=0),
    duration: float = Form(0.0, ge=0),
    file: UploadFile = File(...),
    service: RecordingService = Depends(get_recording_service),
) -> Dict[str, Any]:
    """
    Upload one media chunk of a session recording.

    The file is streamed to a temporary path first; the session is locked only
    to register the chunk, after which the file is moved into place and
    queued for fingerprinting.
    """
    await run_in_threadpool(service.validate_upload, session_id, recording_type, chunk_index, file.content_type)

    temp_path = temporary_upload_path(session_id)
    size = await service.store_upload(file, temp_path)

    final_path = chunk_file_path(session_id, recording_type, chunk_index, file.content_type)
    try:
        chunk = await run_in_threadpool(
            service.register_chunk,
            session_id,
            recording_type,
            chunk_index,
            final_path,
            size,
            duration,
            file.content_type,
        )
    except Exception:
        os.remove(temp_path)
        raise
    os.replace(temp_path, final_path)

    try:
        process_recording_chunk.delay(chunk.id)
    except Exception as e:
        logger.error(f"Failed to queue processing for chunk {chunk.id}: {e}")

    return {
        "message": "Recording chunk uploaded successfully",
        "sessionId": session_id,
        "recordingType": recording_type,
        "chunkIndex": chunk_index,
        "sizeBytes": size,
        "recordings": service.sessions.get_session(session_id).recordings,
    }
