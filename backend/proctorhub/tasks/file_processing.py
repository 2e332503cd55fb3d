import hashlib
import logging
import os

from ..core.celery_app import celery_app
from ..core.database import SessionLocal
from ..models.recording_chunk import RecordingChunk
from ..services.recording_service import RecordingService

logger = logging.getLogger(__name__)

HASH_BLOCK_SIZE = 1024 * 1024


def file_digest(path: str) -> tuple[int, str]:
    digest = hashlib.sha256()
    size = 0
    with open(path, "rb") as source:
        for block in iter(lambda: source.read(HASH_BLOCK_SIZE), b""):
            size += len(block)
            digest.update(block)
    return size, digest.hexdigest()


@celery_app.task(bind=True, max_retries=3)
def process_recording_chunk(self, chunk_id: int):
    """
    Fingerprint an uploaded recording chunk and mark it processed
    """
    db = SessionLocal()
    try:
        service = RecordingService(db)
        chunk = db.get(RecordingChunk, chunk_id)
        if chunk is None:
            logger.warning(f"Recording chunk {chunk_id} not found. Task is likely stale. Skipping.")
            return {"status": "skipped", "reason": "Chunk not found"}

        if not os.path.exists(chunk.file_path):
            logger.warning(f"File {chunk.file_path} for chunk {chunk_id} not found. Skipping.")
            return {"status": "skipped", "reason": "File not found"}

        try:
            size, checksum = file_digest(chunk.file_path)
        except OSError as e:
            logger.error(f"Failed to read chunk {chunk_id}: {e}")
            raise self.retry(exc=e)

        service.mark_processed(chunk_id, size, checksum)
        logger.info(f"Processed recording chunk {chunk_id}: {size} bytes, sha256={checksum[:12]}")
        return {"status": "processed", "chunk_id": chunk_id, "size": size, "checksum": checksum}
    finally:
        db.close()
