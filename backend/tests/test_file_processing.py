import hashlib
import os
from unittest import mock

from proctorhub.models.recording_chunk import RecordingChunk
from proctorhub.schemas.proctoring import ProctorConfig, SystemCheck
from proctorhub.services.recording_service import RecordingService
from proctorhub.tasks.file_processing import file_digest, process_recording_chunk
from proctorhub.utils.file_paths import chunk_file_path

from conftest import ALL_CHECKS


def register(db, service, content=b"chunk-bytes"):
    record = service.initialize("assignment-1", "student-1", ProctorConfig())
    service.start(record.id, SystemCheck(**ALL_CHECKS))

    path = chunk_file_path(record.id, "screen", 3, "video/mp4")
    with open(path, "wb") as out:
        out.write(content)

    chunk = RecordingService(db, service).register_chunk(
        record.id, "screen", 3, path, len(content), 2.5, "video/mp4"
    )
    return record.id, chunk


def test_file_digest(tmp_path):
    path = tmp_path / "sample.bin"
    path.write_bytes(b"x" * 3000)

    assert file_digest(str(path)) == (3000, hashlib.sha256(b"x" * 3000).hexdigest())


def test_task_marks_chunk_processed(db, service):
    session_id, chunk = register(db, service)

    result = process_recording_chunk.apply(args=(chunk.id,)).get()

    assert result["status"] == "processed"
    assert result["checksum"] == hashlib.sha256(b"chunk-bytes").hexdigest()
    db.expire_all()
    stored = db.get(RecordingChunk, chunk.id)
    assert stored.processed is True
    assert stored.size_bytes == len(b"chunk-bytes")
    assert service.get_session(session_id).recordings["screen"] == {
        "enabled": True, "chunks": 1, "totalDuration": 2.5,
    }


def test_task_skips_missing_chunk():
    result = process_recording_chunk.apply(args=(424242,)).get()

    assert result == {"status": "skipped", "reason": "Chunk not found"}


def test_task_skips_missing_file(db, service):
    _, chunk = register(db, service)
    os.remove(chunk.file_path)

    result = process_recording_chunk.apply(args=(chunk.id,)).get()

    assert result["reason"] == "File not found"


def test_upload_succeeds_when_queueing_fails(client):
    base = "/api/v1/proctoring/sessions"
    session_id = client.post(f"{base}/initialize", json={"assignmentId": "a", "studentId": "s"}).json()["sessionId"]
    client.put(f"{base}/{session_id}/start", json={"systemCheck": ALL_CHECKS})

    with mock.patch("proctorhub.api.v1.endpoints.recordings.process_recording_chunk") as task:
        task.delay.side_effect = ConnectionError("broker down")
        response = client.post(
            f"{base}/{session_id}/recordings",
            data={"recordingType": "screen", "chunkIndex": "0"},
            files={"file": ("chunk.mp4", b"mp4-bytes", "video/mp4")},
        )

    assert response.status_code == 201
    task.delay.assert_called_once()
    chunk = client.get(f"{base}/{session_id}").json()["recordingChunks"][0]
    assert chunk["processed"] is False
    assert chunk["checksum"] is None
