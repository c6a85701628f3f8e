"""Record endpoints; writes here feed the search index queue."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, Response, status

from archive.content.schemas import ArchiveRecord, RecordCreate

if TYPE_CHECKING:
    from archive.content.service import RecordService

router = APIRouter(prefix="/records", tags=["records"])


def _service(request: Request) -> RecordService:
    return request.app.state.record_service


@router.post("", response_model=ArchiveRecord, status_code=status.HTTP_201_CREATED)
async def save_record(request: Request, body: RecordCreate) -> ArchiveRecord:
    """Add or replace a record and schedule it for indexing.

    Args:
        request: FastAPI request.
        body: Record fields.

    Returns:
        The stored record.
    """
    return await _service(request).save(body)


@router.get("/{subject_id}", response_model=ArchiveRecord)
async def get_record(request: Request, subject_id: str) -> ArchiveRecord:
    """Fetch a record by subject id."""
    record = await _service(request).get(subject_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(request: Request, subject_id: str) -> Response:
    """Delete a record and schedule its removal from the index."""
    if not await _service(request).delete(subject_id):
        raise HTTPException(status_code=404, detail="Record not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
