from fastapi import APIRouter, Depends, HTTPException, Query
from ..deps import get_journal
from signrelay.api.schemas import CaptureSessionOut, PredictionOut
from signrelay.db.requests import SessionJournal

router = APIRouter(prefix="/api/v1", tags=["history"])


@router.get("/sessions", response_model=list[CaptureSessionOut])
def list_sessions(limit: int = Query(default=50, ge=1, le=500), journal: SessionJournal = Depends(get_journal)):
    return journal.list_sessions(limit=limit)


@router.get("/sessions/{session_id}/predictions", response_model=list[PredictionOut])
def list_session_predictions(session_id: int, journal: SessionJournal = Depends(get_journal)):
    if journal.get_session(session_id) is None:
        raise HTTPException(404, "Session not found")
    return journal.list_predictions(session_id)
