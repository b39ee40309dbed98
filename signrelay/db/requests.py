from datetime import datetime
from typing import Optional

from sqlalchemy.orm import sessionmaker

from .models import CaptureSession, PredictionRecord


class SessionJournal:
    """Persists capture sessions and every prediction the classifier returned."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def open_session(self) -> int:
        session = self.session_factory()
        s = CaptureSession()
        session.add(s)
        session.commit()
        session.refresh(s)
        session_id = s.session_id
        session.close()
        return session_id

    def close_session(self, session_id: int, frames: int, sequences_sent: int, sequences_dropped: int):
        session = self.session_factory()
        s = session.query(CaptureSession).filter_by(session_id=session_id).first()
        if s:
            s.session_end = datetime.utcnow()
            s.frames_received = frames
            s.sequences_sent = sequences_sent
            s.sequences_dropped = sequences_dropped
            session.commit()
        session.close()

    def record_prediction(self, session_id: Optional[int], label: str, accepted: bool):
        session = self.session_factory()
        session.add(PredictionRecord(session_id=session_id, label=label, accepted=accepted))
        session.commit()
        session.close()

    def list_sessions(self, limit: int = 50):
        session = self.session_factory()
        sessions = (
            session.query(CaptureSession)
            .order_by(CaptureSession.session_id.desc())
            .limit(limit)
            .all()
        )
        session.close()
        return sessions

    def get_session(self, session_id: int) -> Optional[CaptureSession]:
        session = self.session_factory()
        s = session.query(CaptureSession).filter_by(session_id=session_id).first()
        session.close()
        return s

    def list_predictions(self, session_id: int):
        session = self.session_factory()
        predictions = (
            session.query(PredictionRecord)
            .filter_by(session_id=session_id)
            .order_by(PredictionRecord.prediction_id)
            .all()
        )
        session.close()
        return predictions
