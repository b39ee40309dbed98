from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from . import Base


class CaptureSession(Base):
    __tablename__ = 'capture_sessions'

    session_id = Column(Integer, primary_key=True, autoincrement=True)
    session_start = Column(DateTime(), server_default=func.now())
    session_end = Column(DateTime, nullable=True)
    frames_received = Column(Integer, nullable=False, default=0)
    sequences_sent = Column(Integer, nullable=False, default=0)
    sequences_dropped = Column(Integer, nullable=False, default=0)

    predictions = relationship('PredictionRecord', back_populates='session', order_by='PredictionRecord.prediction_id')


class PredictionRecord(Base):
    __tablename__ = 'predictions'

    prediction_id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey('capture_sessions.session_id'), index=True, nullable=True)
    label = Column(String(100), nullable=False)
    accepted = Column(Boolean, nullable=False, default=False)
    received_at = Column(DateTime(), server_default=func.now())

    session = relationship('CaptureSession', back_populates='predictions')
