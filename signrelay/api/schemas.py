from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional

from signrelay.ml.landmarks import KeypointObservation


class PointIn(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None


class ObservationIn(BaseModel):
    type: Literal["observation"] = "observation"
    pose: Optional[List[PointIn]] = None
    left_hand: Optional[List[PointIn]] = Field(default=None, alias="leftHand")
    right_hand: Optional[List[PointIn]] = Field(default=None, alias="rightHand")

    class Config:
        populate_by_name = True

    def to_observation(self) -> KeypointObservation:
        return KeypointObservation(pose=self.pose, left_hand=self.left_hand, right_hand=self.right_hand)


class ControlIn(BaseModel):
    type: Literal["start", "stop", "clear"]


class DisplayOut(BaseModel):
    frame_count: int
    frames_per_sequence: int
    prediction: str
    sentence: str
    capturing: bool
    session_id: Optional[int] = None


class SpeakOut(BaseModel):
    sentence: str
    audio_path: Optional[str] = None


class CaptureSessionOut(BaseModel):
    session_id: int
    session_start: Optional[datetime] = None
    session_end: Optional[datetime] = None
    frames_received: int
    sequences_sent: int
    sequences_dropped: int

    class Config:
        from_attributes = True


class PredictionOut(BaseModel):
    prediction_id: int
    label: str
    accepted: bool
    received_at: Optional[datetime] = None

    class Config:
        from_attributes = True
