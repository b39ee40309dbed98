from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Optional

import numpy as np
import mediapipe as mp

from .landmarks import KeypointObservation

POSE_TASK = "pose_landmarker_full.task"
HAND_TASK = "hand_landmarker.task"


class HolisticDetector:
    """
    Pose + two hands per frame, via MediaPipe Tasks (VIDEO mode).
    Emits one KeypointObservation per processed frame.
    """
    def __init__(
        self,
        pose_model_path: Optional[str] = None,
        hand_model_path: Optional[str] = None,
        min_detection_confidence: float = 0.3,
        min_tracking_confidence: float = 0.3,
        mirrored: bool = False,
    ):
        self.pose_model_path = self._resolve_model_path(pose_model_path, "SIGNRELAY_POSE_TASK_PATH", POSE_TASK)
        self.hand_model_path = self._resolve_model_path(hand_model_path, "SIGNRELAY_HAND_TASK_PATH", HAND_TASK)
        # MediaPipe handedness assumes a selfie (mirrored) image
        self.mirrored = mirrored

        BaseOptions = mp.tasks.BaseOptions
        RunningMode = mp.tasks.vision.RunningMode

        pose_options = mp.tasks.vision.PoseLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=str(self.pose_model_path)),
            running_mode=RunningMode.VIDEO,
            num_poses=1,
            min_pose_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        hand_options = mp.tasks.vision.HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=str(self.hand_model_path)),
            running_mode=RunningMode.VIDEO,
            num_hands=2,
            min_hand_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

        self._pose = mp.tasks.vision.PoseLandmarker.create_from_options(pose_options)
        self._hands = mp.tasks.vision.HandLandmarker.create_from_options(hand_options)

        self._last_ts_ms = 0

    def close(self) -> None:
        self._pose.close()
        self._hands.close()

    @staticmethod
    def _resolve_model_path(model_path: Optional[str], env_name: str, filename: str) -> Path:
        """
        Priority:
          1) explicit argument
          2) env var
          3) ./models/<filename>, then ./<filename>
        """
        if model_path:
            p = Path(model_path).expanduser().resolve()
            if not p.exists():
                raise FileNotFoundError(f"{filename} not found: {p}")
            return p

        envp = os.getenv(env_name, "").strip()
        if envp:
            p = Path(envp).expanduser().resolve()
            if not p.exists():
                raise FileNotFoundError(f"{env_name} points to a missing file: {p}")
            return p

        candidates = [
            Path.cwd() / "models" / filename,
            Path.cwd() / filename,
        ]
        for c in candidates:
            if c.exists():
                return c.resolve()

        raise FileNotFoundError(
            f"{filename} not found.\n"
            f"Put it in ./models or set {env_name}."
        )

    def _ensure_ts(self, ts_ms: int) -> int:
        # VIDEO mode requires strictly increasing timestamps
        if ts_ms <= self._last_ts_ms:
            ts_ms = self._last_ts_ms + 1
        self._last_ts_ms = ts_ms
        return ts_ms

    def process_frame_bgr(self, frame_bgr: np.ndarray, ts_ms: Optional[int] = None) -> KeypointObservation:
        if frame_bgr is None or frame_bgr.ndim != 3 or frame_bgr.shape[2] != 3:
            return KeypointObservation.empty()

        if ts_ms is None:
            ts_ms = int(time.monotonic() * 1000)
        ts_ms = self._ensure_ts(int(ts_ms))

        frame_rgb = frame_bgr[:, :, ::-1].copy()
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)

        pose_result = self._pose.detect_for_video(mp_image, ts_ms)
        hand_result = self._hands.detect_for_video(mp_image, ts_ms)

        pose = pose_result.pose_landmarks[0] if pose_result.pose_landmarks else None

        left = right = None
        for lms, handedness in zip(hand_result.hand_landmarks, hand_result.handedness):
            is_left = handedness[0].category_name == "Left"
            if not self.mirrored:
                is_left = not is_left
            if is_left and left is None:
                left = lms
            elif not is_left and right is None:
                right = lms

        return KeypointObservation(pose=pose, left_hand=left, right_hand=right)
