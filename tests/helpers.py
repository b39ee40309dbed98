import asyncio

from signrelay.ml.landmarks import HAND_POINTS, POSE_POINTS, KeypointObservation


class FakeChannel:
    def __init__(self, is_open=True, inbound=None):
        self.is_open = is_open
        self.inbound = list(inbound or [])
        self.sent = []

    def send_sequence(self, sequence):
        if not self.is_open:
            return False
        self.sent.append(sequence)
        return True

    async def run(self, on_message):
        for message in self.inbound:
            on_message(message)
        await asyncio.Event().wait()


class FakeSpeaker:
    def __init__(self):
        self.calls = []

    def speak(self, text):
        self.calls.append(text)
        return f"/tmp/{len(self.calls)}.mp3"


def make_observation(value=0.5, pose=True, left=True, right=True):
    """Every coordinate set to `value`, visibility 1.0."""
    pose_pts = [{"x": value, "y": value, "z": value, "visibility": 1.0} for _ in range(POSE_POINTS)]
    hand_pts = [{"x": value, "y": value, "z": value} for _ in range(HAND_POINTS)]
    return KeypointObservation(
        pose=pose_pts if pose else None,
        left_hand=hand_pts if left else None,
        right_hand=list(hand_pts) if right else None,
    )
