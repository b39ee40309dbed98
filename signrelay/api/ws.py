from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
import asyncio
import json
import time
import logging

from signrelay.api.schemas import ObservationIn
from signrelay.ml.session import ClearSentence, DisplayState, FrameReceived, StartSession, StopSession

router = APIRouter()

logger = logging.getLogger("signrelay.ws")

CONTROL_EVENTS = {
    "start": StartSession,
    "stop": StopSession,
    "clear": ClearSentence,
}


def display_message(state: DisplayState) -> dict:
    return {"type": "display", **state.as_dict()}


@router.websocket("/ws/landmarks")
async def landmarks_ws(ws: WebSocket):
    await ws.accept()
    controller = ws.app.state.controller

    alive = True

    ping_interval_s = 10.0
    last_ping = time.monotonic()

    # queue of one => the UI always gets the latest display state, no lag build-up
    q: asyncio.Queue = asyncio.Queue(maxsize=1)

    def on_display(state: DisplayState):
        if q.full():
            q.get_nowait()
        q.put_nowait(state)

    unsubscribe = controller.subscribe(on_display)

    frames_in = 0
    invalid = 0

    async def receiver():
        nonlocal alive, frames_in, invalid
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                text = message.get("text")
                if text is None:
                    # binary frames carry nothing we understand
                    invalid += 1
                    continue
                try:
                    msg = json.loads(text)
                except ValueError:
                    invalid += 1
                    continue
                if not isinstance(msg, dict):
                    invalid += 1
                    continue

                kind = msg.get("type")
                if kind == "observation":
                    try:
                        obs = ObservationIn.model_validate(msg)
                    except ValidationError:
                        invalid += 1
                        continue
                    frames_in += 1
                    controller.post(FrameReceived(obs.to_observation()))
                elif kind in CONTROL_EVENTS:
                    controller.post(CONTROL_EVENTS[kind]())
                else:
                    invalid += 1
        except WebSocketDisconnect:
            pass
        finally:
            alive = False

    recv_task = None

    try:
        await ws.send_json(display_message(controller.display()))
        recv_task = asyncio.create_task(receiver())

        while alive:
            now = time.monotonic()
            if (now - last_ping) > ping_interval_s:
                last_ping = now
                await ws.send_json({"type": "ping"})

            try:
                state = await asyncio.wait_for(q.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            await ws.send_json(display_message(state))

    except (WebSocketDisconnect, RuntimeError):
        pass
    finally:
        alive = False
        unsubscribe()
        if recv_task is not None:
            recv_task.cancel()
            await asyncio.gather(recv_task, return_exceptions=True)
        logger.info(f"landmark client disconnected frames_in={frames_in} invalid={invalid}")
