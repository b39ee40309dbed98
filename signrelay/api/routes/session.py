import asyncio

from fastapi import APIRouter, Depends, HTTPException
from ..deps import get_controller, get_speaker
from signrelay.api.schemas import DisplayOut, SpeakOut
from signrelay.ml.session import SessionController
from signrelay.speech import speak_sentence


router = APIRouter(prefix="/api/v1", tags=["session"])


@router.post("/session/start", response_model=DisplayOut)
async def start_session(controller: SessionController = Depends(get_controller)):
    state = await controller.start_session()
    return state.as_dict()


@router.post("/session/stop", response_model=DisplayOut)
async def stop_session(controller: SessionController = Depends(get_controller)):
    state = await controller.stop_session()
    return state.as_dict()


@router.get("/display", response_model=DisplayOut)
async def display(controller: SessionController = Depends(get_controller)):
    state = await controller.snapshot()
    return state.as_dict()


@router.post("/sentence/clear", response_model=DisplayOut)
async def clear_sentence(controller: SessionController = Depends(get_controller)):
    state = await controller.clear_sentence()
    return state.as_dict()


@router.post("/sentence/speak", response_model=SpeakOut)
async def speak(controller: SessionController = Depends(get_controller), speaker=Depends(get_speaker)):
    state = await controller.snapshot()
    if not state.sentence:
        raise HTTPException(400, "Sentence is empty")

    # synthesis is blocking I/O, keep it off the event loop
    loop = asyncio.get_running_loop()
    audio_path = await loop.run_in_executor(None, speak_sentence, state.sentence, speaker)
    return {"sentence": state.sentence, "audio_path": audio_path}
