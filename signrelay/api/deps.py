from fastapi import HTTPException, Request

from signrelay.db.requests import SessionJournal
from signrelay.ml.session import SessionController


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def get_journal(request: Request) -> SessionJournal:
    journal = request.app.state.journal
    if journal is None:
        raise HTTPException(status_code=503, detail="Journal is disabled")
    return journal


def get_speaker(request: Request):
    return request.app.state.speaker
