import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import history, session
from signrelay.api.ws import router as ws_router
from signrelay.config import Settings, load_settings
from signrelay.db import make_session_factory
from signrelay.db.requests import SessionJournal
from signrelay.ml.runtime import ClassifierChannel
from signrelay.ml.session import SessionController
from signrelay.speech import GTTSSpeaker

logger = logging.getLogger("signrelay.api")


def create_app(
    settings: Optional[Settings] = None,
    channel=None,
    journal: Optional[SessionJournal] = None,
    speaker=None,
    use_journal: bool = True,
) -> FastAPI:
    settings = settings or load_settings()

    if journal is None and use_journal:
        journal = SessionJournal(make_session_factory(settings.database_url))
    if channel is None:
        channel = ClassifierChannel(
            settings.classifier_url,
            reconnect_delay_s=settings.reconnect_delay_s,
            verify_tls=settings.verify_tls,
        )
    if speaker is None:
        speaker = GTTSSpeaker(lang=settings.speech_lang, out_dir=settings.speech_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # the controller's mailbox must live on the serving loop
        controller = SessionController(settings, channel, journal=journal)
        app.state.controller = controller

        tasks = [asyncio.create_task(controller.run())]
        if hasattr(channel, "run"):
            tasks.append(asyncio.create_task(channel.run(controller.on_classifier_message)))
        try:
            yield
        finally:
            for t in tasks:
                t.cancel()
            for t in tasks:
                with suppress(asyncio.CancelledError):
                    await t
            controller.close()
            if hasattr(channel, "close"):
                await channel.close()

    app = FastAPI(title="signrelay", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.journal = journal
    app.state.speaker = speaker

    app.include_router(session.router)
    app.include_router(history.router)
    app.include_router(ws_router)
    return app
