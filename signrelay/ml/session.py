from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from signrelay.config import Settings
from .buffer import SequenceWindower, TemporalSmoother
from .codec import decode_prediction
from .landmarks import KeypointObservation, normalize_observation
from .sentence import SentenceAssembler

logger = logging.getLogger("signrelay.session")


# -------------------------
# Mailbox events
# -------------------------

@dataclass(frozen=True)
class FrameReceived:
    observation: Optional[KeypointObservation]


@dataclass(frozen=True)
class PredictionReceived:
    raw: Any


@dataclass(frozen=True)
class StartSession:
    pass


@dataclass(frozen=True)
class StopSession:
    pass


@dataclass(frozen=True)
class ClearSentence:
    pass


@dataclass(frozen=True)
class Snapshot:
    pass


@dataclass(frozen=True)
class DisplayState:
    frame_count: int
    frames_per_sequence: int
    prediction: str
    sentence: str
    capturing: bool
    session_id: Optional[int] = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SessionContext:
    """Everything a capture session mutates. Owned by one SessionController."""
    smoother: TemporalSmoother
    windower: SequenceWindower
    assembler: SentenceAssembler
    capturing: bool = False
    session_id: Optional[int] = None
    frames_received: int = 0
    sequences_sent: int = 0
    sequences_dropped: int = 0
    predictions: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionContext":
        return cls(
            smoother=TemporalSmoother(window=settings.smooth_frames),
            windower=SequenceWindower(length=settings.sequence_length),
            assembler=SentenceAssembler(
                history_size=settings.history_size,
                nothing_label=settings.nothing_label,
                idle_prediction=settings.idle_prediction,
                clear_resets_history=settings.clear_resets_history,
            ),
        )

    def reset_capture(self) -> None:
        """New session: smoothing and windowing restart, sentence and history stay."""
        self.smoother.reset()
        self.windower.reset()
        self.frames_received = 0
        self.sequences_sent = 0
        self.sequences_dropped = 0


class SessionController:
    """
    Actor that owns the SessionContext.

    Detector frames, classifier messages and UI commands all arrive as events in
    one mailbox and are handled to completion one at a time, so no handler is
    ever re-entered and the state needs no locking.
    """
    def __init__(self, settings: Settings, channel, journal=None):
        self.settings = settings
        self.channel = channel
        self.journal = journal
        self.context = SessionContext.from_settings(settings)

        self._mailbox: asyncio.Queue = asyncio.Queue()
        self._listeners: list[Callable[[DisplayState], None]] = []
        self._last_debug = 0.0

        # journal writes queued by a handler, run after it returns
        self._journal_jobs: list[tuple[Callable[[], Any], Optional[Callable[[Any], None]]]] = []
        self._journal_executor = None
        if journal is not None:
            # one worker thread keeps the writes in mailbox order, off the event loop
            self._journal_executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="signrelay-journal"
            )

        self._handlers = {
            FrameReceived: self._on_frame,
            PredictionReceived: self._on_prediction,
            StartSession: self._on_start,
            StopSession: self._on_stop,
            ClearSentence: self._on_clear,
            Snapshot: self._on_snapshot,
        }

    # -------------------------
    # Mailbox
    # -------------------------

    def post(self, event) -> None:
        self._mailbox.put_nowait((event, None))

    async def call(self, event) -> DisplayState:
        fut = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait((event, fut))
        return await fut

    def on_classifier_message(self, raw) -> None:
        self.post(PredictionReceived(raw))

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            event, fut = await self._mailbox.get()
            try:
                result = self._dispatch(event)
                if self._journal_jobs:
                    changed = False
                    for job, on_result in self._take_journal_jobs():
                        try:
                            value = await loop.run_in_executor(self._journal_executor, job)
                        except SQLAlchemyError:
                            logger.exception("journal write failed during %s", type(event).__name__)
                            continue
                        changed |= self._journal_done(on_result, value)
                    if changed:
                        result = self._publish()
            except Exception as e:
                if fut is not None and not fut.done():
                    fut.set_exception(e)
                else:
                    logger.exception("event %s failed", type(event).__name__)
                continue
            if fut is not None and not fut.done():
                fut.set_result(result)

    def handle(self, event) -> DisplayState:
        """Apply one event without the run loop. Journal writes run inline."""
        result = self._dispatch(event)
        changed = False
        for job, on_result in self._take_journal_jobs():
            try:
                value = job()
            except SQLAlchemyError:
                logger.exception("journal write failed during %s", type(event).__name__)
                continue
            changed |= self._journal_done(on_result, value)
        return self._publish() if changed else result

    def close(self) -> None:
        if self._journal_executor is not None:
            self._journal_executor.shutdown(wait=True)

    def _dispatch(self, event) -> DisplayState:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"unknown event {event!r}")
        return handler(event)

    # -------------------------
    # Session control surface
    # -------------------------

    async def start_session(self) -> DisplayState:
        return await self.call(StartSession())

    async def stop_session(self) -> DisplayState:
        return await self.call(StopSession())

    async def clear_sentence(self) -> DisplayState:
        return await self.call(ClearSentence())

    async def snapshot(self) -> DisplayState:
        return await self.call(Snapshot())

    # -------------------------
    # Display surface
    # -------------------------

    def subscribe(self, listener: Callable[[DisplayState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def display(self) -> DisplayState:
        ctx = self.context
        return DisplayState(
            frame_count=ctx.windower.count,
            frames_per_sequence=ctx.windower.length,
            prediction=ctx.assembler.prediction,
            sentence=ctx.assembler.sentence,
            capturing=ctx.capturing,
            session_id=ctx.session_id,
        )

    def _publish(self) -> DisplayState:
        state = self.display()
        for listener in list(self._listeners):
            listener(state)
        return state

    # -------------------------
    # Handlers
    # -------------------------

    def _on_frame(self, event: FrameReceived) -> DisplayState:
        ctx = self.context
        if not ctx.capturing:
            return self.display()

        ctx.frames_received += 1
        smoothed = ctx.smoother.smooth(normalize_observation(event.observation))
        sequence = ctx.windower.push(smoothed)

        if sequence is not None:
            if self.channel.send_sequence(sequence):
                ctx.sequences_sent += 1
            else:
                ctx.sequences_dropped += 1

        self._debug_stats()
        return self._publish()

    def _on_prediction(self, event: PredictionReceived) -> DisplayState:
        ctx = self.context
        label = decode_prediction(event.raw)
        if label is None:
            return self.display()

        ctx.predictions += 1
        appended = ctx.assembler.on_prediction(label)
        if appended is not None:
            logger.info(f"word accepted: {appended!r} sentence={ctx.assembler.sentence!r}")

        if self.journal is not None:
            self._queue_journal(
                functools.partial(self.journal.record_prediction, ctx.session_id, label, appended is not None)
            )
        return self._publish()

    def _on_start(self, event: StartSession) -> DisplayState:
        ctx = self.context
        if ctx.capturing:
            self._queue_close_session()

        ctx.reset_capture()
        ctx.capturing = True
        if self.journal is not None:
            ctx.session_id = None
            self._queue_journal(self.journal.open_session, on_result=self._session_opened)
        logger.info("capture session started")
        return self._publish()

    def _on_stop(self, event: StopSession) -> DisplayState:
        ctx = self.context
        if ctx.capturing:
            ctx.capturing = False
            # the partial sequence is not flushed
            logger.info(
                f"capture session stopped (id={ctx.session_id}) frames={ctx.frames_received} "
                f"sent={ctx.sequences_sent} dropped={ctx.sequences_dropped} "
                f"unsent_tail={ctx.windower.count}"
            )
            self._queue_close_session()
        return self._publish()

    def _on_clear(self, event: ClearSentence) -> DisplayState:
        self.context.assembler.clear()
        return self._publish()

    def _on_snapshot(self, event: Snapshot) -> DisplayState:
        return self.display()

    # -------------------------
    # Journal
    # -------------------------

    def _queue_journal(self, job: Callable[[], Any], on_result: Optional[Callable[[Any], None]] = None) -> None:
        self._journal_jobs.append((job, on_result))

    def _take_journal_jobs(self):
        jobs, self._journal_jobs = self._journal_jobs, []
        return jobs

    def _journal_done(self, on_result, value) -> bool:
        if on_result is None:
            return False
        on_result(value)
        return True

    def _session_opened(self, session_id: int) -> None:
        self.context.session_id = session_id
        logger.info("journal session opened (id=%s)", session_id)

    def _queue_close_session(self) -> None:
        ctx = self.context
        if self.journal is None or ctx.session_id is None:
            return
        # counters are bound when queued
        self._queue_journal(functools.partial(
            self.journal.close_session,
            ctx.session_id,
            frames=ctx.frames_received,
            sequences_sent=ctx.sequences_sent,
            sequences_dropped=ctx.sequences_dropped,
        ))

    def _debug_stats(self) -> None:
        if not self.settings.debug:
            return
        now = time.monotonic()
        if (now - self._last_debug) <= 1.0:
            return
        self._last_debug = now
        ctx = self.context
        logger.info(
            f"frames_in={ctx.frames_received} buffered={ctx.windower.count} "
            f"sent={ctx.sequences_sent} dropped={ctx.sequences_dropped} "
            f"predictions={ctx.predictions} last={ctx.assembler.prediction}"
        )
