import argparse
import asyncio
import concurrent.futures
import logging
from contextlib import suppress
from typing import List, Optional

import cv2

from signrelay.config import Settings, load_settings
from signrelay.db import make_session_factory
from signrelay.db.requests import SessionJournal
from signrelay.ml.detector import HolisticDetector
from signrelay.ml.runtime import ClassifierChannel
from signrelay.ml.session import FrameReceived, SessionController
from signrelay.speech import GTTSSpeaker, speak_sentence

logger = logging.getLogger("signrelay.main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Stream webcam landmarks to a sign classifier and assemble the sentence.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--camera", type=int, default=0, help="Camera device index")
    p.add_argument("--config", type=str, default=None, help="YAML config file")
    p.add_argument("--classifier-url", type=str, default=None, help="Override classifier websocket url")
    p.add_argument("--max-frames", type=int, default=None, help="Stop after this many frames")
    p.add_argument("--mirrored", action="store_true", help="Camera frames are already mirrored (selfie view)")
    p.add_argument("--no-journal", action="store_true", help="Do not persist sessions/predictions")
    p.add_argument("--speak", action="store_true", help="Synthesize the final sentence on exit")
    return p.parse_args(argv)


async def capture_loop(
    controller: SessionController,
    detector: HolisticDetector,
    camera: int,
    max_frames: Optional[int] = None,
) -> int:
    loop = asyncio.get_running_loop()
    # camera and landmarker always run on the same worker thread
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    cap = cv2.VideoCapture(camera)
    if not cap.isOpened():
        executor.shutdown(wait=False)
        raise RuntimeError(f"Cannot open camera {camera}")

    frames = 0
    try:
        await controller.start_session()
        while max_frames is None or frames < max_frames:
            ok, frame = await loop.run_in_executor(executor, cap.read)
            if not ok:
                logger.warning("camera returned no frame, stopping")
                break

            observation = await loop.run_in_executor(executor, detector.process_frame_bgr, frame)
            # next capture only after this frame was handled
            await controller.call(FrameReceived(observation))
            frames += 1
    finally:
        cap.release()
        executor.shutdown(wait=False)
    return frames


async def run(args: argparse.Namespace, settings: Settings) -> str:
    channel = ClassifierChannel(
        settings.classifier_url,
        reconnect_delay_s=settings.reconnect_delay_s,
        verify_tls=settings.verify_tls,
    )
    journal = None
    if not args.no_journal:
        journal = SessionJournal(make_session_factory(settings.database_url))

    controller = SessionController(settings, channel, journal=journal)
    detector = HolisticDetector(mirrored=args.mirrored)

    tasks = [
        asyncio.create_task(controller.run()),
        asyncio.create_task(channel.run(controller.on_classifier_message)),
    ]
    try:
        frames = await capture_loop(controller, detector, args.camera, args.max_frames)
        logger.info("captured %d frames", frames)
    finally:
        state = await controller.stop_session()
        for t in tasks:
            t.cancel()
        for t in tasks:
            with suppress(asyncio.CancelledError):
                await t
        controller.close()
        await channel.close()
        detector.close()

    return state.sentence


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    overrides = {}
    if args.classifier_url:
        overrides["classifier_url"] = args.classifier_url
    settings = load_settings(args.config, **overrides)

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        sentence = asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("Exit")
        return

    print(f"Sentence: {sentence or '-'}")
    if args.speak:
        path = speak_sentence(sentence, GTTSSpeaker(lang=settings.speech_lang, out_dir=settings.speech_dir))
        if path:
            print(f"Audio: {path}")


if __name__ == "__main__":
    main()
