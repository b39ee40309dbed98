from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Callable, Optional

import numpy as np
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from .codec import encode_sequence

logger = logging.getLogger("signrelay.classifier")


class ClassifierChannel:
    """
    Single duplex websocket to the remote classifier.

    Outbound sequences are fire-and-forget. Inbound messages are handed raw to
    `on_message`, in the order the connection delivers them.
    """
    def __init__(
        self,
        url: str,
        reconnect_delay_s: float = 2.0,
        verify_tls: bool = True,
        connector: Callable = connect,
    ):
        self.url = url
        self.reconnect_delay_s = reconnect_delay_s
        self.verify_tls = verify_tls
        self._connector = connector

        self._conn = None
        self._pending: set[asyncio.Task] = set()

        self.sent = 0
        self.dropped = 0
        self.lost = 0

    @property
    def is_open(self) -> bool:
        return self._conn is not None and self._conn.state is State.OPEN

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.url.startswith("wss://"):
            return None
        ctx = ssl.create_default_context()
        if not self.verify_tls:
            # dev classifiers run on localhost with self-signed certs
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        return ctx

    def send_sequence(self, sequence: np.ndarray) -> bool:
        """
        Returns False when the sequence was dropped.

        Intentionally lossy: if the connection is not open the sequence is lost.
        No queue, no retry; capture must never wait on the network.
        """
        if not self.is_open:
            self.dropped += 1
            logger.debug("classifier not connected, sequence dropped (dropped=%d)", self.dropped)
            return False

        payload = encode_sequence(sequence)
        task = asyncio.get_running_loop().create_task(self._send(self._conn, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self.sent += 1
        return True

    async def _send(self, conn, payload: str) -> None:
        try:
            await conn.send(payload)
        except ConnectionClosed:
            self.lost += 1
            logger.info("classifier connection closed while sending, sequence lost")
        except WebSocketException as e:
            self.lost += 1
            logger.warning("classifier send failed, sequence lost: %s", e)

    async def run(self, on_message: Callable[[str], None]) -> None:
        """Connect / read / reconnect until cancelled."""
        kwargs = {}
        ctx = self._ssl_context()
        if ctx is not None:
            kwargs["ssl"] = ctx

        while True:
            try:
                async with self._connector(self.url, **kwargs) as conn:
                    self._conn = conn
                    logger.info("classifier connected: %s", self.url)
                    async for message in conn:
                        on_message(message)
                logger.info("classifier connection closed")
            except (OSError, WebSocketException) as e:
                logger.warning("classifier connection failed: %s", e)
            finally:
                self._conn = None

            await asyncio.sleep(self.reconnect_delay_s)

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        conn = self._conn
        self._conn = None
        if conn is not None:
            await conn.close()
