"""
Per-connection state: who owns a live socket, which rooms it joined,
and where it stands in the heartbeat cycle
"""
import asyncio
import enum
import logging
from typing import Optional, Set

from aiohttp import WSCloseCode

from .config import OUTBOX_LIMIT
from .utils import generate_session_id

logger = logging.getLogger("festival_sync")


class Liveness(enum.Enum):
    RESPONSIVE = "responsive"
    AWAITING_PROBE = "awaiting_probe"


class Session:
    """
    One authenticated live connection

    The heartbeat sweeper only moves RESPONSIVE -> AWAITING_PROBE (probe) and
    the inbound handler only moves back to RESPONSIVE (acknowledge).
    """

    def __init__(self, connection, user_id: int, outbox_limit: int = OUTBOX_LIMIT):
        self.session_id = generate_session_id()
        self.connection = connection
        self.user_id = user_id
        self.joined_rooms: Set[int] = set()
        self.liveness = Liveness.RESPONSIVE
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_limit)
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"<Session {self.session_id} user={self.user_id} rooms={sorted(self.joined_rooms)}>"

    @property
    def alive(self) -> bool:
        return self.liveness is Liveness.RESPONSIVE

    @property
    def is_ready(self) -> bool:
        return not self.connection.closed

    def acknowledge(self):
        self.liveness = Liveness.RESPONSIVE

    def probe(self) -> bool:
        """Arm the next probe; False means the previous one went unanswered"""
        if self.liveness is Liveness.AWAITING_PROBE:
            return False
        self.liveness = Liveness.AWAITING_PROBE
        return True

    def send(self, frame: str) -> bool:
        """Queue a frame without waiting; a full outbox drops it"""
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.debug("Outbox full for %s, dropping frame", self.session_id)
            return False
        return True

    def start(self):
        if self._writer is None:
            self._writer = asyncio.ensure_future(self._pump())

    def stop(self):
        if self._writer is not None:
            self._writer.cancel()
            self._writer = None

    async def terminate(self, code: int = WSCloseCode.GOING_AWAY, message: str = "Heartbeat timeout"):
        """Tear down the writer and the underlying socket"""
        self.stop()
        if not self.connection.closed:
            await self.connection.close(code=code, message=message.encode())

    async def _pump(self):
        while True:
            frame = await self.outbox.get()
            if self.connection.closed:
                continue
            try:
                await self.connection.send_str(frame)
            except (ConnectionError, RuntimeError) as e:
                logger.debug(f"Failed to send to {self.session_id}: {e}")
                # Detach first so stop() from the socket handler cannot cancel the close
                self._writer = None
                await self._close_broken()
                return

    async def _close_broken(self):
        """Close a socket whose writes fail; its handler then disconnects the session"""
        if self.connection.closed:
            return
        try:
            await self.connection.close(code=WSCloseCode.INTERNAL_ERROR, message=b"Send failed")
        except (ConnectionError, RuntimeError) as e:
            logger.debug(f"Error closing {self.session_id}: {e}")
