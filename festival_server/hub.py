"""
Room broadcast hub: group rooms, heartbeats and fan-out of selection events
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from .auth import TokenVerifier
from .config import HEARTBEAT_INTERVAL, OUTBOX_LIMIT
from .messages import (
    HeartbeatAck, InboundMessage, JoinGroup, LeaveGroup, MalformedMessage, Unknown,
    encode, parse_message, ping,
)
from .state import Session

logger = logging.getLogger("festival_sync")


class RoomHub:
    """
    Tracks live sessions and the group rooms they joined

    Built once per application and handed to whatever needs to broadcast.
    All mutations run to completion on the event loop, so no locking.
    """

    def __init__(self, verifier: TokenVerifier, heartbeat_interval: float = HEARTBEAT_INTERVAL,
                 outbox_limit: int = OUTBOX_LIMIT,
                 can_join: Optional[Callable[[int, int], bool]] = None):
        """
        Args:
            verifier: Turns the handshake token into a user id
            heartbeat_interval: Seconds between sweeps
            outbox_limit: Per-session queue size before frames are dropped
            can_join: Optional (group_id, user_id) check applied to client
                JOIN_GROUP requests; join() itself never checks
        """
        self.verifier = verifier
        self.heartbeat_interval = heartbeat_interval
        self.outbox_limit = outbox_limit
        self.can_join = can_join
        self.sessions: Set[Session] = set()
        self.rooms: Dict[int, Set[Session]] = {}

    # ============================================================
    # CONNECTION LIFECYCLE
    # ============================================================

    def authenticate(self, connection, token: Optional[str]) -> Session:
        """
        Bind a verified user to a new session and start tracking it

        Raises:
            AuthError: missing, invalid or expired token
        """
        claims = self.verifier.verify(token)
        session = Session(connection, claims["userId"], outbox_limit=self.outbox_limit)
        self.sessions.add(session)
        logger.info("🔌 User %s connected as %s (total: %d)",
                    session.user_id, session.session_id, len(self.sessions))
        return session

    def disconnect(self, session: Session):
        """Vacate every room the session joined and forget it; safe to repeat"""
        for group_id in list(session.joined_rooms):
            self.leave(session, group_id)
        if session in self.sessions:
            self.sessions.discard(session)
            logger.info("🔌 User %s disconnected (%s, remaining: %d)",
                        session.user_id, session.session_id, len(self.sessions))

    # ============================================================
    # ROOMS
    # ============================================================

    def join(self, session: Session, group_id: int):
        room = self.rooms.setdefault(group_id, set())
        if session in room:
            return
        room.add(session)
        session.joined_rooms.add(group_id)
        logger.info("✅ User %s joined group room %s", session.user_id, group_id)

    def leave(self, session: Session, group_id: int):
        room = self.rooms.get(group_id)
        if room is not None:
            room.discard(session)
            if not room:
                del self.rooms[group_id]
        if group_id in session.joined_rooms:
            session.joined_rooms.discard(group_id)
            logger.info("👋 User %s left group room %s", session.user_id, group_id)

    def leave_user(self, group_id: int, user_id: int):
        """Pull every session of one user out of a room"""
        for session in list(self.rooms.get(group_id, ())):
            if session.user_id == user_id:
                self.leave(session, group_id)

    def connection_count(self, group_id: int) -> int:
        return len(self.rooms.get(group_id, ()))

    # ============================================================
    # FAN-OUT
    # ============================================================

    def broadcast(self, group_id: int, event: dict, exclude_user_id: Optional[int] = None) -> int:
        """
        Queue an event for every ready session in the room except the excluded user

        Returns the number of sessions the frame was queued for. Sessions whose
        socket is not open are skipped and never retried.
        """
        room = self.rooms.get(group_id)
        if not room:
            return 0

        frame = encode(event)
        delivered = 0
        for session in room:
            if session.user_id == exclude_user_id or not session.is_ready:
                continue
            if session.send(frame):
                delivered += 1
        return delivered

    # ============================================================
    # INBOUND
    # ============================================================

    def handle_text(self, session: Session, raw: str):
        """Parse and dispatch one text frame; malformed frames are logged and dropped"""
        # Bare keepalive from clients that ping on their own schedule
        if raw == "ping":
            session.acknowledge()
            session.send("pong")
            return
        try:
            message = parse_message(raw)
        except MalformedMessage as e:
            logger.warning("Ignoring malformed message from user %s: %s", session.user_id, e)
            return
        self.dispatch(session, message)

    def dispatch(self, session: Session, message: InboundMessage):
        if isinstance(message, JoinGroup):
            if self.can_join is not None and not self.can_join(message.group_id, session.user_id):
                logger.warning("User %s may not join group room %s", session.user_id, message.group_id)
                return
            self.join(session, message.group_id)
        elif isinstance(message, LeaveGroup):
            self.leave(session, message.group_id)
        elif isinstance(message, HeartbeatAck):
            session.acknowledge()
        elif isinstance(message, Unknown):
            logger.info("Unknown message type from user %s: %s", session.user_id, message.type)
        else:
            raise TypeError(f"Unhandled message variant: {message!r}")

    # ============================================================
    # HEARTBEAT
    # ============================================================

    async def sweep(self) -> List[Session]:
        """
        One heartbeat tick: evict sessions that missed the last probe, probe the rest

        Returns the evicted sessions.
        """
        probe = encode(ping())
        evicted = []
        for session in list(self.sessions):
            if not session.probe():
                evicted.append(session)
                self.disconnect(session)
                continue
            session.send(probe)

        if evicted:
            logger.info("💔 Evicting %d unresponsive session(s)", len(evicted))
            results = await asyncio.gather(*(s.terminate() for s in evicted), return_exceptions=True)
            for session, result in zip(evicted, results):
                if isinstance(result, Exception):
                    logger.debug(f"Error closing {session.session_id}: {result}")
        return evicted

    async def run_heartbeat(self):
        """Sweep forever at the configured interval; cancel to stop"""
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Heartbeat sweep error: {e}")

    async def close_all(self, code: int, message: str):
        """Close every live socket, used on shutdown"""
        sessions = list(self.sessions)
        for session in sessions:
            self.disconnect(session)
        await asyncio.gather(*(s.terminate(code=code, message=message) for s in sessions),
                             return_exceptions=True)
