#!/usr/bin/env python3
"""
Festival Planner - live group sync entry point
WebSocket rooms + heartbeat sweeps + selection API
"""
import asyncio
import contextlib
import logging
from typing import Optional

from aiohttp import WSCloseCode, web

from festival_server.api import (
    HUB_KEY, STORE_KEY, VERIFIER_KEY, auth_middleware, error_middleware, health,
    api_add_selection, api_conflicts, api_group_selections, api_join_group,
    api_leave_group, api_my_selections, api_presence, api_remove_selection,
    ws_group_updates,
)
from festival_server.auth import TokenVerifier
from festival_server.config import (
    HEARTBEAT_INTERVAL, JWT_SECRET, LOG_LEVEL, OUTBOX_LIMIT, PORT, SEED_FILE, SERVER_HOST,
)
from festival_server.hub import RoomHub
from festival_server.store import MemoryStore

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("festival_sync")

HEARTBEAT_TASK_KEY = web.AppKey("heartbeat_task", asyncio.Task)


async def start_heartbeat(app: web.Application):
    app[HEARTBEAT_TASK_KEY] = asyncio.create_task(app[HUB_KEY].run_heartbeat())


async def stop_heartbeat(app: web.Application):
    task = app[HEARTBEAT_TASK_KEY]
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    await app[HUB_KEY].close_all(code=WSCloseCode.GOING_AWAY, message="Server shutdown")


def create_app(store: Optional[MemoryStore] = None,
               jwt_secret: str = JWT_SECRET,
               heartbeat_interval: float = HEARTBEAT_INTERVAL) -> web.Application:
    """Create and configure the aiohttp application"""
    if store is None:
        store = MemoryStore.from_file(SEED_FILE) if SEED_FILE else MemoryStore()

    verifier = TokenVerifier(jwt_secret)
    hub = RoomHub(verifier, heartbeat_interval=heartbeat_interval,
                  outbox_limit=OUTBOX_LIMIT, can_join=store.is_member)

    app = web.Application(middlewares=[error_middleware, auth_middleware])
    app[STORE_KEY] = store
    app[VERIFIER_KEY] = verifier
    app[HUB_KEY] = hub

    app.router.add_get("/health", health)

    # WebSocket for live group updates
    app.router.add_get("/ws", ws_group_updates)

    # API routes
    app.router.add_post("/api/groups/join/{uuid}", api_join_group)
    app.router.add_get("/api/groups/{group_id}/selections", api_group_selections)
    app.router.add_get("/api/groups/{group_id}/selections/me", api_my_selections)
    app.router.add_post("/api/groups/{group_id}/selections", api_add_selection)
    app.router.add_delete("/api/groups/{group_id}/selections/{act_id}", api_remove_selection)
    app.router.add_get("/api/groups/{group_id}/events/{event_id}/conflicts", api_conflicts)
    app.router.add_delete("/api/groups/{group_id}/members/me", api_leave_group)
    app.router.add_get("/api/groups/{group_id}/presence", api_presence)

    app.on_startup.append(start_heartbeat)
    app.on_cleanup.append(stop_heartbeat)

    logger.info("🎧 Festival sync server ready • heartbeat every %ss", heartbeat_interval)
    return app


def main():
    app = create_app()
    logger.info(f"🚀 Starting server on {SERVER_HOST}:{PORT}")
    web.run_app(app, host=SERVER_HOST, port=PORT)


if __name__ == "__main__":
    main()
