"""
HTTP and WebSocket handlers for the festival sync server
Selection writes persist first, then notify the group room best-effort
"""
import logging
from datetime import datetime, timezone

from aiohttp import WSMsgType, web

from . import messages
from .auth import AuthError, TokenVerifier, bearer_token
from .conflicts import detect_conflicts
from .hub import RoomHub
from .store import MemoryStore

logger = logging.getLogger("festival_sync")

HUB_KEY = web.AppKey("hub", RoomHub)
STORE_KEY = web.AppKey("store", MemoryStore)
VERIFIER_KEY = web.AppKey("verifier", TokenVerifier)

# Seconds to wait for the peer's close frame
WS_CLOSE_TIMEOUT = 5.0


class ApiError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def error_response(message: str, status: int) -> web.Response:
    return web.json_response({"ok": False, "error": message}, status=status)


# ============================================================
# MIDDLEWARE
# ============================================================

@web.middleware
async def error_middleware(request, handler):
    """Render ApiError and unexpected failures as JSON"""
    try:
        return await handler(request)
    except ApiError as e:
        return error_response(e.message, e.status)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unexpected error handling %s %s", request.method, request.path)
        return error_response("Internal server error", 500)


@web.middleware
async def auth_middleware(request, handler):
    """Require a valid bearer token on every /api route"""
    if not request.path.startswith("/api/"):
        return await handler(request)

    verifier = request.app[VERIFIER_KEY]
    try:
        claims = verifier.verify(bearer_token(request.headers.get("Authorization")))
    except AuthError as e:
        return error_response(e.detail, e.status)

    request["user_id"] = claims["userId"]
    return await handler(request)


# ============================================================
# HELPERS
# ============================================================

def _int_param(request: web.Request, name: str) -> int:
    try:
        return int(request.match_info[name])
    except ValueError:
        raise ApiError(f"{name} must be an integer", 400)


async def _json_body(request: web.Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise ApiError("Request body must be JSON", 400)
    if not isinstance(data, dict):
        raise ApiError("Request body must be an object", 400)
    return data


def _require_member(store: MemoryStore, group_id: int, user_id: int):
    if not store.is_member(group_id, user_id):
        raise ApiError("Not a member of this group", 403)


def notify_group(app: web.Application, group_id: int, event: dict, exclude_user_id=None):
    """Fan an event out to the group's room; never fails the caller"""
    hub = app.get(HUB_KEY)
    if hub is None:
        return
    try:
        hub.broadcast(group_id, event, exclude_user_id=exclude_user_id)
    except Exception as e:
        logger.warning(f"Broadcast to group {group_id} failed: {e}")


# ============================================================
# WEBSOCKET
# ============================================================

async def ws_group_updates(request: web.Request) -> web.WebSocketResponse:
    """WebSocket endpoint for live group selection updates (?token=<jwt>)"""
    hub = request.app[HUB_KEY]
    ws = web.WebSocketResponse(timeout=WS_CLOSE_TIMEOUT)
    await ws.prepare(request)

    try:
        session = hub.authenticate(ws, request.query.get("token"))
    except AuthError as e:
        logger.info(f"📡 Rejected WebSocket connection: {e.detail}")
        await ws.close(code=e.close_code, message=e.detail.encode())
        return ws

    session.start()
    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                hub.handle_text(session, msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.debug(f"WebSocket error for user {session.user_id}: {ws.exception()}")
            else:
                logger.warning("Ignoring non-text frame from user %s", session.user_id)
    finally:
        hub.disconnect(session)
        session.stop()

    return ws


# ============================================================
# SELECTIONS
# ============================================================

async def api_group_selections(request: web.Request) -> web.Response:
    """All selections in a group, with the selecting user"""
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    _require_member(store, group_id, request["user_id"])
    return web.json_response({"ok": True, "data": store.group_selections(group_id)})


async def api_my_selections(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    user_id = request["user_id"]
    _require_member(store, group_id, user_id)
    return web.json_response({"ok": True, "data": store.user_selections(group_id, user_id)})


async def api_add_selection(request: web.Request) -> web.Response:
    """Select an act, or change its priority if already selected"""
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    user_id = request["user_id"]
    _require_member(store, group_id, user_id)

    data = await _json_body(request)
    act_id = data.get("actId")
    priority = data.get("priority", 1)
    if not isinstance(act_id, int) or isinstance(act_id, bool):
        raise ApiError("actId must be an integer", 400)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise ApiError("priority must be an integer", 400)

    if not store.act_in_group(group_id, act_id):
        raise ApiError("Act is not part of any event in this group", 400)

    selection, created = store.upsert_selection(user_id, group_id, act_id, priority)
    if not created:
        return web.json_response({"ok": True, "data": selection})

    user = store.get_user(user_id) or {}
    notify_group(
        request.app, group_id,
        messages.selection_added(user_id, act_id, group_id, user.get("displayName"), priority),
        exclude_user_id=user_id,
    )
    return web.json_response({"ok": True, "data": selection}, status=201)


async def api_remove_selection(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    act_id = _int_param(request, "act_id")
    user_id = request["user_id"]
    _require_member(store, group_id, user_id)

    if store.remove_selection(user_id, group_id, act_id):
        notify_group(
            request.app, group_id,
            messages.selection_removed(user_id, act_id, group_id),
            exclude_user_id=user_id,
        )

    return web.json_response({"ok": True, "data": {"message": "Selection removed"}})


async def api_conflicts(request: web.Request) -> web.Response:
    """Overlapping picks per user and day for one event, recomputed on every call"""
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    event_id = _int_param(request, "event_id")
    _require_member(store, group_id, request["user_id"])

    conflicts = detect_conflicts(store.conflict_rows(group_id, event_id))
    return web.json_response({"ok": True, "data": conflicts})


# ============================================================
# MEMBERSHIP & PRESENCE
# ============================================================

async def api_join_group(request: web.Request) -> web.Response:
    """Join a group through its invite uuid"""
    store = request.app[STORE_KEY]
    user_id = request["user_id"]

    group = store.find_group_by_uuid(request.match_info["uuid"])
    if group is None:
        raise ApiError("Group not found", 404)
    group_id = group["id"]

    if not store.add_member(group_id, user_id):
        raise ApiError("Already a member of this group", 409)

    user = store.get_user(user_id) or {"id": user_id}
    logger.info("🎪 User %s joined group %s", user_id, group_id)
    notify_group(request.app, group_id, messages.member_joined(group_id, user),
                 exclude_user_id=user_id)

    return web.json_response({"ok": True, "data": group})


async def api_leave_group(request: web.Request) -> web.Response:
    """Leave a group; the user's selections in it go too"""
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    user_id = request["user_id"]
    _require_member(store, group_id, user_id)

    if store.groups.get(group_id, {}).get("creatorId") == user_id:
        raise ApiError("Creator cannot leave the group. Delete it instead.", 400)

    store.remove_member(group_id, user_id)
    hub = request.app.get(HUB_KEY)
    if hub is not None:
        hub.leave_user(group_id, user_id)
    logger.info("🛑 User %s left group %s", user_id, group_id)
    notify_group(request.app, group_id, messages.member_left(group_id, user_id))

    return web.json_response({"ok": True})


async def api_presence(request: web.Request) -> web.Response:
    """How many live connections are watching a group's calendar"""
    store = request.app[STORE_KEY]
    group_id = _int_param(request, "group_id")
    _require_member(store, group_id, request["user_id"])

    count = request.app[HUB_KEY].connection_count(group_id)
    return web.json_response({"ok": True, "data": {"groupId": group_id, "connections": count}})


async def health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })
