"""
In-memory storage for users, groups, the festival lineup and act selections
"""
import itertools
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .utils import is_extended_time

logger = logging.getLogger("festival_sync")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MemoryStore:
    """
    Dict-backed stand-in for the relational store

    users:      user_id -> {id, email, displayName}
    groups:     group_id -> {id, uuid, name, creatorId}
    members:    group_id -> {user_id}
    group_events: group_id -> {event_id}
    stages:     stage_id -> {id, name}
    acts:       act_id -> {id, eventId, dayId, stageId, name, startTime, endTime}
    selections: (user_id, group_id, act_id) -> {id, userId, groupId, actId, priority, createdAt}
    """

    def __init__(self):
        self.users: Dict[int, dict] = {}
        self.groups: Dict[int, dict] = {}
        self.members: Dict[int, Set[int]] = {}
        self.group_events: Dict[int, Set[int]] = {}
        self.stages: Dict[int, dict] = {}
        self.acts: Dict[int, dict] = {}
        self.selections: Dict[Tuple[int, int, int], dict] = {}
        self._selection_ids = itertools.count(1)

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryStore":
        """
        Build a store from a seed document:
        {"users": [...], "groups": [{id, uuid, name, creatorId, memberIds, eventIds}],
         "stages": [...], "acts": [...], "selections": [{userId, groupId, actId, priority}]}
        """
        store = cls()
        for user in data.get("users", []):
            store.add_user(user["id"], user.get("email", ""), user.get("displayName", ""))
        for group in data.get("groups", []):
            store.add_group(group["id"], group.get("name", ""),
                            member_ids=group.get("memberIds", ()),
                            event_ids=group.get("eventIds", ()),
                            creator_id=group.get("creatorId"),
                            invite=group.get("uuid"))
        for stage in data.get("stages", []):
            store.add_stage(stage["id"], stage.get("name", ""))
        for act in data.get("acts", []):
            store.add_act(act["id"], act["eventId"], act["dayId"], act["stageId"],
                          act["name"], act["startTime"], act["endTime"])
        for sel in data.get("selections", []):
            store.upsert_selection(sel["userId"], sel["groupId"], sel["actId"], sel.get("priority", 1))
        return store

    @classmethod
    def from_file(cls, path) -> "MemoryStore":
        path = Path(path)
        store = cls.from_dict(json.loads(path.read_text()))
        logger.info("📦 Loaded seed data from %s (%d acts, %d selections)",
                    path, len(store.acts), len(store.selections))
        return store

    # ============================================================
    # USERS, GROUPS, LINEUP
    # ============================================================

    def add_user(self, user_id: int, email: str, display_name: str) -> dict:
        user = {"id": user_id, "email": email, "displayName": display_name}
        self.users[user_id] = user
        return user

    def get_user(self, user_id: int) -> Optional[dict]:
        return self.users.get(user_id)

    def add_group(self, group_id: int, name: str, member_ids=(), event_ids=(),
                  creator_id: Optional[int] = None, invite: Optional[str] = None) -> dict:
        """Create a group; the creator is always a member and the invite uuid is its join secret"""
        group = {
            "id": group_id,
            "uuid": invite or str(uuid.uuid4()),
            "name": name,
            "creatorId": creator_id,
        }
        self.groups[group_id] = group
        self.members[group_id] = set(member_ids)
        if creator_id is not None:
            self.members[group_id].add(creator_id)
        self.group_events[group_id] = set(event_ids)
        return group

    def find_group_by_uuid(self, invite: str) -> Optional[dict]:
        for group in self.groups.values():
            if group["uuid"] == invite:
                return group
        return None

    def add_member(self, group_id: int, user_id: int) -> bool:
        """Add a user to a group; False if already a member"""
        members = self.members.setdefault(group_id, set())
        if user_id in members:
            return False
        members.add(user_id)
        return True

    def remove_member(self, group_id: int, user_id: int) -> bool:
        """Drop a user from a group together with their selections in it"""
        members = self.members.get(group_id, set())
        if user_id not in members:
            return False
        members.discard(user_id)
        for key in [k for k in self.selections if k[0] == user_id and k[1] == group_id]:
            del self.selections[key]
        return True

    def is_member(self, group_id: int, user_id: int) -> bool:
        return user_id in self.members.get(group_id, ())

    def add_stage(self, stage_id: int, name: str) -> dict:
        stage = {"id": stage_id, "name": name}
        self.stages[stage_id] = stage
        return stage

    def add_act(self, act_id: int, event_id: int, day_id: int, stage_id: int,
                name: str, start_time: str, end_time: str) -> dict:
        for value in (start_time, end_time):
            if not is_extended_time(value):
                raise ValueError(f"Invalid time {value!r}, expected HH:MM between 00:00 and 29:59")
        act = {
            "id": act_id,
            "eventId": event_id,
            "dayId": day_id,
            "stageId": stage_id,
            "name": name,
            "startTime": start_time,
            "endTime": end_time,
        }
        self.acts[act_id] = act
        return act

    def act_in_group(self, group_id: int, act_id: int) -> bool:
        act = self.acts.get(act_id)
        return act is not None and act["eventId"] in self.group_events.get(group_id, ())

    # ============================================================
    # SELECTIONS
    # ============================================================

    def upsert_selection(self, user_id: int, group_id: int, act_id: int,
                         priority: int = 1) -> Tuple[dict, bool]:
        """Create a selection or update its priority; returns (selection, created)"""
        key = (user_id, group_id, act_id)
        existing = self.selections.get(key)
        if existing is not None:
            existing["priority"] = priority
            return existing, False

        selection = {
            "id": next(self._selection_ids),
            "userId": user_id,
            "groupId": group_id,
            "actId": act_id,
            "priority": priority,
            "createdAt": now_iso(),
        }
        self.selections[key] = selection
        return selection, True

    def remove_selection(self, user_id: int, group_id: int, act_id: int) -> bool:
        return self.selections.pop((user_id, group_id, act_id), None) is not None

    def user_selections(self, group_id: int, user_id: int) -> List[dict]:
        return [dict(s) for s in self.selections.values()
                if s["groupId"] == group_id and s["userId"] == user_id]

    def group_selections(self, group_id: int) -> List[dict]:
        rows = []
        for s in self.selections.values():
            if s["groupId"] != group_id:
                continue
            user = self.users.get(s["userId"], {})
            rows.append(dict(s, user={
                "id": s["userId"],
                "email": user.get("email"),
                "displayName": user.get("displayName"),
            }))
        return rows

    def conflict_rows(self, group_id: int, event_id: int) -> List[dict]:
        """
        Selections joined with act, stage and user data for one group and event,
        ordered by user, day and start time
        """
        rows = []
        for s in self.selections.values():
            act = self.acts.get(s["actId"])
            if s["groupId"] != group_id or act is None or act["eventId"] != event_id:
                continue
            rows.append({
                "userId": s["userId"],
                "userName": self.users.get(s["userId"], {}).get("displayName"),
                "dayId": act["dayId"],
                "actId": act["id"],
                "actName": act["name"],
                "stageId": act["stageId"],
                "stageName": self.stages.get(act["stageId"], {}).get("name"),
                "startTime": act["startTime"],
                "endTime": act["endTime"],
            })
        rows.sort(key=lambda r: (r["userId"], r["dayId"], r["startTime"]))
        return rows
