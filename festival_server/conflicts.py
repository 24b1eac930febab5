"""
Schedule conflict detection over a group's act selections
"""
from typing import Dict, Iterable, List

from .utils import format_time_range


def overlaps(a: dict, b: dict) -> bool:
    """
    Strict overlap of two acts' [startTime, endTime) windows

    Times are zero-padded "HH:MM" tokens with hours up to 29, so plain string
    comparison is chronological within one festival day. Touching endpoints
    do not overlap.
    """
    return a["startTime"] < b["endTime"] and b["startTime"] < a["endTime"]


def _act_ref(selection: dict) -> dict:
    return {
        "actId": selection["actId"],
        "actName": selection.get("actName"),
        "stageId": selection.get("stageId"),
        "stageName": selection.get("stageName"),
        "startTime": selection["startTime"],
        "endTime": selection["endTime"],
        "timeRange": format_time_range(selection["startTime"], selection["endTime"]),
    }


def detect_conflicts(selections: Iterable[dict]) -> List[dict]:
    """
    Report every pair of acts one user picked on the same day whose times overlap

    Args:
        selections: Rows with userId, dayId, actId, startTime, endTime and
            optionally actName, stageId, stageName, userName. Input order is
            kept inside each user/day bucket and decides which act comes first.

    Returns:
        Conflict dicts: {userId, userName, dayId, acts: [first, second]}
    """
    by_user: Dict[int, Dict[int, List[dict]]] = {}
    for selection in selections:
        days = by_user.setdefault(selection["userId"], {})
        days.setdefault(selection["dayId"], []).append(selection)

    conflicts = []
    for user_id, days in by_user.items():
        for day_id, day_selections in days.items():
            for i, a in enumerate(day_selections):
                for b in day_selections[i + 1:]:
                    if overlaps(a, b):
                        conflicts.append({
                            "userId": user_id,
                            "userName": a.get("userName"),
                            "dayId": day_id,
                            "acts": [_act_ref(a), _act_ref(b)],
                        })
    return conflicts
