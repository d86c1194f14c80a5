import math
from typing import Any, Dict, Iterable

from config import KEY_TOTAL_PROGRESS, KEY_CURRENT_PROGRESS

MIN_PROGRESS = 0
MAX_PROGRESS = 100


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def fold_daily_progress(member: Dict[str, Any]) -> Dict[str, Any]:
    """
    Commit a member's daily delta: add currentProgress into totalProgress
    (clamped to 0-100) and reset currentProgress to 0. Mutates and returns member.
    """
    total = int(member.get(KEY_TOTAL_PROGRESS) or 0)
    current = int(member.get(KEY_CURRENT_PROGRESS) or 0)

    member[KEY_TOTAL_PROGRESS] = int(clamp(total + current, MIN_PROGRESS, MAX_PROGRESS))
    member[KEY_CURRENT_PROGRESS] = 0
    return member


def recompute_task_progress(members: Iterable[Dict[str, Any]]) -> int:
    members = list(members)
    if not members:
        return 0
    total = sum(int(m.get(KEY_TOTAL_PROGRESS) or 0) for m in members)
    return round_half_up(total / len(members))
