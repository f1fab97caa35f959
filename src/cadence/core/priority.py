"""Priority model: P1-P4 tiers and the weighted 0-1 task score.

Pure functions - no I/O. The heuristics read the task's title and content
and never raise on missing optional fields.
"""

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import IntEnum

from cadence.core import keywords as kw
from cadence.core.tasks import Task

# Bullet or numbered item at the start of a line: "- x", "• x", "1. x", "a) x".
_LIST_ITEM = re.compile(r"^\s*(?:[-•*]|\d+[.)]|[a-z]\))\s")

BUSINESS_HOURS = (9, 18)


class PriorityTier(IntEnum):
    """Scheduling tier. Lower value means more urgent."""

    P1_CRITICAL = 1
    P2_HIGH = 2
    P3_MEDIUM = 3
    P4_LOW = 4

    @property
    def native_priority(self) -> int:
        return _NATIVE_PRIORITY[self]

    @property
    def may_displace(self) -> bool:
        """P1 and P2 may take a slot held by a less urgent busy interval."""
        return self <= PriorityTier.P2_HIGH

    @property
    def label(self) -> str:
        return self.name.split("_")[0]


_NATIVE_PRIORITY = {
    PriorityTier.P1_CRITICAL: 5,
    PriorityTier.P2_HIGH: 3,
    PriorityTier.P3_MEDIUM: 1,
    PriorityTier.P4_LOW: 0,
}


def tier_for_priority(native: int | None) -> PriorityTier:
    native = native or 0
    if native >= 5:
        return PriorityTier.P1_CRITICAL
    if native >= 3:
        return PriorityTier.P2_HIGH
    if native >= 1:
        return PriorityTier.P3_MEDIUM
    return PriorityTier.P4_LOW


def tier_of(task: Task) -> PriorityTier:
    return tier_for_priority(task.priority)


@dataclass
class PriorityWeights:
    """Component weights. They are expected to sum to 1, which is not enforced."""

    complexity: float = 0.4
    urgency: float = 0.3
    duration: float = 0.2
    context: float = 0.1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def complexity_score(task: Task) -> float:
    text = task.text
    score = min(len(text) / 200, 1.0)

    if kw.contains_any(text, kw.COMPLEXITY_HIGH):
        score = max(score, 0.9)
    if kw.contains_any(text, kw.COMPLEXITY_MEDIUM):
        score = max(score, 0.6)
    if kw.contains_any(text, kw.COMPLEXITY_LOW):
        score = min(score, 0.3)

    lines = [task.title or "", *(task.content or "").splitlines()]
    if any(_LIST_ITEM.match(line.lower()) for line in lines):
        score += 0.2

    return _clamp(score)


def urgency_score(task: Task, now: datetime | None = None) -> float:
    now = now or datetime.now(task.due.tzinfo if task.due else None)
    text = task.text
    score = 0.5

    if kw.contains_any(text, kw.URGENCY_HIGH):
        score = 0.9
    elif kw.contains_any(text, kw.URGENCY_MEDIUM):
        score = 0.6
    elif kw.contains_any(text, kw.URGENCY_LOW):
        score = 0.3

    if task.due is not None:
        due = task.due
        if due.tzinfo is None and now.tzinfo is not None:
            due = due.replace(tzinfo=now.tzinfo)
        elif due.tzinfo is not None and now.tzinfo is None:
            now = now.replace(tzinfo=due.tzinfo)
        days = (due - now).total_seconds() / 86400
        if days < 0:
            score = 1.0
        elif days < 1:
            score = max(score, 0.9)
        elif days < 3:
            score = max(score, 0.7)
        elif days < 7:
            score = max(score, 0.5)

    if task.priority and task.priority > 0:
        score += task.priority * 0.1

    return _clamp(score)


def duration_score(task: Task) -> float:
    text = task.text
    words = len(f"{task.title} {task.content or ''}".split(" "))

    if words > 50:
        score = 0.8
    elif words > 20:
        score = 0.6
    else:
        score = 0.4

    if kw.contains_any(text, kw.LONG_TASK_KEYWORDS):
        score = max(score, 0.8)
    if kw.contains_any(text, kw.SHORT_TASK_KEYWORDS):
        score = min(score, 0.3)

    if task.time_estimate:
        minutes = task.time_estimate
        if minutes > 120:
            score = 0.9
        elif minutes > 60:
            score = 0.7
        elif minutes > 30:
            score = 0.5
        else:
            score = 0.3

    return score


def context_score(
    task: Task,
    now: datetime | None = None,
    special_tags: kw.KeywordTable = kw.SPECIAL_TAGS,
) -> float:
    now = now or datetime.now()
    text = task.text
    score = 0.5

    tag_weights = {rule.keyword: rule.weight for rule in special_tags}
    for tag in task.tags:
        score = max(score, tag_weights.get(tag.lower(), score))

    if task.project_id:
        score += 0.1

    if BUSINESS_HOURS[0] <= now.hour <= BUSINESS_HOURS[1] and kw.contains_any(text, kw.BUSINESS_KEYWORDS):
        score += 0.2

    if now.weekday() < 5:
        if kw.contains_any(text, kw.PROFESSIONAL_KEYWORDS):
            score += 0.1
    elif kw.contains_any(text, kw.PERSONAL_KEYWORDS):
        score += 0.1

    return _clamp(score)


def score_of(
    task: Task,
    weights: PriorityWeights | None = None,
    now: datetime | None = None,
    special_tags: kw.KeywordTable = kw.SPECIAL_TAGS,
) -> float:
    """Weighted score in [0, 1], rounded to two decimals."""
    weights = weights or PriorityWeights()
    score = (
        complexity_score(task) * weights.complexity
        + urgency_score(task, now) * weights.urgency
        + duration_score(task) * weights.duration
        + context_score(task, now, special_tags) * weights.context
    )
    return _clamp(round(score, 2))


def score_details(
    task: Task,
    weights: PriorityWeights | None = None,
    now: datetime | None = None,
) -> dict:
    """Per-component breakdown of ``score_of``."""
    weights = weights or PriorityWeights()
    return {
        "complexity": complexity_score(task),
        "urgency": urgency_score(task, now),
        "duration": duration_score(task),
        "context": context_score(task, now),
        "score": score_of(task, weights, now),
        "tier": tier_of(task).label,
        "weights": asdict(weights),
    }


def rank_tasks(
    tasks: list[Task],
    weights: PriorityWeights | None = None,
    now: datetime | None = None,
) -> list[tuple[Task, float]]:
    """Tasks paired with their score, highest first. Ties keep input order."""
    scored = [(t, score_of(t, weights, now)) for t in tasks]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def estimate_duration(task: Task) -> int:
    """Expected working time in minutes."""
    if task.time_estimate:
        return task.time_estimate

    text = task.text
    words = len(text.split(" "))
    if words > 50 or "développement" in text or "création" in text:
        return 120
    if words > 20 or "formation" in text or "rédaction" in text:
        return 90
    if "appel" in text or "email" in text:
        return 30
    return 60
