from __future__ import annotations

from collections import Counter
from typing import Any

from achievement_core.errors import forbidden
from achievement_core.merge import merge_references
from achievement_core.models import AchievementStatus, CallerIdentity, QueryConstraint


def _competition_level(record: dict[str, Any]) -> str:
    details = record.get("details") or {}
    level = details.get("competitionLevel") or details.get("competition_level")
    return str(level) if level else "unspecified"


def summarize_achievements(records: list[dict[str, Any]]) -> dict[str, Any]:
    by_status: Counter[str] = Counter()
    by_type: Counter[str] = Counter()
    by_level: Counter[str] = Counter()
    verified_points = 0.0
    for record in records:
        by_status[str(record.get("status"))] += 1
        by_type[str(record.get("achievement_type") or "unspecified")] += 1
        by_level[_competition_level(record)] += 1
        if record.get("status") == AchievementStatus.VERIFIED.value:
            verified_points += float(record.get("points") or 0)
    return {
        "total": len(records),
        "by_status": dict(sorted(by_status.items())),
        "by_type": dict(sorted(by_type.items())),
        "by_competition_level": dict(sorted(by_level.items())),
        "verified_points": verified_points,
    }


def achievement_statistics(workflow: Any, *, caller: CallerIdentity) -> dict[str, Any]:
    """Statistics over the achievements visible to ``caller``."""
    return summarize_achievements(workflow.list_achievements(caller=caller))


def student_report(workflow: Any, *, caller: CallerIdentity, student_id: str) -> dict[str, Any]:
    """One student's visible achievements with summary counts.

    Admins may request any student, advisors their advisees, students themselves.
    """
    constraint = workflow.resolver.resolve(caller)
    if constraint.student_ids is not None and student_id not in constraint.student_ids:
        raise forbidden("not permitted to view this student's report")
    scoped = QueryConstraint(student_ids=(student_id,), excluded_statuses=constraint.excluded_statuses)
    records = merge_references(workflow.references.list(constraint=scoped), workflow.details)
    report = summarize_achievements(records)
    report["student_id"] = student_id
    report["achievements"] = records
    return report
