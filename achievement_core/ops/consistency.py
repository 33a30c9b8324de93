"""Cross-store reconciliation between achievement references and detail documents.

Nothing here repairs data; it reports what the workflow's compensating and
cascading steps left behind when they failed.
"""

from __future__ import annotations

from typing import Any

from achievement_core.errors import ApiError
from achievement_core.models import AchievementStatus
from achievement_core.repositories.details import parse_detail_ref


def _normalized_ref(raw: Any) -> str | None:
    try:
        return str(parse_detail_ref(raw))
    except ApiError:
        return None


def find_inconsistencies(*, references: list[dict[str, Any]], details: list[dict[str, Any]]) -> dict[str, Any]:
    details_by_id = {str(x["detail_id"]): x for x in details}
    live_refs: dict[str, dict[str, Any]] = {}
    deleted_refs: dict[str, dict[str, Any]] = {}
    corrupt_references: list[dict[str, Any]] = []

    for ref in references:
        normalized = _normalized_ref(ref.get("detail_ref"))
        is_deleted = ref.get("status") == AchievementStatus.DELETED.value
        if normalized is not None:
            (deleted_refs if is_deleted else live_refs)[normalized] = ref
        if is_deleted:
            continue
        reason: str | None = None
        if normalized is None:
            reason = "unparsable_detail_ref"
        else:
            detail = details_by_id.get(normalized)
            if detail is None:
                reason = "missing_detail"
            elif detail.get("deleted_at") is not None:
                reason = "detail_deleted"
            elif detail.get("student_id") != ref.get("student_id"):
                reason = "student_mismatch"
        if reason is not None:
            corrupt_references.append(
                {
                    "reference_id": ref.get("reference_id"),
                    "detail_ref": ref.get("detail_ref"),
                    "status": ref.get("status"),
                    "reason": reason,
                }
            )

    orphan_details: list[dict[str, Any]] = []
    for detail_id, detail in details_by_id.items():
        if detail.get("deleted_at") is not None or detail_id in live_refs:
            continue
        orphan_details.append(
            {
                "detail_id": detail_id,
                "student_id": detail.get("student_id"),
                "reason": "reference_deleted" if detail_id in deleted_refs else "no_reference",
            }
        )

    return {
        "consistent": not corrupt_references and not orphan_details,
        "reference_count": len(references),
        "detail_count": len(details),
        "orphan_details": sorted(orphan_details, key=lambda x: x["detail_id"]),
        "corrupt_references": sorted(corrupt_references, key=lambda x: str(x["reference_id"])),
    }


def check_backends(*, references_repository: Any, details_repository: Any) -> dict[str, Any]:
    return find_inconsistencies(
        references=references_repository.list_all(),
        details=details_repository.list_all(),
    )
