from __future__ import annotations

import logging
from typing import Any

from achievement_core.errors import ApiError
from achievement_core.repositories.details import parse_detail_ref

logger = logging.getLogger(__name__)


def merge_record(reference: dict[str, Any], detail: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": reference["reference_id"],
        "student_id": reference["student_id"],
        "detail_ref": reference["detail_ref"],
        "status": reference["status"],
        "created_at": reference.get("created_at"),
        "updated_at": reference.get("updated_at"),
        "submitted_at": reference.get("submitted_at"),
        "verified_at": reference.get("verified_at"),
        "verified_by": reference.get("verified_by"),
        "rejection_note": reference.get("rejection_note"),
        "achievement_type": detail.get("achievement_type"),
        "title": detail.get("title"),
        "description": detail.get("description"),
        "details": detail.get("details") or {},
        "tags": list(detail.get("tags") or []),
        "points": detail.get("points"),
        "attachments": [dict(x) for x in detail.get("attachments") or []],
        "content_updated_at": detail.get("updated_at"),
    }


def merge_references(references: list[dict[str, Any]], details_repository: Any) -> list[dict[str, Any]]:
    """Join references with their detail documents, keeping reference order.

    References whose detail is missing from the batch, or whose ``detail_ref``
    cannot be parsed, are dropped from the output.
    """
    wanted: list[str] = []
    for ref in references:
        try:
            wanted.append(str(parse_detail_ref(ref.get("detail_ref"))))
        except ApiError:
            continue
    details = details_repository.get_many(detail_ids=wanted) if wanted else []
    by_id = {str(item["detail_id"]): item for item in details}

    merged: list[dict[str, Any]] = []
    dropped = 0
    for ref in references:
        detail = by_id.get(str(ref.get("detail_ref") or "").lower())
        if detail is None:
            dropped += 1
            continue
        merged.append(merge_record(ref, detail))
    if dropped:
        logger.warning("merge_dropped_references dropped=%s total=%s", dropped, len(references))
    return merged
