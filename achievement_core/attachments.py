from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from achievement_core.errors import invalid_state, not_found, not_owner
from achievement_core.models import AchievementStatus, CallerIdentity
from achievement_core.repositories.details import parse_detail_ref
from achievement_core.schemas import AttachmentMeta, parse_attachment
from achievement_core.workflow import load_reference, require_student_id, utcnow_iso

logger = logging.getLogger(__name__)


class AttachmentManager:
    """Append attachment metadata to a detail document; workflow status is untouched."""

    def __init__(
        self,
        *,
        references: Any,
        details: Any,
        directory: Any,
        now: Callable[[], str] | None = None,
    ) -> None:
        self._references = references
        self._details = details
        self._directory = directory
        self._now = now or utcnow_iso

    def add_attachment(
        self,
        *,
        reference_id: str,
        caller: CallerIdentity,
        attachment_meta: AttachmentMeta | dict[str, Any],
    ) -> dict[str, Any]:
        student_id = require_student_id(self._directory, caller)
        meta = parse_attachment(attachment_meta)
        ref = load_reference(self._references, reference_id)
        if ref["student_id"] != student_id:
            raise not_owner()
        if ref["status"] == AchievementStatus.DELETED.value:
            raise invalid_state("attachments cannot be added to a deleted achievement")
        detail_id = str(parse_detail_ref(ref["detail_ref"]))
        now = self._now()
        attachment = meta.to_record(default_uploaded_at=now)
        if not self._details.push_attachment(detail_id=detail_id, attachment=attachment, updated_at=now):
            logger.error("attachment_detail_missing reference_id=%s detail_ref=%s", reference_id, detail_id)
            raise not_found("achievement detail not found")
        logger.info("attachment_added reference_id=%s file_name=%s", reference_id, attachment["file_name"])
        return attachment
