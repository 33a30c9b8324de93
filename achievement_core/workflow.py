from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from achievement_core.errors import (
    ApiError,
    forbidden,
    internal_failure,
    invalid_state,
    not_found,
    not_owner,
    validation_error,
)
from achievement_core.merge import merge_record, merge_references
from achievement_core.models import (
    AchievementStatus,
    CallerIdentity,
    Role,
    WorkflowAction,
    next_status,
)
from achievement_core.schemas import AchievementContent, parse_content
from achievement_core.visibility import VisibilityResolver

logger = logging.getLogger(__name__)


def utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


def _new_reference_id() -> str:
    return f"ach_{uuid.uuid4().hex}"


def require_student_id(directory: Any, caller: CallerIdentity) -> str:
    if Role.parse(caller.role) is not Role.STUDENT:
        raise forbidden("only students can perform this action")
    student_id = directory.resolve_student_id_for_user(user_id=caller.caller_id)
    if not student_id:
        raise forbidden("account is not linked to a student record")
    return student_id


def load_reference(references: Any, reference_id: str) -> dict[str, Any]:
    """Fetch a reference for mutation; deleted rows are returned and fail the transition check."""
    ref = references.get(reference_id=reference_id)
    if ref is None:
        raise not_found()
    return ref


class AchievementWorkflow:
    """Lifecycle of split achievement records.

    The reference (relational) carries status and ownership, the detail
    (document) carries content. Status changes are conditional updates on the
    reference only; content changes touch the detail only.
    """

    def __init__(
        self,
        *,
        references: Any,
        details: Any,
        directory: Any,
        resolver: VisibilityResolver | None = None,
        now: Callable[[], str] | None = None,
    ) -> None:
        self._references = references
        self._details = details
        self._directory = directory
        self._resolver = resolver or VisibilityResolver(directory)
        self._now = now or utcnow_iso

    @property
    def references(self) -> Any:
        return self._references

    @property
    def details(self) -> Any:
        return self._details

    @property
    def resolver(self) -> VisibilityResolver:
        return self._resolver

    def create(self, *, caller: CallerIdentity, content: AchievementContent | dict[str, Any]) -> dict[str, Any]:
        """Write the detail, then the reference; hard-delete the detail if the second write fails.

        Not idempotent: a retried create after an ambiguous failure can leave two records.
        """
        student_id = require_student_id(self._directory, caller)
        parsed = parse_content(content)
        now = self._now()
        attachments = [item.to_record(default_uploaded_at=now) for item in parsed.attachments]
        detail = self._details.insert(
            detail={
                "student_id": student_id,
                "achievement_type": parsed.achievement_type,
                "title": parsed.title,
                "description": parsed.description,
                "details": dict(parsed.details),
                "tags": list(parsed.tags),
                "points": parsed.points,
                "attachments": attachments,
                "created_at": now,
                "updated_at": now,
                "deleted_at": None,
            }
        )
        reference = {
            "reference_id": _new_reference_id(),
            "student_id": student_id,
            "detail_ref": detail["detail_id"],
            "status": AchievementStatus.DRAFT.value,
            "created_at": now,
            "submitted_at": None,
            "verified_at": None,
            "verified_by": None,
            "rejection_note": None,
            "updated_at": now,
        }
        try:
            created = self._references.create(reference=reference)
        except Exception as exc:
            self._compensate_create(detail_id=detail["detail_id"], reference_id=reference["reference_id"])
            if isinstance(exc, ApiError):
                raise
            raise internal_failure("failed to store achievement reference") from exc
        logger.info(
            "achievement_created reference_id=%s student_id=%s detail_ref=%s",
            created["reference_id"],
            student_id,
            detail["detail_id"],
        )
        return merge_record(created, detail)

    def _compensate_create(self, *, detail_id: str, reference_id: str) -> None:
        try:
            removed = self._details.hard_delete(detail_id=detail_id)
        except Exception:
            logger.exception(
                "create_compensation_failed reference_id=%s detail_ref=%s",
                reference_id,
                detail_id,
            )
            return
        if not removed:
            logger.error("create_compensation_missing reference_id=%s detail_ref=%s", reference_id, detail_id)
            return
        logger.warning("create_compensated reference_id=%s detail_ref=%s", reference_id, detail_id)

    def _apply(
        self,
        *,
        ref: dict[str, Any],
        action: WorkflowAction,
        changes: dict[str, Any],
        student_id: str | None = None,
    ) -> dict[str, Any]:
        target = next_status(ref["status"], action)
        updated = self._references.transition(
            reference_id=ref["reference_id"],
            expected_status=ref["status"],
            new_status=target.value,
            updated_at=self._now(),
            changes=changes,
            student_id=student_id,
        )
        if updated is None:
            raise invalid_state(f"achievement is no longer {ref['status']}; re-read and retry")
        logger.info(
            "achievement_transition reference_id=%s action=%s from=%s to=%s",
            ref["reference_id"],
            action.value,
            ref["status"],
            target.value,
        )
        return updated

    def submit(self, *, reference_id: str, caller: CallerIdentity) -> dict[str, Any]:
        student_id = require_student_id(self._directory, caller)
        ref = load_reference(self._references, reference_id)
        if ref["student_id"] != student_id:
            raise not_owner()
        now = self._now()
        return self._apply(
            ref=ref,
            action=WorkflowAction.SUBMIT,
            changes={
                "submitted_at": now,
                "verified_at": None,
                "verified_by": None,
                "rejection_note": None,
            },
        )

    def _require_advisor_of(self, caller: CallerIdentity, ref: dict[str, Any]) -> str:
        if Role.parse(caller.role) is not Role.ADVISOR:
            raise forbidden("only advisors can review achievements")
        lecturer_id = self._directory.resolve_lecturer_id_for_user(user_id=caller.caller_id)
        if not lecturer_id:
            raise forbidden("account is not linked to a lecturer record")
        advisees = self._directory.resolve_advisee_student_ids(lecturer_id=lecturer_id)
        if ref["student_id"] not in advisees:
            raise forbidden("achievement does not belong to an advisee")
        return lecturer_id

    def verify(self, *, reference_id: str, caller: CallerIdentity) -> dict[str, Any]:
        ref = load_reference(self._references, reference_id)
        self._require_advisor_of(caller, ref)
        return self._apply(
            ref=ref,
            action=WorkflowAction.VERIFY,
            changes={"verified_at": self._now(), "verified_by": caller.caller_id},
        )

    def reject(self, *, reference_id: str, caller: CallerIdentity, note: str) -> dict[str, Any]:
        cleaned = (note or "").strip()
        if not cleaned:
            raise validation_error("rejection note is required", field="note")
        ref = load_reference(self._references, reference_id)
        self._require_advisor_of(caller, ref)
        return self._apply(
            ref=ref,
            action=WorkflowAction.REJECT,
            changes={
                "verified_at": self._now(),
                "verified_by": caller.caller_id,
                "rejection_note": cleaned,
            },
        )

    def delete(self, *, reference_id: str, caller: CallerIdentity) -> dict[str, Any]:
        student_id = require_student_id(self._directory, caller)
        ref = load_reference(self._references, reference_id)
        if ref["student_id"] != student_id:
            raise not_owner()
        deleted = self._apply(ref=ref, action=WorkflowAction.DELETE, changes={}, student_id=student_id)
        try:
            marked = self._details.soft_delete(detail_id=deleted["detail_ref"], deleted_at=deleted["updated_at"])
        except Exception:
            logger.exception(
                "delete_cascade_failed reference_id=%s detail_ref=%s",
                deleted["reference_id"],
                deleted["detail_ref"],
            )
            return deleted
        if not marked:
            logger.error(
                "delete_cascade_missing_detail reference_id=%s detail_ref=%s",
                deleted["reference_id"],
                deleted["detail_ref"],
            )
        return deleted

    def edit(
        self,
        *,
        reference_id: str,
        caller: CallerIdentity,
        content: AchievementContent | dict[str, Any],
    ) -> dict[str, Any]:
        student_id = require_student_id(self._directory, caller)
        parsed = parse_content(content)
        if parsed.attachments:
            raise validation_error("attachments are added through AttachmentManager", field="attachments")
        ref = load_reference(self._references, reference_id)
        if ref["student_id"] != student_id:
            raise not_owner()
        next_status(ref["status"], WorkflowAction.EDIT)
        updated = self._details.update_content(
            detail_id=ref["detail_ref"],
            content={
                "achievement_type": parsed.achievement_type,
                "title": parsed.title,
                "description": parsed.description,
                "details": dict(parsed.details),
                "tags": list(parsed.tags),
                "points": parsed.points,
            },
            updated_at=self._now(),
        )
        if not updated:
            logger.error("edit_detail_missing reference_id=%s detail_ref=%s", reference_id, ref["detail_ref"])
            raise not_found("achievement detail not found")
        detail = self._details.get(detail_id=ref["detail_ref"])
        if detail is None:
            raise not_found("achievement detail not found")
        return merge_record(ref, detail)

    def _visible_reference(self, *, reference_id: str, caller: CallerIdentity) -> dict[str, Any]:
        constraint = self._resolver.resolve(caller)
        ref = self._references.find_visible(reference_id=reference_id, constraint=constraint)
        if ref is None:
            raise not_found()
        return ref

    def get_achievement(self, *, reference_id: str, caller: CallerIdentity) -> dict[str, Any]:
        ref = self._visible_reference(reference_id=reference_id, caller=caller)
        detail = self._details.get(detail_id=ref["detail_ref"])
        if detail is None:
            logger.warning("reference_detail_missing reference_id=%s detail_ref=%s", reference_id, ref["detail_ref"])
            raise not_found("achievement detail not found")
        return merge_record(ref, detail)

    def list_achievements(self, *, caller: CallerIdentity) -> list[dict[str, Any]]:
        constraint = self._resolver.resolve(caller)
        references = self._references.list(constraint=constraint)
        return merge_references(references, self._details)

    def history(self, *, reference_id: str, caller: CallerIdentity) -> list[dict[str, Any]]:
        ref = self._visible_reference(reference_id=reference_id, caller=caller)
        events: list[dict[str, Any]] = [{"status": AchievementStatus.DRAFT.value, "timestamp": ref.get("created_at")}]
        if ref.get("submitted_at"):
            events.append({"status": AchievementStatus.SUBMITTED.value, "timestamp": ref["submitted_at"]})
        if ref.get("verified_at") and ref["status"] in {
            AchievementStatus.VERIFIED.value,
            AchievementStatus.REJECTED.value,
        }:
            event: dict[str, Any] = {"status": ref["status"], "timestamp": ref["verified_at"]}
            if ref.get("verified_by"):
                event["actor"] = ref["verified_by"]
            if ref.get("rejection_note"):
                event["note"] = ref["rejection_note"]
            events.append(event)
        return events
