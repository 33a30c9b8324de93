from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from achievement_core.errors import forbidden, invalid_state


class AchievementStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    DELETED = "deleted"


class WorkflowAction(str, Enum):
    SUBMIT = "submit"
    VERIFY = "verify"
    REJECT = "reject"
    EDIT = "edit"
    DELETE = "delete"


class Role(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"
    ADVISOR = "advisor"

    @classmethod
    def parse(cls, raw: str) -> "Role":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            raise forbidden(f"role not permitted: {raw}") from None


TERMINAL_STATUSES: frozenset[AchievementStatus] = frozenset(
    {AchievementStatus.VERIFIED, AchievementStatus.DELETED}
)

TRANSITIONS: dict[tuple[AchievementStatus, WorkflowAction], AchievementStatus] = {
    (AchievementStatus.DRAFT, WorkflowAction.SUBMIT): AchievementStatus.SUBMITTED,
    (AchievementStatus.REJECTED, WorkflowAction.SUBMIT): AchievementStatus.SUBMITTED,
    (AchievementStatus.SUBMITTED, WorkflowAction.VERIFY): AchievementStatus.VERIFIED,
    (AchievementStatus.SUBMITTED, WorkflowAction.REJECT): AchievementStatus.REJECTED,
    (AchievementStatus.DRAFT, WorkflowAction.EDIT): AchievementStatus.DRAFT,
    (AchievementStatus.REJECTED, WorkflowAction.EDIT): AchievementStatus.REJECTED,
    (AchievementStatus.DRAFT, WorkflowAction.DELETE): AchievementStatus.DELETED,
    (AchievementStatus.REJECTED, WorkflowAction.DELETE): AchievementStatus.DELETED,
}


def next_status(current: AchievementStatus | str, action: WorkflowAction) -> AchievementStatus:
    """Return the status reached by applying ``action``; raise InvalidState otherwise."""
    try:
        status = AchievementStatus(current)
    except ValueError:
        raise invalid_state(f"unknown status: {current}") from None
    target = TRANSITIONS.get((status, action))
    if target is None:
        raise invalid_state(f"invalid transition: {status.value} -/{action.value}/->")
    return target


def allowed_actions(current: AchievementStatus | str) -> set[WorkflowAction]:
    status = AchievementStatus(current)
    return {action for (source, action) in TRANSITIONS if source == status}


@dataclass(frozen=True)
class CallerIdentity:
    caller_id: str
    role: str
    permissions: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class QueryConstraint:
    """Predicate pushed down to the reference store.

    ``student_ids`` of ``None`` means every student; an empty tuple matches nothing.
    """

    student_ids: tuple[str, ...] | None
    excluded_statuses: frozenset[AchievementStatus]

    def excluded_values(self) -> list[str]:
        return sorted(status.value for status in self.excluded_statuses)
