"""Role-scoped visibility policies.

Each policy turns a caller identity into a ``QueryConstraint`` that the
reference store applies as a query predicate. Drafts stay private to the
owning student until submitted.
"""

from __future__ import annotations

from typing import Any, Protocol

from achievement_core.errors import forbidden
from achievement_core.models import AchievementStatus, CallerIdentity, QueryConstraint, Role


class VisibilityPolicy(Protocol):
    def filter_for(self, identity: CallerIdentity) -> QueryConstraint: ...


class AdminVisibility:
    def filter_for(self, identity: CallerIdentity) -> QueryConstraint:
        return QueryConstraint(
            student_ids=None,
            excluded_statuses=frozenset({AchievementStatus.DELETED}),
        )


class StudentVisibility:
    def __init__(self, directory: Any) -> None:
        self._directory = directory

    def filter_for(self, identity: CallerIdentity) -> QueryConstraint:
        student_id = self._directory.resolve_student_id_for_user(user_id=identity.caller_id)
        if not student_id:
            raise forbidden("account is not linked to a student record")
        return QueryConstraint(
            student_ids=(student_id,),
            excluded_statuses=frozenset({AchievementStatus.DELETED}),
        )


class AdvisorVisibility:
    def __init__(self, directory: Any) -> None:
        self._directory = directory

    def filter_for(self, identity: CallerIdentity) -> QueryConstraint:
        lecturer_id = self._directory.resolve_lecturer_id_for_user(user_id=identity.caller_id)
        if not lecturer_id:
            raise forbidden("account is not linked to a lecturer record")
        advisees = self._directory.resolve_advisee_student_ids(lecturer_id=lecturer_id)
        return QueryConstraint(
            student_ids=tuple(advisees),
            excluded_statuses=frozenset({AchievementStatus.DELETED, AchievementStatus.DRAFT}),
        )


class VisibilityResolver:
    def __init__(self, directory: Any) -> None:
        self._policies: dict[Role, VisibilityPolicy] = {
            Role.ADMIN: AdminVisibility(),
            Role.STUDENT: StudentVisibility(directory),
            Role.ADVISOR: AdvisorVisibility(directory),
        }

    def policy_for(self, identity: CallerIdentity) -> VisibilityPolicy:
        return self._policies[Role.parse(identity.role)]

    def resolve(self, identity: CallerIdentity) -> QueryConstraint:
        return self.policy_for(identity).filter_for(identity)
