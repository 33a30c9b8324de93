from achievement_core.attachments import AttachmentManager
from achievement_core.errors import ApiError
from achievement_core.models import AchievementStatus, CallerIdentity, Role
from achievement_core.workflow import AchievementWorkflow

__all__ = [
    "AchievementStatus",
    "AchievementWorkflow",
    "ApiError",
    "AttachmentManager",
    "CallerIdentity",
    "Role",
]
