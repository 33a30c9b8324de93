import pathlib
import sys
from itertools import count

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from achievement_core.attachments import AttachmentManager
from achievement_core.backends import AchievementBackends, create_memory_backends
from achievement_core.models import CallerIdentity
from achievement_core.workflow import AchievementWorkflow


class TickingClock:
    """Deterministic ISO timestamps, one second apart."""

    def __init__(self) -> None:
        self._ticks = count()

    def __call__(self) -> str:
        tick = next(self._ticks)
        return f"2026-01-01T00:{tick // 60:02d}:{tick % 60:02d}+00:00"


STUDENT_S1 = CallerIdentity(caller_id="user_s1", role="student")
STUDENT_S2 = CallerIdentity(caller_id="user_s2", role="student")
STUDENT_S3 = CallerIdentity(caller_id="user_s3", role="student")
ADVISOR_L1 = CallerIdentity(caller_id="user_l1", role="advisor")
ADVISOR_L2 = CallerIdentity(caller_id="user_l2", role="advisor")
ADMIN = CallerIdentity(caller_id="user_admin", role="admin")


def content_payload(**overrides) -> dict:
    payload = {
        "achievement_type": "competition",
        "title": "National Robotics Cup",
        "description": "First place in the autonomous track",
        "details": {"competitionLevel": "national", "rank": 1},
        "tags": ["robotics", "ai"],
        "points": 50,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def backends() -> AchievementBackends:
    built = create_memory_backends()
    directory = built.directory
    directory.add_lecturer(lecturer_id="lec_1", user_id="user_l1")
    directory.add_lecturer(lecturer_id="lec_2", user_id="user_l2")
    directory.add_student(student_id="stu_1", user_id="user_s1", advisor_id="lec_1")
    directory.add_student(student_id="stu_2", user_id="user_s2", advisor_id="lec_1")
    directory.add_student(student_id="stu_3", user_id="user_s3", advisor_id="lec_2")
    return built


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def workflow(backends: AchievementBackends, clock: TickingClock) -> AchievementWorkflow:
    return AchievementWorkflow(
        references=backends.references,
        details=backends.details,
        directory=backends.directory,
        now=clock,
    )


@pytest.fixture
def attachments(backends: AchievementBackends, clock: TickingClock) -> AttachmentManager:
    return AttachmentManager(
        references=backends.references,
        details=backends.details,
        directory=backends.directory,
        now=clock,
    )
