from __future__ import annotations

import pytest

from achievement_core.errors import ApiError
from achievement_core.reports import achievement_statistics, student_report, summarize_achievements
from conftest import ADMIN, ADVISOR_L1, ADVISOR_L2, STUDENT_S1, STUDENT_S3, content_payload


def test_summarize_achievements_counts_and_points():
    records = [
        {"status": "verified", "achievement_type": "competition", "points": 50, "details": {"competitionLevel": "national"}},
        {"status": "verified", "achievement_type": "publication", "points": 20.5, "details": {}},
        {"status": "submitted", "achievement_type": "competition", "points": 99, "details": {"competition_level": "local"}},
    ]

    summary = summarize_achievements(records)

    assert summary["total"] == 3
    assert summary["by_status"] == {"submitted": 1, "verified": 2}
    assert summary["by_type"] == {"competition": 2, "publication": 1}
    assert summary["by_competition_level"] == {"local": 1, "national": 1, "unspecified": 1}
    assert summary["verified_points"] == 70.5


def test_summarize_empty():
    assert summarize_achievements([])["total"] == 0


def test_statistics_follow_caller_visibility(workflow):
    s1 = workflow.create(caller=STUDENT_S1, content=content_payload())["id"]
    workflow.submit(reference_id=s1, caller=STUDENT_S1)
    workflow.verify(reference_id=s1, caller=ADVISOR_L1)
    workflow.create(caller=STUDENT_S1, content=content_payload(achievement_type="publication", points=5))
    workflow.create(caller=STUDENT_S3, content=content_payload())

    admin = achievement_statistics(workflow, caller=ADMIN)
    advisor = achievement_statistics(workflow, caller=ADVISOR_L1)

    assert admin["total"] == 3
    assert admin["by_status"] == {"draft": 2, "verified": 1}
    assert admin["verified_points"] == 50.0
    assert advisor["total"] == 1
    assert advisor["by_status"] == {"verified": 1}


def _seed_student_one(workflow):
    verified = workflow.create(caller=STUDENT_S1, content=content_payload(title="Verified entry"))["id"]
    workflow.submit(reference_id=verified, caller=STUDENT_S1)
    workflow.verify(reference_id=verified, caller=ADVISOR_L1)
    workflow.create(caller=STUDENT_S1, content=content_payload(title="Draft entry", points=5))
    removed = workflow.create(caller=STUDENT_S1, content=content_payload(title="Removed entry"))["id"]
    workflow.delete(reference_id=removed, caller=STUDENT_S1)
    workflow.create(caller=STUDENT_S3, content=content_payload(title="Other student"))


def test_student_report_for_admin_covers_any_student(workflow):
    _seed_student_one(workflow)

    report = student_report(workflow, caller=ADMIN, student_id="stu_1")
    other = student_report(workflow, caller=ADMIN, student_id="stu_3")

    assert report["student_id"] == "stu_1"
    assert report["total"] == 2
    assert sorted(x["title"] for x in report["achievements"]) == ["Draft entry", "Verified entry"]
    assert report["by_status"] == {"draft": 1, "verified": 1}
    assert report["verified_points"] == 50.0
    assert [x["title"] for x in other["achievements"]] == ["Other student"]


def test_student_report_for_advisor_is_limited_to_advisees(workflow):
    _seed_student_one(workflow)

    report = student_report(workflow, caller=ADVISOR_L1, student_id="stu_1")

    assert report["total"] == 1
    assert [x["title"] for x in report["achievements"]] == ["Verified entry"]
    with pytest.raises(ApiError) as exc:
        student_report(workflow, caller=ADVISOR_L2, student_id="stu_1")
    assert exc.value.code == "FORBIDDEN"


def test_student_report_for_student_is_self_only(workflow):
    _seed_student_one(workflow)

    report = student_report(workflow, caller=STUDENT_S1, student_id="stu_1")

    assert report["total"] == 2
    assert report["by_status"] == {"draft": 1, "verified": 1}
    with pytest.raises(ApiError) as exc:
        student_report(workflow, caller=STUDENT_S1, student_id="stu_3")
    assert exc.value.code == "FORBIDDEN"
    assert student_report(workflow, caller=STUDENT_S3, student_id="stu_3")["total"] == 1
