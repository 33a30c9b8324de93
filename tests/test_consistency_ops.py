from __future__ import annotations

from achievement_core.ops import check_backends, find_inconsistencies
from conftest import STUDENT_S1, content_payload

DETAIL_A = "65f0000000000000000000aa"
DETAIL_B = "65f0000000000000000000bb"


def _ref(reference_id: str, detail_ref: str, status: str = "draft", student_id: str = "stu_1") -> dict:
    return {"reference_id": reference_id, "detail_ref": detail_ref, "status": status, "student_id": student_id}


def _detail(detail_id: str, student_id: str = "stu_1", deleted_at: str | None = None) -> dict:
    return {"detail_id": detail_id, "student_id": student_id, "deleted_at": deleted_at}


def test_find_inconsistencies_reports_match():
    result = find_inconsistencies(references=[_ref("ach_a", DETAIL_A)], details=[_detail(DETAIL_A)])

    assert result["consistent"] is True
    assert result["reference_count"] == 1
    assert result["detail_count"] == 1
    assert result["orphan_details"] == []
    assert result["corrupt_references"] == []


def test_find_inconsistencies_classifies_corrupt_references():
    refs = [
        _ref("ach_1", "garbage"),
        _ref("ach_2", DETAIL_A),
        _ref("ach_3", DETAIL_B, student_id="stu_2"),
    ]
    details = [_detail(DETAIL_B)]

    result = find_inconsistencies(references=refs, details=details)

    reasons = {x["reference_id"]: x["reason"] for x in result["corrupt_references"]}
    assert reasons == {
        "ach_1": "unparsable_detail_ref",
        "ach_2": "missing_detail",
        "ach_3": "student_mismatch",
    }
    assert result["consistent"] is False


def test_find_inconsistencies_flags_deleted_detail_behind_live_reference():
    result = find_inconsistencies(
        references=[_ref("ach_a", DETAIL_A, status="submitted")],
        details=[_detail(DETAIL_A, deleted_at="2026-01-01T00:00:00+00:00")],
    )

    assert result["corrupt_references"][0]["reason"] == "detail_deleted"
    assert result["orphan_details"] == []


def test_find_inconsistencies_reports_orphans():
    result = find_inconsistencies(
        references=[_ref("ach_a", DETAIL_A, status="deleted")],
        details=[_detail(DETAIL_A), _detail(DETAIL_B)],
    )

    reasons = {x["detail_id"]: x["reason"] for x in result["orphan_details"]}
    assert reasons == {DETAIL_A: "reference_deleted", DETAIL_B: "no_reference"}
    assert result["corrupt_references"] == []


def test_check_backends_after_clean_lifecycle(workflow, backends):
    ref_id = workflow.create(caller=STUDENT_S1, content=content_payload())["id"]
    workflow.create(caller=STUDENT_S1, content=content_payload(title="Second"))
    workflow.delete(reference_id=ref_id, caller=STUDENT_S1)

    result = check_backends(references_repository=backends.references, details_repository=backends.details)

    assert result["consistent"] is True
    assert result["reference_count"] == 2
    assert result["detail_count"] == 2


def test_check_backends_finds_failed_delete_cascade(workflow, backends):
    ref_id = workflow.create(caller=STUDENT_S1, content=content_payload())["id"]

    def _boom(**_kwargs):
        raise RuntimeError("mongo down")

    original = backends.details.soft_delete
    backends.details.soft_delete = _boom
    workflow.delete(reference_id=ref_id, caller=STUDENT_S1)
    backends.details.soft_delete = original

    result = check_backends(references_repository=backends.references, details_repository=backends.details)

    assert result["consistent"] is False
    assert result["orphan_details"][0]["reason"] == "reference_deleted"
