import pytest
from bson import ObjectId

from conftest import run

BADGE = {
    "name": "Recursion",
    "description": "Solve a problem recursively",
    "criteria": "Working recursive solution",
    "difficulty": 3,
    "category": "Programming",
}


@pytest.fixture
def badge(client, auth, teacher):
    return client.post("/api/badges", json=BADGE, headers=auth(teacher)).json()


@pytest.fixture
def submission(client, auth, student, badge):
    response = client.post(
        "/api/submissions",
        json={"badge_id": badge["id"], "evidence": "  https://repl.it/fib  "},
        headers=auth(student),
    )
    assert response.status_code == 201
    return response.json()


def review(client, headers, submission_id, status, comment=None):
    return client.put(f"/api/submissions/{submission_id}", json={"status": status, "comment": comment}, headers=headers)


class TestSubmitting:
    def test_submission_is_assigned_to_badge_creator(self, submission, teacher):
        assert submission["status"] == "pending"
        assert submission["teacher_id"] == str(teacher["_id"])
        assert submission["evidence"] == "https://repl.it/fib"

    def test_blank_evidence_rejected(self, client, auth, student, badge):
        response = client.post("/api/submissions", json={"badge_id": badge["id"], "evidence": "   "}, headers=auth(student))
        assert response.status_code == 400

    def test_one_pending_submission_per_badge(self, client, auth, student, badge, submission):
        response = client.post("/api/submissions", json={"badge_id": badge["id"], "evidence": "again"}, headers=auth(student))
        assert response.status_code == 400

    def test_unknown_badge(self, client, auth, student):
        response = client.post("/api/submissions", json={"badge_id": str(ObjectId()), "evidence": "x"}, headers=auth(student))
        assert response.status_code == 404


class TestReviewing:
    def test_approval_awards_badge_once(self, client, db, auth, teacher, student, badge, submission):
        assert review(client, auth(teacher), submission["id"], "approved").status_code == 200
        assert review(client, auth(teacher), submission["id"], "approved", "Still great").status_code == 200

        badge_oid = ObjectId(badge["id"])
        assert run(db.earned_badges.count_documents({"badge_id": badge_oid, "student_id": student["_id"]})) == 1
        assert run(db.users.find_one({"_id": student["_id"]}))["earned_badges"] == [badge_oid]

    def test_rejection_needs_comment(self, client, auth, teacher, submission):
        response = review(client, auth(teacher), submission["id"], "rejected", " ")
        assert response.status_code == 400

    def test_rejection_comment_is_appended(self, client, auth, teacher, submission):
        response = review(client, auth(teacher), submission["id"], "rejected", "Add tests")
        body = response.json()["submission"]
        assert body["status"] == "rejected"
        assert [c["content"] for c in body["comments"]] == ["Add tests"]
        assert body["comments"][0]["user_id"] == str(teacher["_id"])

    def test_other_teacher_cannot_review(self, client, auth, make_user, submission):
        stranger = make_user(role="teacher")
        assert review(client, auth(stranger), submission["id"], "approved").status_code == 403

    def test_admin_can_review(self, client, auth, admin, submission):
        assert review(client, auth(admin), submission["id"], "approved").status_code == 200

    def test_student_cannot_review(self, client, auth, student, submission):
        assert review(client, auth(student), submission["id"], "approved").status_code == 403

    def test_bulk_update_limited_to_assigned(self, client, db, auth, make_user, teacher, badge):
        students = [make_user(role="student") for _ in range(3)]
        ids = [
            client.post("/api/submissions", json={"badge_id": badge["id"], "evidence": "work"}, headers=auth(s)).json()["id"]
            for s in students
        ]
        stranger = make_user(role="teacher")

        response = client.post(
            "/api/submissions/bulk-update",
            json={"submission_ids": ids, "status": "approved"},
            headers=auth(stranger),
        )
        assert response.status_code == 404

        response = client.post(
            "/api/submissions/bulk-update",
            json={"submission_ids": ids, "status": "approved"},
            headers=auth(teacher),
        )
        assert response.json()["updated_count"] == 3
        assert run(db.earned_badges.count_documents({})) == 3


class TestListing:
    def test_each_role_sees_its_share(self, client, auth, make_user, admin, teacher, student, submission):
        other_student = make_user(role="student")
        other_teacher = make_user(role="teacher")

        assert len(client.get("/api/submissions", headers=auth(student)).json()) == 1
        assert client.get("/api/submissions", headers=auth(other_student)).json() == []
        assert client.get("/api/submissions", headers=auth(other_teacher)).json() == []

        listed = client.get("/api/submissions", headers=auth(teacher)).json()
        assert listed[0]["badge"]["name"] == "Recursion"
        assert listed[0]["student"]["id"] == str(student["_id"])

        assert len(client.get("/api/submissions", params={"user_id": str(student["_id"])}, headers=auth(admin)).json()) == 1

    def test_status_filter(self, client, auth, teacher, submission):
        assert client.get("/api/submissions", params={"status": "approved"}, headers=auth(teacher)).json() == []


class TestMaintenanceAndPortfolio:
    def test_cleanup_removes_empty_evidence(self, client, db, auth, teacher, student, badge, submission):
        run(db.submissions.insert_many([
            {"badge_id": ObjectId(badge["id"]), "student_id": student["_id"], "evidence": ""},
            {"badge_id": ObjectId(badge["id"]), "student_id": student["_id"]},
        ]))

        response = client.post("/api/submissions/cleanup", headers=auth(teacher))

        assert response.json()["count"] == 2
        assert run(db.submissions.count_documents({})) == 1

    def test_visibility_only_on_own_approved(self, client, auth, teacher, student, make_user, submission):
        body = {"submission_id": submission["id"], "is_visible": False}

        assert client.put("/api/portfolio/visibility", json=body, headers=auth(student)).status_code == 404

        review(client, auth(teacher), submission["id"], "approved")
        response = client.put("/api/portfolio/visibility", json=body, headers=auth(student))
        assert response.status_code == 200
        assert response.json()["submission"]["is_visible"] is False

        intruder = make_user(role="student")
        assert client.put("/api/portfolio/visibility", json=body, headers=auth(intruder)).status_code == 404
