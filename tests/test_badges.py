from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from conftest import run

BADGE = {
    "name": "Loops",
    "description": "Use a for loop",
    "criteria": "Submit a program with a loop",
    "difficulty": 2,
    "category": "Programming",
    "is_public": True,
}


@pytest.fixture
def badge(client, auth, teacher):
    response = client.post("/api/badges", json=BADGE, headers=auth(teacher))
    assert response.status_code == 201
    return response.json()


class TestBadgeCrud:
    def test_created_badge_is_pending(self, badge, teacher):
        assert badge["approval_status"] == "pending"
        assert badge["creator_id"] == str(teacher["_id"])

    def test_missing_category_is_created(self, db, badge):
        category = run(db.categories.find_one({"name": "Programming"}))
        assert category is not None
        assert category["color"] == "#9333EA"

    def test_students_cannot_create(self, client, auth, student):
        response = client.post("/api/badges", json=BADGE, headers=auth(student))
        assert response.status_code == 403

    @pytest.mark.parametrize("difficulty", [0, 6])
    def test_difficulty_bounds(self, client, auth, teacher, difficulty):
        response = client.post("/api/badges", json={**BADGE, "difficulty": difficulty}, headers=auth(teacher))
        assert response.status_code == 400

    def test_invalid_and_missing_ids(self, client, auth, teacher):
        assert client.get("/api/badges/not-an-id", headers=auth(teacher)).status_code == 400
        assert client.get(f"/api/badges/{ObjectId()}", headers=auth(teacher)).status_code == 404

    def test_get_attaches_category(self, client, auth, student, badge):
        response = client.get(f"/api/badges/{badge['id']}", headers=auth(student))
        assert response.status_code == 200
        assert response.json()["category"]["name"] == "Programming"

    def test_teacher_edits_only_own_badge(self, client, auth, make_user, badge):
        other = make_user(role="teacher")
        response = client.put(f"/api/badges/{badge['id']}", json={"name": "Mine now"}, headers=auth(other))
        assert response.status_code == 403

    def test_admin_edits_any_badge(self, client, auth, admin, badge):
        response = client.put(f"/api/badges/{badge['id']}", json={"name": "Renamed"}, headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"

    @pytest.mark.parametrize("field", ["category", "name"])
    def test_blank_update_is_rejected(self, client, db, auth, teacher, field):
        created = client.post("/api/badges", json={**BADGE, "category": "Art"}, headers=auth(teacher)).json()

        response = client.put(f"/api/badges/{created['id']}", json={field: "   "}, headers=auth(teacher))

        assert response.status_code == 400
        stored = run(db.badges.find_one({"_id": ObjectId(created["id"])}))
        assert stored["category"] == "Art"
        assert stored["name"] == "Loops"
        assert run(db.categories.count_documents({"name": {"$in": ["", "   "]}})) == 0

    def test_update_category_is_trimmed(self, client, db, auth, teacher, badge):
        response = client.put(f"/api/badges/{badge['id']}", json={"category": "  Art  "}, headers=auth(teacher))

        assert response.status_code == 200
        assert run(db.badges.find_one({"_id": ObjectId(badge["id"])}))["category"] == "Art"
        assert run(db.categories.find_one({"name": "Art"})) is not None

    def test_private_badges_hidden_from_others(self, client, auth, teacher, student):
        client.post("/api/badges", json={**BADGE, "is_public": False}, headers=auth(teacher))

        assert client.get("/api/badges", headers=auth(student)).json() == []
        assert len(client.get("/api/badges", headers=auth(teacher)).json()) == 1

    def test_recent_only_returns_last_thirty_days(self, client, db, auth, student, badge):
        run(db.badges.insert_one({**BADGE, "name": "Old", "creator_id": ObjectId(),
                                  "created_at": datetime.utcnow() - timedelta(days=45)}))

        response = client.get("/api/badges", params={"recent": "true"}, headers=auth(student))
        assert [b["name"] for b in response.json()] == ["Loops"]


class TestApprovalWorkflow:
    def test_approve(self, client, auth, admin, badge):
        response = client.post(
            "/api/badges/approve",
            json={"badge_id": badge["id"], "status": "approved"},
            headers=auth(admin),
        )
        assert response.status_code == 200
        approved = response.json()["badge"]
        assert approved["approval_status"] == "approved"
        assert approved["approved_by"] == str(admin["_id"])
        assert approved["approval_date"] is not None

    @pytest.mark.parametrize("comment", [None, "", "   "])
    def test_reject_requires_comment(self, client, db, auth, teacher, badge, comment):
        response = client.post(
            "/api/badges/approve",
            json={"badge_id": badge["id"], "status": "rejected", "comment": comment},
            headers=auth(teacher),
        )
        assert response.status_code == 400
        assert run(db.badges.find_one({"_id": ObjectId(badge["id"])}))["approval_status"] == "pending"

    def test_reject_then_approve_again(self, client, auth, teacher, badge):
        client.post(
            "/api/badges/approve",
            json={"badge_id": badge["id"], "status": "rejected", "comment": "Needs a rubric"},
            headers=auth(teacher),
        )
        response = client.post(
            "/api/badges/approve",
            json={"badge_id": badge["id"], "status": "approved"},
            headers=auth(teacher),
        )
        assert response.json()["badge"]["approval_status"] == "approved"

    def test_students_cannot_approve(self, client, auth, student, badge):
        response = client.post(
            "/api/badges/approve",
            json={"badge_id": badge["id"], "status": "approved"},
            headers=auth(student),
        )
        assert response.status_code == 403

    def test_invalid_status(self, client, auth, admin, badge):
        response = client.post(
            "/api/badges/approve",
            json={"badge_id": badge["id"], "status": "pending"},
            headers=auth(admin),
        )
        assert response.status_code == 400

    def test_bulk_approve(self, client, db, auth, admin, teacher):
        ids = [
            client.post("/api/badges", json={**BADGE, "name": f"B{i}"}, headers=auth(teacher)).json()["id"]
            for i in range(3)
        ]

        response = client.put(
            "/api/badges/approve",
            json={"badge_ids": ids + ["garbage"], "status": "approved"},
            headers=auth(admin),
        )

        assert response.status_code == 200
        assert response.json()["modified_count"] == 3
        assert run(db.badges.count_documents({"approval_status": "approved"})) == 3

    def test_bulk_reject_requires_comment(self, client, auth, admin, badge):
        response = client.put(
            "/api/badges/approve",
            json={"badge_ids": [badge["id"]], "status": "rejected"},
            headers=auth(admin),
        )
        assert response.status_code == 400


class TestMaintenance:
    def test_bulk_delete_is_admin_only(self, client, auth, teacher, admin, badge):
        body = {"badge_ids": [badge["id"]]}
        assert client.post("/api/badges/bulk-delete", json=body, headers=auth(teacher)).status_code == 403

        response = client.post("/api/badges/bulk-delete", json=body, headers=auth(admin))
        assert response.json()["deleted_count"] == 1

    def test_cleanup_removes_dangling_references(self, client, db, auth, admin, student, badge):
        ghost = ObjectId()
        run(db.submissions.insert_many([
            {"badge_id": ObjectId(badge["id"]), "student_id": student["_id"], "evidence": "ok"},
            {"badge_id": ghost, "student_id": student["_id"], "evidence": "ok"},
        ]))
        run(db.earned_badges.insert_one({"badge_id": ghost, "student_id": student["_id"]}))

        response = client.post("/api/badges/cleanup-references", headers=auth(admin))

        assert response.json()["submissions_removed"] == 1
        assert response.json()["portfolio_references_removed"] == 1
        assert run(db.submissions.count_documents({})) == 1
