import asyncio
from types import SimpleNamespace

import pytest
from bson import ObjectId

from badgefolio.badges import category_service
from conftest import run


@pytest.fixture
def category(client, auth, admin):
    response = client.post("/api/categories", json={"name": "Scratch", "description": "Block coding"}, headers=auth(admin))
    assert response.status_code == 201
    return response.json()


def seed_badges(db, category_name, count):
    run(db.badges.insert_many([
        {"name": f"Badge {i}", "category": category_name, "creator_id": ObjectId(), "is_public": True}
        for i in range(count)
    ]))


class TestCategories:
    def test_default_colour(self, category):
        assert category["color"] == "purple"

    def test_duplicate_name(self, client, auth, admin, category):
        response = client.post("/api/categories", json={"name": "Scratch"}, headers=auth(admin))
        assert response.status_code == 400

    def test_teacher_cannot_create(self, client, auth, teacher):
        assert client.post("/api/categories", json={"name": "Art"}, headers=auth(teacher)).status_code == 403

    def test_list_sorted_by_name(self, client, auth, admin, student):
        for name in ["Zoology", "Art", "Music"]:
            client.post("/api/categories", json={"name": name}, headers=auth(admin))

        names = [c["name"] for c in client.get("/api/categories", headers=auth(student)).json()]
        assert names == ["Art", "Music", "Zoology"]

    def test_only_super_admin_deletes(self, client, auth, admin, super_admin, category):
        assert client.delete("/api/categories", params={"id": category["id"]}, headers=auth(admin)).status_code == 403

        response = client.delete("/api/categories", params={"id": category["id"]}, headers=auth(super_admin))
        assert response.status_code == 200


class TestRenamePropagation:
    def test_rename_moves_every_badge(self, client, db, auth, admin, category):
        seed_badges(db, "Scratch", 5)
        seed_badges(db, "Other", 2)

        response = client.put(
            "/api/categories",
            json={"category": {"id": category["id"], "name": "Scratch Jr"}, "update_badges": True},
            headers=auth(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Scratch Jr"
        assert body["cascade"] == {"matched": 5, "modified": 5, "remaining": 0}
        assert run(db.badges.count_documents({"category": "Scratch"})) == 0
        assert run(db.badges.count_documents({"category": "Scratch Jr"})) == 5
        assert run(db.badges.count_documents({"category": "Other"})) == 2

    def test_rename_without_flag_leaves_badges(self, client, db, auth, admin, category):
        seed_badges(db, "Scratch", 2)

        response = client.put(
            "/api/categories",
            json={"category": {"id": category["id"], "name": "Blocks"}},
            headers=auth(admin),
        )

        assert response.json()["cascade"] is None
        assert run(db.badges.count_documents({"category": "Scratch"})) == 2

    def test_rename_conflict(self, client, auth, admin, category):
        client.post("/api/categories", json={"name": "Python"}, headers=auth(admin))
        response = client.put(
            "/api/categories",
            json={"category": {"id": category["id"], "name": "Python"}, "update_badges": True},
            headers=auth(admin),
        )
        assert response.status_code == 400

    def test_missing_category(self, client, auth, admin):
        response = client.put(
            "/api/categories",
            json={"category": {"id": str(ObjectId()), "name": "Ghost"}},
            headers=auth(admin),
        )
        assert response.status_code == 404


class StubbornBadges:
    """Wraps a badges collection whose bulk update silently skips documents"""

    def __init__(self, collection, skip):
        self._collection = collection
        self._skip = skip

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def update_many(self, query, update):
        docs = await self._collection.find(query).to_list(length=None)
        modified = 0
        for doc in docs[self._skip:]:
            result = await self._collection.update_one({"_id": doc["_id"]}, update)
            modified += result.modified_count

        return SimpleNamespace(modified_count=modified)


class StubbornDb:
    def __init__(self, db, skip):
        self._db = db
        self.badges = StubbornBadges(db.badges, skip)

    def __getattr__(self, name):
        return getattr(self._db, name)


def test_per_document_fallback_catches_stragglers(db):
    seed_badges(db, "Old", 4)

    report = asyncio.run(category_service.propagate_rename(StubbornDb(db, skip=2), "Old", "New"))

    assert report == {"matched": 4, "modified": 4, "remaining": 0}
    assert run(db.badges.count_documents({"category": "New"})) == 4


class LockedBadges(StubbornBadges):
    """Single-document updates fail too, so skipped badges stay behind"""

    def __init__(self, collection, skip, raise_on_update=False):
        super().__init__(collection, skip)
        self._raise = raise_on_update

    async def update_one(self, query, update):
        if self._raise:
            raise RuntimeError("write conflict")
        return SimpleNamespace(modified_count=0)


class LockedDb(StubbornDb):
    def __init__(self, db, skip, raise_on_update=False):
        super().__init__(db, skip)
        self.badges = LockedBadges(db.badges, skip, raise_on_update)


@pytest.mark.parametrize("raise_on_update", [False, True])
def test_unmoved_badges_are_reported_as_remaining(db, raise_on_update):
    seed_badges(db, "Old", 5)

    report = asyncio.run(category_service.propagate_rename(LockedDb(db, 2, raise_on_update), "Old", "New"))

    assert report == {"matched": 5, "modified": 3, "remaining": 2}
    assert run(db.badges.count_documents({"category": "Old"})) == 2


def test_failed_cascade_keeps_new_name(client, db, auth, admin, category, monkeypatch):
    seed_badges(db, "Scratch", 3)

    async def broken_rename(db, old_name, new_name):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(category_service, "propagate_rename", broken_rename)

    response = client.put(
        "/api/categories",
        json={"category": {"id": category["id"], "name": "Scratch Jr"}, "update_badges": True},
        headers=auth(admin),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Scratch Jr"
    assert body["cascade"] == {"matched": 0, "modified": 0, "remaining": 3, "error": "connection reset"}
    assert run(db.categories.find_one({"_id": ObjectId(category["id"])}))["name"] == "Scratch Jr"
    assert run(db.badges.count_documents({"category": "Scratch"})) == 3
