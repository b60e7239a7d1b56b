import unittest

from support import ApiTestCase

from app.config.permissions_config import Role

TASK = {
    "name": "Task",
    "definition": {
        "fields": [
            {"name": "title", "type": "string", "required": True},
            {"name": "notes", "type": "text"},
            {"name": "points", "type": "number", "default": 1},
            {"name": "done", "type": "boolean", "default": False},
        ],
        "ownerField": "ownerId",
        "rbac": {"Viewer": ["read"], "Manager": ["create", "read", "update"]},
    },
}


class RecordsApiTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.add_user(Role.ADMIN)
        self.manager = self.add_user(Role.MANAGER)
        self.viewer = self.add_user(Role.VIEWER)
        model = self.create_model(TASK, user=self.admin)
        self.publish(model["id"])

    def add_record(self, user, **values):
        return self.add_record_to("Task", user, **values)

    def add_record_to(self, model_name, user, **values):
        response = self.as_user(user).post(f"/api/v1/records/{model_name}", json=values)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["record"]


class TestCreateRecord(RecordsApiTestCase):
    def test_missing_required_field_is_reported_first(self):
        response = self.as_user(self.viewer).post("/api/v1/records/Task", json={"notes": "n"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["missingFields"], ["title"])

    def test_viewer_without_create(self):
        response = self.as_user(self.viewer).post("/api/v1/records/Task", json={"title": "x"})
        self.assertEqual(response.status_code, 403)

    def test_owner_is_forced_to_caller(self):
        record = self.add_record(self.manager, title="x", ownerId=self.viewer.id, bogus="ignored")
        self.assertEqual(record["ownerId"], self.manager.id)
        self.assertEqual(record["points"], 1)
        self.assertIs(record["done"], False)
        self.assertNotIn("bogus", record)

    def test_unknown_or_draft_model(self):
        self.assertEqual(self.as_user(self.admin).post("/api/v1/records/Nope", json={"title": "x"}).status_code, 404)
        self.create_model({**TASK, "name": "Draft"})
        self.assertEqual(self.client.post("/api/v1/records/Draft", json={"title": "x"}).status_code, 404)

    def test_unauthenticated(self):
        self.acting = None
        self.assertEqual(self.client.post("/api/v1/records/Task", json={"title": "x"}).status_code, 401)


class TestReadRecords(RecordsApiTestCase):
    def setUp(self):
        super().setUp()
        for title in ("foobar", "alpha", "beta", "Food", "100%"):
            self.add_record(self.manager, title=title)

    def test_get_record(self):
        record = self.add_record(self.manager, title="single")
        response = self.as_user(self.viewer).get(f"/api/v1/records/Task/{record['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["record"]["title"], "single")
        self.assertEqual(self.client.get("/api/v1/records/Task/9999").status_code, 404)

    def test_default_listing_is_newest_first(self):
        body = self.as_user(self.viewer).get("/api/v1/records/Task").json()
        self.assertEqual([r["title"] for r in body["records"]], ["100%", "Food", "beta", "alpha", "foobar"])
        self.assertEqual(body["pagination"], {"page": 1, "limit": 10, "total": 5, "pages": 1})

    def test_search_counts_matches_only(self):
        body = self.as_user(self.viewer).get("/api/v1/records/Task", params={"search": "foo"}).json()
        self.assertEqual(sorted(r["title"] for r in body["records"]), ["Food", "foobar"])
        self.assertEqual(body["pagination"]["total"], 2)

    def test_search_treats_wildcards_literally(self):
        body = self.as_user(self.viewer).get("/api/v1/records/Task", params={"search": "%"}).json()
        self.assertEqual([r["title"] for r in body["records"]], ["100%"])

    def test_sort_and_paginate(self):
        response = self.as_user(self.viewer).get(
            "/api/v1/records/Task",
            params={"sortBy": "title", "sortOrder": "asc", "limit": 2, "page": 2},
        )
        body = response.json()
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(body["pagination"], {"page": 2, "limit": 2, "total": 5, "pages": 3})
        self.assertEqual(len(body["records"]), 2)

    def test_invalid_sort_parameters(self):
        self.acting = self.viewer
        bad = [
            {"sortBy": "nope"},
            {"sortBy": "title; DROP TABLE tasks"},
            {"sortBy": "title", "sortOrder": "sideways"},
            {"page": 0},
            {"limit": 1000},
        ]
        for params in bad:
            self.assertEqual(self.client.get("/api/v1/records/Task", params=params).status_code, 400, params)


class TestMutateRecords(RecordsApiTestCase):
    def setUp(self):
        super().setUp()
        self.other_manager = self.add_user(Role.MANAGER)
        self.record = self.add_record(self.manager, title="mine")

    def test_owner_can_update(self):
        response = self.as_user(self.manager).put(
            f"/api/v1/records/Task/{self.record['id']}",
            json={"title": "renamed", "ownerId": self.other_manager.id, "id": 77},
        )
        self.assertEqual(response.status_code, 200, response.text)
        record = response.json()["record"]
        self.assertEqual(record["title"], "renamed")
        self.assertEqual(record["id"], self.record["id"])
        self.assertEqual(record["ownerId"], self.manager.id)

    def test_other_user_is_denied(self):
        response = self.as_user(self.other_manager).put(
            f"/api/v1/records/Task/{self.record['id']}", json={"title": "stolen"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Access denied: You can only access your own records")

    def test_admin_may_reassign_owner(self):
        response = self.as_user(self.admin).put(
            f"/api/v1/records/Task/{self.record['id']}", json={"ownerId": self.other_manager.id}
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["record"]["ownerId"], self.other_manager.id)

    def test_update_with_nothing_writable(self):
        response = self.as_user(self.manager).put(
            f"/api/v1/records/Task/{self.record['id']}", json={"created_at": "2020-01-01"}
        )
        self.assertEqual(response.status_code, 400)

    def test_update_missing_record(self):
        response = self.as_user(self.manager).put("/api/v1/records/Task/9999", json={"title": "x"})
        self.assertEqual(response.status_code, 404)

    def test_delete_needs_permission(self):
        response = self.as_user(self.manager).delete(f"/api/v1/records/Task/{self.record['id']}")
        self.assertEqual(response.status_code, 403)

    def test_admin_delete(self):
        response = self.as_user(self.admin).delete(f"/api/v1/records/Task/{self.record['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Record deleted successfully")
        self.assertEqual(self.client.delete(f"/api/v1/records/Task/{self.record['id']}").status_code, 404)

    def test_delete_by_non_owner_with_delete_permission(self):
        shared = {
            "name": "Shared",
            "definition": {
                "fields": [{"name": "title", "type": "string"}],
                "ownerField": "ownerId",
                "rbac": {"Manager": ["all"]},
            },
        }
        model = self.create_model(shared, user=self.admin)
        self.publish(model["id"])
        record = self.add_record_to("Shared", self.manager, title="mine")

        response = self.as_user(self.other_manager).delete(f"/api/v1/records/Shared/{record['id']}")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Access denied: You can only access your own records")

        response = self.as_user(self.other_manager).delete("/api/v1/records/Shared/9999")
        self.assertEqual(response.status_code, 404)

        response = self.as_user(self.manager).delete(f"/api/v1/records/Shared/{record['id']}")
        self.assertEqual(response.status_code, 200)


class TestTimestampDefault(ApiTestCase):
    def test_current_timestamp_default_on_date_field(self):
        admin = self.add_user(Role.ADMIN)
        model = self.create_model(
            {
                "name": "Ev",
                "definition": {
                    "fields": [
                        {"name": "title", "type": "string"},
                        {"name": "happened", "type": "date", "default": "current_timestamp"},
                        {"name": "label", "type": "string", "default": "CURRENT_TIMESTAMP"},
                    ],
                },
            },
            user=admin,
        )
        self.publish(model["id"])

        response = self.client.post("/api/v1/records/Ev", json={"title": "x"})
        self.assertEqual(response.status_code, 201, response.text)
        record = response.json()["record"]
        self.assertIsNotNone(record["happened"])
        self.assertNotEqual(record["happened"].upper(), "CURRENT_TIMESTAMP")
        self.assertRegex(record["happened"], r"^\d{4}-\d{2}-\d{2}")
        self.assertEqual(record["label"], "CURRENT_TIMESTAMP")


if __name__ == "__main__":
    unittest.main()
