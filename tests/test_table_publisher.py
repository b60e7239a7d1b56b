import json
import os
import unittest

from support import DatabaseTestCase

from sqlalchemy import inspect, text
from sqlalchemy.dialects import mysql, postgresql, sqlite

from app.config.permissions_config import Role
from app.core.errors import AlreadyPublishedError, NotFoundError
from app.modules.model_definitions.models import ModelDefinition
from app.modules.model_definitions.schema_compiler import compile_schema
from app.modules.model_definitions.table_publisher import TablePublisher, render_create_table

FIELDS = [
    {"name": "title", "type": "string", "required": True},
    {"name": "status", "type": "string", "default": "it's open"},
    {"name": "due", "type": "date"},
]


class TestRenderCreateTable(unittest.TestCase):
    def setUp(self):
        self.columns = compile_schema(FIELDS, owner_field="ownerId")

    def test_sqlite(self):
        ddl = render_create_table("tasks", self.columns, sqlite.dialect())
        self.assertTrue(ddl.startswith('CREATE TABLE IF NOT EXISTS "tasks" ('))
        self.assertIn('"id" INTEGER PRIMARY KEY AUTOINCREMENT', ddl)
        self.assertIn('"created_at" DATETIME DEFAULT CURRENT_TIMESTAMP', ddl)
        self.assertIn('"title" VARCHAR(255) NOT NULL', ddl)
        self.assertIn("\"status\" VARCHAR(255) DEFAULT 'it''s open'", ddl)
        self.assertIn('"ownerId" INTEGER', ddl)

    def test_postgresql(self):
        ddl = render_create_table("tasks", self.columns, postgresql.dialect())
        self.assertIn('"id" SERIAL PRIMARY KEY', ddl)
        self.assertIn('"due" TIMESTAMP', ddl)
        self.assertNotIn("DATETIME", ddl)

    def test_mysql(self):
        ddl = render_create_table("tasks", self.columns, mysql.dialect())
        self.assertIn("`id` INTEGER PRIMARY KEY AUTO_INCREMENT", ddl)


class TestTablePublisher(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.user = self.add_user(Role.MANAGER)
        self.publisher = TablePublisher(self.db, self.artifact_store)

    def add_definition(self, name="Task", table_name="tasks", fields=FIELDS):
        row = ModelDefinition(
            name=name,
            table_name=table_name,
            definition={"fields": fields, "ownerField": "ownerId", "rbac": {"Viewer": ["read"]}},
            created_by=self.user.id,
        )
        self.db.add(row)
        self.db.commit()
        return row

    def test_publish_creates_table_and_snapshot(self):
        row = self.add_definition()
        result = self.publisher.publish(row.id)

        self.assertTrue(result.definition.is_published)
        columns = [c["name"] for c in inspect(self.engine).get_columns("tasks")]
        self.assertEqual(columns, ["id", "created_at", "updated_at", "title", "status", "due", "ownerId"])

        with open(os.path.join(self.artifact_dir, "Task.json"), encoding="utf-8") as fh:
            snapshot = json.load(fh)
        self.assertEqual(snapshot["tableName"], "tasks")
        self.assertEqual(snapshot["ownerField"], "ownerId")
        self.assertTrue(snapshot["publishedAt"].endswith("+00:00"))
        self.assertEqual(result.artifact, os.path.join(self.artifact_dir, "Task.json"))

    def test_string_default_is_stored_verbatim(self):
        row = self.add_definition()
        self.publisher.publish(row.id)
        self.db.execute(text('INSERT INTO "tasks" ("title") VALUES (:title)'), {"title": "x"})
        self.db.commit()
        status = self.db.execute(text('SELECT "status" FROM "tasks"')).scalar_one()
        self.assertEqual(status, "it's open")

    def test_publish_twice(self):
        row = self.add_definition()
        self.publisher.publish(row.id)
        with self.assertRaises(AlreadyPublishedError) as ctx:
            self.publisher.publish(row.id)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_publish_unknown_definition(self):
        with self.assertRaises(NotFoundError):
            self.publisher.publish(4242)

    def test_republish_after_partial_failure(self):
        # Table left behind by a publish that died before setting the flag
        row = self.add_definition()
        self.db.connection().exec_driver_sql('CREATE TABLE "tasks" ("id" INTEGER PRIMARY KEY)')
        self.db.commit()
        result = self.publisher.publish(row.id)
        self.assertTrue(result.definition.is_published)

    def test_publish_without_fields(self):
        row = self.add_definition(name="Empty", table_name="empties", fields=[])
        self.publisher.publish(row.id)
        columns = [c["name"] for c in inspect(self.engine).get_columns("empties")]
        self.assertEqual(columns, ["id", "created_at", "updated_at", "ownerId"])

    def test_drop(self):
        row = self.add_definition()
        result = self.publisher.publish(row.id)
        self.publisher.drop(result.definition)
        self.assertNotIn("tasks", inspect(self.engine).get_table_names())
        self.assertFalse(os.path.exists(os.path.join(self.artifact_dir, "Task.json")))


if __name__ == "__main__":
    unittest.main()
