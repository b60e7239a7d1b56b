"""
Publishing turns a draft definition into a physical table.

Sequence: compile schema -> write snapshot artifact -> CREATE TABLE IF NOT
EXISTS -> set is_published. The DDL and the flag update are committed
separately; if the process dies in between, the table exists while the
definition is still a draft, and publishing again picks up where it stopped.
"""

from dataclasses import dataclass
from typing import List
import logging

from sqlalchemy.engine import Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import AlreadyPublishedError, InternalError, NotFoundError
from app.core.identifiers import ensure_table, quote
from app.database.session import utcnow
from app.modules.model_definitions.artifact_store import ArtifactStore, snapshot_key
from app.modules.model_definitions.models import ModelDefinition
from app.modules.model_definitions.schema_compiler import ColumnSpec, compile_schema, render_default

logger = logging.getLogger(__name__)

# Per-dialect spellings that differ from the portable names used by the compiler
_TYPE_OVERRIDES = {
    "postgresql": {"DATETIME": "TIMESTAMP"},
}
_AUTOINCREMENT_PK = {
    "sqlite": "INTEGER PRIMARY KEY AUTOINCREMENT",
    "postgresql": "SERIAL PRIMARY KEY",
    "mysql": "INTEGER PRIMARY KEY AUTO_INCREMENT",
}


def _column_ddl(column: ColumnSpec, dialect: Dialect) -> str:
    name = quote(dialect, column.name)
    if column.primary_key and column.autoincrement:
        return f"{name} {_AUTOINCREMENT_PK.get(dialect.name, 'INTEGER PRIMARY KEY')}"

    sql_type = _TYPE_OVERRIDES.get(dialect.name, {}).get(column.sql_type, column.sql_type)
    parts = [name, sql_type]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if not column.nullable:
        parts.append("NOT NULL")
    if column.unique:
        parts.append("UNIQUE")
    if column.default is not None:
        parts.append(f"DEFAULT {render_default(column.default)}")
    return " ".join(parts)


def render_create_table(table_name: str, columns: List[ColumnSpec], dialect: Dialect) -> str:
    table = quote(dialect, ensure_table(table_name))
    column_defs = ", ".join(_column_ddl(c, dialect) for c in columns)
    return f"CREATE TABLE IF NOT EXISTS {table} ({column_defs})"


def render_drop_table(table_name: str, dialect: Dialect) -> str:
    return f"DROP TABLE IF EXISTS {quote(dialect, ensure_table(table_name))}"


@dataclass
class PublishResult:
    definition: ModelDefinition
    artifact: str
    columns: List[ColumnSpec]


class TablePublisher:
    def __init__(self, db: Session, artifact_store: ArtifactStore):
        self.db = db
        self.artifact_store = artifact_store

    @property
    def dialect(self) -> Dialect:
        return self.db.get_bind().dialect

    def publish(self, definition_id: int) -> PublishResult:
        definition = self.db.get(ModelDefinition, definition_id)
        if definition is None:
            raise NotFoundError("Model not found")
        if definition.is_published:
            raise AlreadyPublishedError()

        columns = compile_schema(definition.fields, definition.owner_field, allow_empty=True)
        if not definition.fields:
            logger.warning("Publishing model %s with no fields; table will only have system columns", definition.name)

        artifact = self._write_snapshot(definition, columns)
        self._create_table(definition, columns)

        try:
            definition.is_published = True
            definition.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(definition)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Table {definition.table_name} created but publish flag not saved: {e}")
            raise InternalError("Failed to publish model")

        logger.info("Published model %s as table %s", definition.name, definition.table_name)
        return PublishResult(definition=definition, artifact=artifact, columns=columns)

    def drop(self, definition: ModelDefinition) -> None:
        """Drop the physical table of a published definition and its snapshot."""
        try:
            self.db.connection().exec_driver_sql(
                render_drop_table(definition.table_name, self.dialect),
                execution_options={"no_parameters": True},
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to drop table {definition.table_name}: {e}")
            raise InternalError("Failed to drop model table")
        try:
            self.artifact_store.delete(snapshot_key(definition.name))
        except Exception as e:
            # The snapshot is an audit trail only; a stale file doesn't block deletion
            logger.warning("Failed to delete snapshot for %s: %s", definition.name, e)
        logger.info("Dropped table %s for model %s", definition.table_name, definition.name)

    def _write_snapshot(self, definition: ModelDefinition, columns: List[ColumnSpec]) -> str:
        payload = {
            **(definition.definition or {}),
            "name": definition.name,
            "tableName": definition.table_name,
            "columns": [c.as_dict() for c in columns],
            "publishedAt": utcnow().isoformat(),
        }
        try:
            return self.artifact_store.put_json(snapshot_key(definition.name), payload)
        except Exception as e:
            logger.error(f"Failed to write schema snapshot for {definition.name}: {e}")
            raise InternalError("Failed to write schema snapshot")

    def _create_table(self, definition: ModelDefinition, columns: List[ColumnSpec]) -> None:
        ddl = render_create_table(definition.table_name, columns, self.dialect)
        logger.debug("Executing DDL: %s", ddl)
        try:
            # Sent verbatim: string defaults may contain ":" or "%" which would otherwise be read as binds
            self.db.connection().exec_driver_sql(ddl, execution_options={"no_parameters": True})
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create table {definition.table_name}: {e}")
            raise InternalError("Failed to create model table")
