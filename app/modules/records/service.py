"""
Generic CRUD over the physical tables of published models.

Only table and column names are interpolated into statements, and only after
they pass ``app.core.identifiers``; every value is a bound parameter.
"""

from typing import Any, Dict, Optional
import logging
import math

from sqlalchemy import select, text
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import AppError, InternalError, NotFoundError, ValidationError
from app.core.identifiers import ensure_column, ensure_table, quote
from app.database.session import utcnow
from app.modules.model_definitions.models import ModelDefinition
from app.modules.users.schemas import CurrentUser

logger = logging.getLogger(__name__)

SEARCHABLE_TYPES = ("string", "text")
SORT_ORDERS = {"asc": "ASC", "desc": "DESC"}
LIKE_ESCAPE = "!"


def _like_pattern(search: str) -> str:
    escaped = (
        search.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped.lower()}%"


class RecordService:
    def __init__(self, db: Session):
        self.db = db

    @property
    def dialect(self):
        return self.db.get_bind().dialect

    def _q(self, name: str) -> str:
        return quote(self.dialect, name)

    def _table(self, definition: ModelDefinition) -> str:
        return self._q(ensure_table(definition.table_name))

    def _decode(self, definition: ModelDefinition, row) -> Dict[str, Any]:
        record = dict(row)
        for name in definition.fields_of_type("boolean"):
            if record.get(name) is not None:
                record[name] = bool(record[name])
        return record

    def resolve(self, model_name: str) -> ModelDefinition:
        """Published definition for ``model_name``; drafts and unknown names are both 404."""
        definition = self.db.execute(
            select(ModelDefinition).where(
                ModelDefinition.name == model_name,
                ModelDefinition.is_published.is_(True),
            )
        ).scalar_one_or_none()
        if definition is None:
            raise NotFoundError("Model not found")
        return definition

    def _fetch(self, definition: ModelDefinition, record_id: Any) -> Optional[Dict[str, Any]]:
        row = self.db.execute(
            text(f"SELECT * FROM {self._table(definition)} WHERE {self._q('id')} = :id"),
            {"id": record_id},
        ).mappings().first()
        return self._decode(definition, row) if row is not None else None

    def list_records(
        self,
        definition: ModelDefinition,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> Dict[str, Any]:
        limit = settings.default_page_size if limit is None else limit
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1 or limit > settings.max_page_size:
            raise ValidationError(f"limit must be between 1 and {settings.max_page_size}")

        table = self._table(definition)
        params: Dict[str, Any] = {}
        where = ""
        if search:
            searchable = [ensure_column(n, definition.column_names) for n in definition.fields_of_type(*SEARCHABLE_TYPES)]
            if searchable:
                params["search"] = _like_pattern(search)
                conditions = [f"LOWER({self._q(n)}) LIKE :search ESCAPE '{LIKE_ESCAPE}'" for n in searchable]
                where = " WHERE " + " OR ".join(conditions)

        if sort_by:
            order_column = ensure_column(sort_by, definition.column_names)
            direction = SORT_ORDERS.get((sort_order or "asc").lower())
            if direction is None:
                raise ValidationError("sortOrder must be 'asc' or 'desc'")
        else:
            order_column, direction = "id", "DESC"

        try:
            total = self.db.execute(
                text(f"SELECT COUNT(*) AS total FROM {table}{where}"), params
            ).scalar_one()
            rows = self.db.execute(
                text(
                    f"SELECT * FROM {table}{where} ORDER BY {self._q(order_column)} {direction} "
                    f"LIMIT :limit OFFSET :offset"
                ),
                {**params, "limit": limit, "offset": (page - 1) * limit},
            ).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching records for {definition.name}: {e}")
            raise InternalError("Failed to fetch records")

        return {
            "records": [self._decode(definition, row) for row in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    def get_record(self, definition: ModelDefinition, record_id: int) -> Dict[str, Any]:
        try:
            record = self._fetch(definition, record_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching {definition.name} record {record_id}: {e}")
            raise InternalError("Failed to fetch record")
        if record is None:
            raise NotFoundError("Record not found")
        return record

    def check_required(self, definition: ModelDefinition, payload: Dict[str, Any]) -> None:
        missing = [f["name"] for f in definition.fields if f.get("required") and f["name"] not in payload]
        if missing:
            raise ValidationError("Missing required fields", missingFields=missing)

    def create_record(self, definition: ModelDefinition, payload: Dict[str, Any], user: CurrentUser) -> Dict[str, Any]:
        self.check_required(definition, payload)

        data = {name: payload[name] for name in definition.field_names if name in payload}
        if definition.owner_field:
            # Never trust a client-supplied owner
            data[definition.owner_field] = user.id
        now = utcnow()
        data["created_at"] = now
        data["updated_at"] = now

        columns = [ensure_column(name, definition.column_names) for name in data]
        statement = (
            f"INSERT INTO {self._table(definition)} ({', '.join(self._q(c) for c in columns)}) "
            f"VALUES ({', '.join(f':p_{c}' for c in columns)})"
        )
        params = {f"p_{c}": data[c] for c in columns}
        returning = getattr(self.dialect, "insert_returning", False)
        if returning:
            statement += f" RETURNING {self._q('id')}"

        try:
            result = self.db.execute(text(statement), params)
            record_id = result.scalar_one() if returning else result.lastrowid
            self.db.commit()
            return self.get_record(definition, record_id)
        except AppError:
            raise
        except (IntegrityError, DataError) as e:
            self.db.rollback()
            logger.info(f"Rejected {definition.name} record: {e.orig}")
            raise ValidationError("Record violates a field constraint")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating {definition.name} record: {e}")
            raise InternalError("Failed to create record")

    def update_record(
        self,
        definition: ModelDefinition,
        record_id: int,
        payload: Dict[str, Any],
        user: CurrentUser,
    ) -> Dict[str, Any]:
        data = dict(payload)
        data.pop("id", None)
        data.pop("created_at", None)
        data.pop("updated_at", None)
        if definition.owner_field and not user.is_admin:
            data.pop(definition.owner_field, None)

        writable = set(definition.field_names)
        if definition.owner_field and user.is_admin:
            writable.add(definition.owner_field)
        data = {k: v for k, v in data.items() if k in writable}
        if not data:
            raise ValidationError("No fields to update")
        data["updated_at"] = utcnow()

        columns = [ensure_column(name, definition.column_names) for name in data]
        assignments = ", ".join(f"{self._q(c)} = :p_{c}" for c in columns)
        params = {f"p_{c}": data[c] for c in columns}
        params["record_id"] = record_id

        try:
            result = self.db.execute(
                text(f"UPDATE {self._table(definition)} SET {assignments} WHERE {self._q('id')} = :record_id"),
                params,
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise NotFoundError("Record not found")
            self.db.commit()
            return self.get_record(definition, record_id)
        except AppError:
            raise
        except (IntegrityError, DataError) as e:
            self.db.rollback()
            logger.info(f"Rejected update of {definition.name} record {record_id}: {e.orig}")
            raise ValidationError("Record violates a field constraint")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating {definition.name} record {record_id}: {e}")
            raise InternalError("Failed to update record")

    def delete_record(self, definition: ModelDefinition, record_id: int) -> None:
        try:
            result = self.db.execute(
                text(f"DELETE FROM {self._table(definition)} WHERE {self._q('id')} = :id"),
                {"id": record_id},
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise NotFoundError("Record not found")
            self.db.commit()
        except AppError:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting {definition.name} record {record_id}: {e}")
            raise InternalError("Failed to delete record")
        logger.info("Deleted %s record %s", definition.name, record_id)
