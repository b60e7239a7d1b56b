from typing import List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    AppError, ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError,
)
from app.core.identifiers import is_safe_identifier
from app.database.session import utcnow
from app.modules.model_definitions.artifact_store import ArtifactStore
from app.modules.model_definitions.models import ModelDefinition
from app.modules.model_definitions.schema_compiler import compile_schema
from app.modules.model_definitions.schemas import (
    ModelDefinitionCreate, ModelDefinitionUpdate, ModelSchema,
)
from app.modules.model_definitions.table_publisher import PublishResult, TablePublisher
from app.modules.users.schemas import CurrentUser

logger = logging.getLogger(__name__)

# Tables owned by the application itself
RESERVED_TABLE_NAMES = frozenset({"users", "model_definitions"})
# SQLite keeps its own catalog tables under this prefix
RESERVED_TABLE_PREFIXES = ("sqlite_",)


def default_table_name(name: str) -> str:
    return f"{name.lower()}s"


def _validate_table_name(table_name: str) -> None:
    if not is_safe_identifier(table_name):
        raise ValidationError(
            f"Invalid table name {table_name!r}: use letters, digits and underscores, not starting with a digit"
        )
    if table_name.lower() in RESERVED_TABLE_NAMES or table_name.lower().startswith(RESERVED_TABLE_PREFIXES):
        raise ValidationError(f"Table name {table_name!r} is reserved")


def _validate_schema(schema: ModelSchema, allow_empty: bool = False) -> None:
    # Raises InvalidSchemaError; drafts are checked up front so publish can't fail on them later
    compile_schema(schema.fields, schema.owner_field, allow_empty=allow_empty)


class ModelDefinitionService:
    def __init__(self, db: Session, artifact_store: ArtifactStore):
        self.db = db
        self.artifact_store = artifact_store

    def _can_modify(self, definition: ModelDefinition, user: CurrentUser) -> None:
        if definition.created_by != user.id and not user.is_admin:
            raise ForbiddenError("Insufficient permissions")

    def _ensure_unique(self, name: Optional[str], table_name: Optional[str], exclude_id: Optional[int] = None) -> None:
        """Names and table names must be unique ignoring case, as SQLite table names are."""
        if name is not None:
            query = select(ModelDefinition.id).where(func.lower(ModelDefinition.name) == name.lower())
            if exclude_id is not None:
                query = query.where(ModelDefinition.id != exclude_id)
            if self.db.execute(query).first():
                raise ConflictError("Model name already exists")
        if table_name is not None:
            query = select(ModelDefinition.id).where(func.lower(ModelDefinition.table_name) == table_name.lower())
            if exclude_id is not None:
                query = query.where(ModelDefinition.id != exclude_id)
            if self.db.execute(query).first():
                raise ConflictError("Table name already exists")

    def _commit(self, definition: ModelDefinition, action: str) -> ModelDefinition:
        try:
            self.db.commit()
            self.db.refresh(definition)
            return definition
        except IntegrityError as e:
            # Lost a race with a concurrent create/rename
            self.db.rollback()
            logger.info(f"Unique constraint hit while trying to {action} model: {e}")
            raise ConflictError("Model name or table name already exists")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error trying to {action} model: {e}")
            raise InternalError(f"Failed to {action} model")

    def list_definitions(
        self,
        limit: int = 100,
        offset: int = 0,
        published: Optional[bool] = None
    ) -> List[ModelDefinition]:
        try:
            query = select(ModelDefinition)
            if published is not None:
                query = query.where(ModelDefinition.is_published == published)
            query = query.order_by(ModelDefinition.created_at.desc(), ModelDefinition.id.desc())
            return list(self.db.execute(query.limit(limit).offset(offset)).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error fetching models: {e}")
            raise InternalError("Failed to fetch models")

    def get_definition(self, definition_id: int) -> ModelDefinition:
        definition = self.db.get(ModelDefinition, definition_id)
        if definition is None:
            raise NotFoundError("Model not found")
        return definition

    def create_definition(self, data: ModelDefinitionCreate, user: CurrentUser) -> ModelDefinition:
        table_name = data.table_name or default_table_name(data.name)
        _validate_table_name(table_name)
        _validate_schema(data.definition)
        self._ensure_unique(data.name, table_name)

        definition = ModelDefinition(
            name=data.name,
            table_name=table_name,
            definition=data.definition.to_document(),
            created_by=user.id,
        )
        self.db.add(definition)
        self._commit(definition, "create")
        logger.info("User %s created model %s (table %s)", user.id, definition.name, definition.table_name)
        return definition

    def update_definition(self, definition_id: int, data: ModelDefinitionUpdate, user: CurrentUser) -> ModelDefinition:
        definition = self.get_definition(definition_id)
        self._can_modify(definition, user)
        if definition.is_published:
            raise ValidationError("Cannot update published model")

        name = data.name if data.name and data.name != definition.name else None
        table_name = data.table_name if data.table_name and data.table_name != definition.table_name else None
        if table_name is not None:
            _validate_table_name(table_name)
        if data.definition is not None:
            _validate_schema(data.definition, allow_empty=True)
        self._ensure_unique(name, table_name, exclude_id=definition.id)

        if name is not None:
            definition.name = name
        if table_name is not None:
            definition.table_name = table_name
        if data.definition is not None:
            definition.definition = data.definition.to_document()
        definition.updated_at = utcnow()
        return self._commit(definition, "update")

    def delete_definition(self, definition_id: int, user: CurrentUser) -> None:
        definition = self.get_definition(definition_id)
        self._can_modify(definition, user)

        if definition.is_published:
            TablePublisher(self.db, self.artifact_store).drop(definition)

        try:
            self.db.delete(definition)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting model {definition_id}: {e}")
            raise InternalError("Failed to delete model")
        logger.info("User %s deleted model %s", user.id, definition.name)

    def publish_definition(self, definition_id: int) -> PublishResult:
        try:
            return TablePublisher(self.db, self.artifact_store).publish(definition_id)
        except AppError:
            raise
        except Exception:
            logger.exception("Unexpected error publishing model %s", definition_id)
            raise InternalError("Failed to publish model")
