# Model definition store.
# One row per user-authored schema. The schema itself (fields, ownerField, rbac)
# is kept as a JSON document in ``definition``; once ``is_published`` is set the
# document, name and table_name are frozen.

from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from app.core.identifiers import SYSTEM_COLUMNS
from app.database.session import Base, utcnow


class ModelDefinition(Base):
    __tablename__ = "model_definitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    table_name = Column(String(100), nullable=False, unique=True)
    definition = Column(JSON, nullable=False, default=dict)
    is_published = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def fields(self) -> List[Dict[str, Any]]:
        fields = (self.definition or {}).get("fields")
        return fields if isinstance(fields, list) else []

    @property
    def owner_field(self) -> Optional[str]:
        return (self.definition or {}).get("ownerField") or None

    @property
    def rbac(self) -> Dict[str, List[str]]:
        rbac = (self.definition or {}).get("rbac")
        return rbac if isinstance(rbac, dict) else {}

    @property
    def field_names(self) -> List[str]:
        return [f.get("name") for f in self.fields]

    @property
    def column_names(self) -> List[str]:
        """Every column of the published table, in table order."""
        names = list(SYSTEM_COLUMNS) + self.field_names
        if self.owner_field:
            names.append(self.owner_field)
        return names

    def fields_of_type(self, *types: str) -> List[str]:
        return [f.get("name") for f in self.fields if f.get("type") in types]
