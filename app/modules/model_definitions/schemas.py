from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Union
from datetime import datetime
from enum import Enum

from app.config.permissions_config import Permission, Role


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    TEXT = "text"


class FieldDefinition(BaseModel):
    name: str = Field(min_length=1, max_length=63)
    type: FieldType
    required: bool = False
    unique: bool = False
    default: Optional[Union[bool, int, float, str]] = None


class ModelSchema(BaseModel):
    """The user-authored part of a definition, stored as JSON."""
    model_config = ConfigDict(populate_by_name=True)

    fields: List[FieldDefinition] = Field(default_factory=list)
    owner_field: Optional[str] = Field(default=None, alias="ownerField")
    rbac: Dict[Role, List[Permission]] = Field(default_factory=dict)

    def to_document(self) -> dict:
        return {
            "fields": [f.model_dump(mode="json") for f in self.fields],
            "ownerField": self.owner_field or None,
            "rbac": {role.value: sorted({p.value for p in perms}) for role, perms in self.rbac.items()},
        }


class ModelDefinitionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    table_name: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="tableName")
    definition: ModelSchema


class ModelDefinitionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    table_name: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="tableName")
    definition: Optional[ModelSchema] = None


class ModelDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    table_name: str = Field(alias="tableName")
    definition: dict
    is_published: bool = Field(alias="isPublished")
    created_by: int = Field(alias="createdBy")
    created_at: datetime = Field(alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class ModelDefinitionEnvelope(BaseModel):
    message: Optional[str] = None
    model: ModelDefinitionResponse


class ModelDefinitionList(BaseModel):
    models: List[ModelDefinitionResponse]


class PublishResponse(BaseModel):
    message: str
    model: ModelDefinitionResponse
    artifact: str
