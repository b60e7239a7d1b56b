"""
Compile a model's field list into the column layout of its physical table.

The output is dialect-neutral: ``sql_type`` uses the portable names below and
``table_publisher.render_create_table`` adapts them per database when emitting
DDL. Column order is always the system columns, then declared fields, then the
owner column.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from app.core.errors import InvalidSchemaError
from app.core.identifiers import SYSTEM_COLUMNS, is_safe_identifier
from app.modules.model_definitions.schemas import FieldDefinition, FieldType


class SqlFunction:
    """A default that must be emitted as a bare SQL expression, never quoted."""

    def __init__(self, sql: str):
        self.sql = sql

    def __repr__(self) -> str:
        return f"SqlFunction({self.sql!r})"


CURRENT_TIMESTAMP = SqlFunction("CURRENT_TIMESTAMP")

TYPE_MAP = {
    FieldType.STRING: "VARCHAR(255)",
    FieldType.NUMBER: "INTEGER",
    FieldType.BOOLEAN: "BOOLEAN",
    FieldType.DATE: "DATETIME",
    FieldType.TEXT: "TEXT",
}

OWNER_REFERENCE = "users.id"


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    sql_type: str
    nullable: bool = True
    unique: bool = False
    default: Any = None
    primary_key: bool = False
    autoincrement: bool = False
    references: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if isinstance(self.default, SqlFunction):
            data["default"] = self.default.sql
        return data


SYSTEM_COLUMN_SPECS = (
    ColumnSpec("id", "INTEGER", nullable=False, primary_key=True, autoincrement=True),
    ColumnSpec("created_at", "DATETIME", default=CURRENT_TIMESTAMP),
    ColumnSpec("updated_at", "DATETIME", default=CURRENT_TIMESTAMP),
)


def render_default(value: Any) -> str:
    """SQL literal for a column default."""
    if isinstance(value, SqlFunction):
        return value.sql
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise InvalidSchemaError(f"Unsupported default value: {value!r}")


def _coerce_field(raw: Union[FieldDefinition, Mapping[str, Any]]) -> FieldDefinition:
    if isinstance(raw, FieldDefinition):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidSchemaError("Each field must be an object")
    name = raw.get("name")
    try:
        field_type = FieldType(raw.get("type"))
    except ValueError:
        raise InvalidSchemaError(f"Unsupported field type {raw.get('type')!r} for field {name!r}")
    # Naming rules are enforced by compile_schema as InvalidSchemaError
    return FieldDefinition.model_construct(
        name=name if isinstance(name, str) and name else "?",
        type=field_type,
        required=bool(raw.get("required", False)),
        unique=bool(raw.get("unique", False)),
        default=raw.get("default"),
    )


def _check_default(field: FieldDefinition) -> None:
    value = field.default
    if value is None:
        return
    if field.type is FieldType.NUMBER and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise InvalidSchemaError(f"Default for number field {field.name!r} must be numeric")
    if field.type is FieldType.BOOLEAN and not isinstance(value, bool):
        raise InvalidSchemaError(f"Default for boolean field {field.name!r} must be true or false")


def _column_for(field: FieldDefinition) -> ColumnSpec:
    try:
        sql_type = TYPE_MAP[field.type]
    except KeyError:
        raise InvalidSchemaError(f"Unsupported field type {field.type!r} for field {field.name!r}")
    _check_default(field)
    default = field.default
    if (
        field.type is FieldType.DATE
        and isinstance(default, str)
        and default.upper() == CURRENT_TIMESTAMP.sql
    ):
        default = CURRENT_TIMESTAMP
    return ColumnSpec(
        name=field.name,
        sql_type=sql_type,
        nullable=not field.required,
        unique=field.unique,
        default=default,
    )


def compile_schema(
    fields: Iterable[Union[FieldDefinition, Mapping[str, Any]]],
    owner_field: Optional[str] = None,
    allow_empty: bool = False,
) -> List[ColumnSpec]:
    fields = [_coerce_field(f) for f in (fields or [])]
    if not fields and not allow_empty:
        raise InvalidSchemaError("At least one field is required")

    columns = list(SYSTEM_COLUMN_SPECS)
    seen = set()
    for field in fields:
        if not is_safe_identifier(field.name):
            raise InvalidSchemaError(
                f"Invalid field name {field.name!r}: use letters, digits and underscores, not starting with a digit"
            )
        if field.name.lower() in SYSTEM_COLUMNS:
            raise InvalidSchemaError(f"Field name {field.name!r} is reserved")
        if field.name.lower() in seen:
            raise InvalidSchemaError(f"Duplicate field name {field.name!r}")
        seen.add(field.name.lower())
        columns.append(_column_for(field))

    if owner_field:
        if not is_safe_identifier(owner_field):
            raise InvalidSchemaError(f"Invalid owner field name {owner_field!r}")
        if owner_field.lower() in SYSTEM_COLUMNS or owner_field.lower() in seen:
            raise InvalidSchemaError(f"Owner field {owner_field!r} collides with another column")
        columns.append(ColumnSpec(owner_field, "INTEGER", nullable=True, references=OWNER_REFERENCE))

    return columns


def column_names(fields, owner_field: Optional[str] = None) -> List[str]:
    return [c.name for c in compile_schema(fields, owner_field, allow_empty=True)]
