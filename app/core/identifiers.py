"""
Identifier gate for generated SQL.

Table and column names are the only parts of a statement that are not bound
parameters. Every such name goes through ``ensure_column``/``ensure_table``
before it is quoted and spliced into a statement.
"""

import re
from typing import Collection

from app.core.errors import ValidationError

SAFE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

SYSTEM_COLUMNS = ("id", "created_at", "updated_at")


def is_safe_identifier(name) -> bool:
    return isinstance(name, str) and bool(SAFE_IDENTIFIER.match(name))


def ensure_table(name: str) -> str:
    if not is_safe_identifier(name):
        raise ValidationError(f"Invalid table name: {name!r}")
    return name


def ensure_column(name: str, allowed: Collection[str]) -> str:
    """Return ``name`` if it is a safe identifier and one of ``allowed`` columns."""
    if not is_safe_identifier(name) or name not in allowed:
        raise ValidationError(f"Unknown column: {name!r}")
    return name


def quote(dialect, name: str) -> str:
    return dialect.identifier_preparer.quote_identifier(name)
