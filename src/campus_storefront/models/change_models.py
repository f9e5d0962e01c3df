"""Change notification models.

A ChangeEvent describes one row-level write on a backend table. Stores emit
them to subscribers registered through ``DataStore.subscribe``.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    """Kinds of row-level writes."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A single row change on a backend table."""

    table: str = Field(..., description="Table the change happened on")
    change_type: ChangeType = Field(..., description="Kind of write")
    record: dict[str, Any] | None = Field(None, description="Row after the write")
    old_record: dict[str, Any] | None = Field(None, description="Row before the write")

    @property
    def row_id(self) -> str | None:
        """Identifier of the changed row, taken from whichever record is present."""
        for row in (self.record, self.old_record):
            if row and row.get("id") is not None:
                return str(row["id"])
        return None
