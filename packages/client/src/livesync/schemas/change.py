"""ChangeEvent — one row-level change pushed by the backend.

Learn: The wire payload looks like
    {"table": "anomalies", "eventType": "INSERT",
     "old": {}, "new": {"id": 7, ...}, "commit_timestamp": "..."}
The model accepts those aliases and also the Python field names, so
tests and producers can build events either way. Empty `old`/`new`
objects are normalised to None (INSERTs carry an empty `old`).
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from livesync.events.types import DELETE, INSERT, UPDATE


class ChangeEvent(BaseModel):
    """Immutable row change. Never persisted past the reducer consuming it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table: str = Field(..., min_length=1)
    operation: Literal["INSERT", "UPDATE", "DELETE"] = Field(..., alias="eventType")
    previous: Optional[dict[str, Any]] = Field(None, alias="old")
    current: Optional[dict[str, Any]] = Field(None, alias="new")
    committed_at: Optional[datetime] = Field(None, alias="commit_timestamp")

    @field_validator("operation", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("previous", "current", mode="before")
    @classmethod
    def _empty_is_none(cls, v: Any) -> Any:
        return v or None

    @property
    def row(self) -> Optional[dict[str, Any]]:
        """The row this event is about (the old row for DELETE)."""
        return self.previous if self.operation == DELETE else self.current

    # ─── Wire helpers ────────────────────────────────────

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ChangeEvent":
        """Validate a decoded wire payload. Raises pydantic.ValidationError."""
        return cls.model_validate(payload)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    # ─── Shorthand constructors ──────────────────────────

    @classmethod
    def insert(cls, table: str, row: Mapping[str, Any]) -> "ChangeEvent":
        return cls(table=table, operation=INSERT, current=dict(row))

    @classmethod
    def update(
        cls,
        table: str,
        row: Mapping[str, Any],
        previous: Optional[Mapping[str, Any]] = None,
    ) -> "ChangeEvent":
        return cls(
            table=table,
            operation=UPDATE,
            current=dict(row),
            previous=dict(previous) if previous else None,
        )

    @classmethod
    def delete(cls, table: str, row: Mapping[str, Any]) -> "ChangeEvent":
        return cls(table=table, operation=DELETE, previous=dict(row))
