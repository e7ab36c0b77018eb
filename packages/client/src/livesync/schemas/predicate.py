"""Row predicates — which rows' events a subscription wants.

Learn: The backend filter syntax is textual: `user_id=eq.42`,
`status=neq.closed`, `id=in.(1,2,3)`. A Predicate is the parsed form.
It is frozen, so two predicates built from the same text are equal and
hash the same — the binding layer relies on that to avoid resubscribing
when a consumer rebuilds an identical filter.

Values are compared as text on both sides, because that is all the
filter string carries: `Predicate.eq("user_id", 42)` matches a row with
`user_id == 42` and one with `user_id == "42"`.
"""

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from livesync.errors import InvalidPredicateError

Op = Literal["eq", "neq", "in"]


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Predicate(BaseModel):
    """A single-column row filter."""

    model_config = ConfigDict(frozen=True)

    column: str = Field(..., min_length=1)
    op: Op = "eq"
    value: str | tuple[str, ...]

    @field_validator("value", mode="before")
    @classmethod
    def _normalize_value(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return tuple(_as_text(x) for x in v)
        return _as_text(v)

    @model_validator(mode="after")
    def _check_shape(self):
        if self.op == "in" and not isinstance(self.value, tuple):
            raise ValueError("'in' predicates need a sequence of values")
        if self.op != "in" and isinstance(self.value, tuple):
            raise ValueError(f"'{self.op}' predicates need a single value")
        return self

    # ─── Constructors ────────────────────────────────────

    @classmethod
    def eq(cls, column: str, value: Any) -> "Predicate":
        return cls(column=column, op="eq", value=value)

    @classmethod
    def parse(cls, text: str) -> "Predicate":
        """Parse `<column>=<op>.<value>` into a Predicate."""
        column, sep, rest = text.partition("=")
        op, dot, raw = rest.partition(".")
        if not sep or not dot or not column.strip():
            raise InvalidPredicateError(f"Malformed filter: {text!r}")
        if op not in ("eq", "neq", "in"):
            raise InvalidPredicateError(f"Unsupported filter operator {op!r} in {text!r}")

        value: str | list[str] = raw
        if op == "in":
            if not (raw.startswith("(") and raw.endswith(")")):
                raise InvalidPredicateError(f"'in' filter needs (a,b,...): {text!r}")
            value = [part.strip() for part in raw[1:-1].split(",") if part.strip()]
        return cls(column=column.strip(), op=op, value=value)

    # ─── Behaviour ───────────────────────────────────────

    def to_filter(self) -> str:
        """Render back to the backend filter syntax."""
        if isinstance(self.value, tuple):
            return f"{self.column}={self.op}.({','.join(self.value)})"
        return f"{self.column}={self.op}.{self.value}"

    def matches(self, row: Mapping[str, Any] | None) -> bool:
        """True if `row` satisfies this predicate. Missing columns never match."""
        if not row or self.column not in row or row[self.column] is None:
            return False
        cell = _as_text(row[self.column])
        if self.op == "eq":
            return cell == self.value
        if self.op == "neq":
            return cell != self.value
        return cell in self.value

    def __str__(self) -> str:
        return self.to_filter()
