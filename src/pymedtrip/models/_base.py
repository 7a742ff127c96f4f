"""Base model for backend rows.

Every row model inherits from :class:`MedTripBaseModel` which provides:

* ``populate_by_name`` plus a camelCase alias generator, so both the
  snake_case column names and camelCase keys from edge functions map
  onto the same fields.
* A ``model_validator(mode="before")`` that drops ``None`` values so the
  field default is used for nullable columns.
* A ``raw`` dict that captures the original row.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class MedTripBaseModel(BaseModel):
    """Base for backend row models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original row dict."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        """Drop ``None`` columns and stash the raw row."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        # Keep an explicit raw= passed by the caller.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
