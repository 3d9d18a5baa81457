"""Base model and enum for status feed documents.

Every feed model inherits from :class:`TflBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used.

Status enums inherit from :class:`SeverityEnum`: members are declared from
most to least severe, and any value without a mapped member resolves to
``OTHER`` instead of raising ``ValueError``.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class SeverityEnum(enum.StrEnum):
    """Base for ordered status enums.

    Every subclass **must** define ``OTHER``. Declaration order is the
    severity order: the first member is the most severe.
    """

    @classmethod
    def _missing_(cls, value: object) -> SeverityEnum:
        # pylint: disable=no-member
        if hasattr(cls, "OTHER"):
            other: SeverityEnum = cls.OTHER  # type: ignore[attr-defined]
            return other
        return next(iter(cls))

    @property
    def severity(self) -> int:
        """Rank of this member; lower is more severe."""
        return list(type(self)).index(self)


class TflBaseModel(BaseModel):
    """Base for TfL unified API document models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        return cleaned


class ApiModel(BaseModel):
    """Base for models returned by the read API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)
