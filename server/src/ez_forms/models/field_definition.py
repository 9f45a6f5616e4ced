"""Field definitions as they travel between the API, the services and snapshots.

These are plain pydantic models rather than table rows: the same shape
describes live fields, fields proposed in an edit batch, and fields frozen
in a version snapshot.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ez_forms.models.field_type import (
    MULTI_SELECT_FIELD_TYPES,
    OPTION_FIELD_TYPES,
    FieldType,
)


class FieldOption(BaseModel):
    label: str = Field(min_length=1, max_length=256)
    is_default: bool = False


class FieldDefinition(BaseModel):
    """One question of a form.

    ``id`` is None (or <= 0) for fields proposed in an edit batch that have
    not been persisted yet.
    """

    id: Optional[int] = None
    label: str
    field_type: FieldType
    is_required: bool = False
    field_order: int = 0
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    regex_pattern: Optional[str] = None
    validation_message: Optional[str] = None
    options: Optional[List[FieldOption]] = None
    allow_multiple: Optional[bool] = None
    selection_limit: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    default_value: Optional[str] = None
    version: Optional[int] = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None and self.id > 0

    @field_validator("label")
    @classmethod
    def _validate_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("label must not be empty")
        if len(v) > 256:
            raise ValueError("label exceeds 256 characters")
        return v

    @field_validator("regex_pattern")
    @classmethod
    def _validate_regex(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}")
        return v

    @field_validator("selection_limit")
    @classmethod
    def _validate_selection_limit(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("selection_limit must be >= 1 when provided")
        return v

    @model_validator(mode="after")
    def _validate_type_constraints(self):
        if self.field_type in OPTION_FIELD_TYPES:
            if not self.options:
                raise ValueError(
                    f"Type '{self.field_type.value}' requires a non-empty options list"
                )
            single_select = self.field_type == FieldType.RADIO or (
                self.field_type == FieldType.SELECT and not self.allow_multiple
            )
            defaults = sum(1 for option in self.options if option.is_default)
            if single_select and defaults > 1:
                raise ValueError(
                    "Single-select field cannot have multiple default options"
                )

        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value >= self.max_value
        ):
            raise ValueError("min_value must be less than max_value")

        return self

    def accepts_multiple(self) -> bool:
        """Whether answers to this field are lists of options"""
        if self.field_type == FieldType.CHECKBOX_GROUP:
            return True
        return self.field_type in MULTI_SELECT_FIELD_TYPES and bool(
            self.allow_multiple
        )

    def option_labels(self) -> List[str]:
        return [option.label for option in self.options or []]
