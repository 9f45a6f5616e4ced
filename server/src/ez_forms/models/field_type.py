"""Enums for the application"""

from enum import Enum


class FieldType(str, Enum):
    """Enum for form field types"""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    RANGE = "range"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime-local"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    CHECKBOX_GROUP = "checkbox-group"


# Types whose answers must be one of the configured options
OPTION_FIELD_TYPES = frozenset(
    {FieldType.SELECT, FieldType.RADIO, FieldType.CHECKBOX_GROUP}
)

# Types that may accept several options at once
MULTI_SELECT_FIELD_TYPES = frozenset({FieldType.SELECT, FieldType.CHECKBOX_GROUP})

# Types that support regex validation
VALIDATION_FIELD_TYPES = frozenset({FieldType.TEXT, FieldType.TEXTAREA})

# Types that support min/max bounds
NUMERIC_FIELD_TYPES = frozenset({FieldType.NUMBER, FieldType.RANGE})
