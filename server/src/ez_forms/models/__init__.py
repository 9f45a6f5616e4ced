"""Database models for EZ Forms"""

from ez_forms.models.answer import FieldAnswer, MultiValue, SingleValue
from ez_forms.models.field_definition import FieldDefinition, FieldOption
from ez_forms.models.field_type import FieldType
from ez_forms.models.form import Form, FormStatus
from ez_forms.models.form_field import FormField
from ez_forms.models.form_response import (
    FormResponse,
    FormResponseField,
    FormResponseHistory,
)
from ez_forms.models.form_version import FormVersion

__all__ = [
    "FieldAnswer",
    "FieldDefinition",
    "FieldOption",
    "FieldType",
    "Form",
    "FormField",
    "FormResponse",
    "FormResponseField",
    "FormResponseHistory",
    "FormStatus",
    "FormVersion",
    "MultiValue",
    "SingleValue",
]
