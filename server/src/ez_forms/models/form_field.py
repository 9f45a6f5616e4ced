"""SQLModel FormField model for live form fields"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlalchemy import Enum as SQLEnum
from sqlmodel import Field, SQLModel

from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.field_type import FieldType


class FormField(SQLModel, table=True):
    """Live field definition; replaced wholesale by batch saves"""

    __tablename__ = "form_fields"

    id: Optional[int] = Field(default=None, primary_key=True)
    form_id: int = Field(foreign_key="forms.id", ondelete="CASCADE", index=True)
    label: str = Field(max_length=256)
    field_type: FieldType = Field(
        sa_column=Column(
            SQLEnum(
                FieldType,
                name="field_type",
                values_callable=lambda x: [e.value for e in x],
            ),
            nullable=False,
        )
    )
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    is_required: bool = Field(default=False)
    field_order: int = Field(default=0)  # Display order
    regex_pattern: Optional[str] = None
    validation_message: Optional[str] = None
    allow_multiple: Optional[bool] = None
    selection_limit: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    default_value: Optional[str] = None
    # [{"label": ..., "is_default": ...}] for option based types
    options: Optional[List[dict]] = Field(default=None, sa_column=Column(JSON))
    version: int = Field(default=1)  # Form version this definition belongs to
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_definition(self) -> FieldDefinition:
        """Detach this row into a FieldDefinition"""
        return FieldDefinition(
            id=self.id,
            label=self.label,
            field_type=self.field_type,
            is_required=self.is_required,
            field_order=self.field_order,
            placeholder=self.placeholder,
            help_text=self.help_text,
            regex_pattern=self.regex_pattern,
            validation_message=self.validation_message,
            options=self.options,
            allow_multiple=self.allow_multiple,
            selection_limit=self.selection_limit,
            min_value=self.min_value,
            max_value=self.max_value,
            default_value=self.default_value,
            version=self.version,
        )

    def apply_definition(self, definition: FieldDefinition, version: int) -> None:
        """Overwrite every editable attribute and stamp ``version``"""
        self.label = definition.label
        self.field_type = definition.field_type
        self.is_required = definition.is_required
        self.field_order = definition.field_order
        self.placeholder = definition.placeholder
        self.help_text = definition.help_text
        self.regex_pattern = definition.regex_pattern
        self.validation_message = definition.validation_message
        self.options = (
            [option.model_dump() for option in definition.options]
            if definition.options is not None
            else None
        )
        self.allow_multiple = definition.allow_multiple
        self.selection_limit = definition.selection_limit
        self.min_value = definition.min_value
        self.max_value = definition.max_value
        self.default_value = definition.default_value
        self.version = version
        self.updated_at = datetime.now(timezone.utc)
