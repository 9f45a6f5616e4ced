"""SQLModel models for form submissions and their edit history"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class FormResponse(SQLModel, table=True):
    """A submission, stamped with the form version active when it was made"""

    __tablename__ = "form_responses"

    id: Optional[int] = Field(default=None, primary_key=True)
    form_id: int = Field(foreign_key="forms.id", ondelete="CASCADE", index=True)
    form_version: int  # Never changes after insert
    user_id: Optional[str] = Field(default=None, index=True)
    submitter_email: Optional[str] = Field(default=None, index=True)
    is_anonymous: bool = Field(default=False)
    rating: Optional[int] = None
    comments: Optional[str] = None
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class FormResponseField(SQLModel, table=True):
    """One answer of a response.

    ``field_id`` is deliberately not a foreign key: answers outlive the
    deletion of the field they were given for.
    """

    __tablename__ = "form_response_fields"

    id: Optional[int] = Field(default=None, primary_key=True)
    response_id: int = Field(
        foreign_key="form_responses.id", ondelete="CASCADE", index=True
    )
    field_id: int = Field(index=True)
    value: dict = Field(sa_column=Column(JSON, nullable=False))  # Encoded answer

    __table_args__ = (
        UniqueConstraint(
            "response_id", "field_id", name="uq_response_fields_response_field"
        ),
    )


class FormResponseHistory(SQLModel, table=True):
    """State of a response before one of its edits"""

    __tablename__ = "form_response_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    response_id: int = Field(
        foreign_key="form_responses.id", ondelete="CASCADE", index=True
    )
    # {"fields": [...encoded answers...], "rating": ..., "comments": ...}
    data: dict = Field(sa_column=Column(JSON, nullable=False))
    edited_by: Optional[str] = None
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
