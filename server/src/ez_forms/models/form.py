"""SQLModel Form model"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


class FormStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Form(SQLModel, table=True):
    """A form owning an ordered set of live fields and a version counter"""

    __tablename__ = "forms"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)  # Auth0 user ID of the owner
    name: str = Field(max_length=256)
    slug: str = Field(unique=True, index=True, max_length=256)
    description: Optional[str] = None
    status: FormStatus = Field(
        default=FormStatus.DRAFT,
        sa_column=Column(
            SAEnum(
                FormStatus,
                name="form_status",
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
            server_default=FormStatus.DRAFT.value,
        ),
    )
    allow_anonymous: bool = Field(default=True)
    allow_multiple_submissions: bool = Field(default=False)
    allow_editing: bool = Field(default=False)
    open_time: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    deadline: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    current_version: int = Field(default=1)
    # Bumped by every field save, breaking or not
    revision: int = Field(default=0)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
