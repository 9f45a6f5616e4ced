"""SQLModel FormVersion model: write-once snapshots of past field sets"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class FormVersion(SQLModel, table=True):
    """Snapshot of a form's fields as they were at ``version``.

    The current version never has a row here; it is the live field table.
    """

    __tablename__ = "form_versions"

    id: Optional[int] = Field(default=None, primary_key=True)
    form_id: int = Field(foreign_key="forms.id", ondelete="CASCADE", index=True)
    version: int
    # Encoded FormSnapshot (see services.form_versioning.encode_snapshot)
    payload: str = Field(sa_column=Column(Text, nullable=False))
    created_by: str
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("form_id", "version", name="uq_form_versions_form_version"),
    )
