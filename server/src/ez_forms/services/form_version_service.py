"""FormVersion service: snapshot storage and response binding"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from ez_forms.errors import ConsistencyError, NotFoundError
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.form import Form
from ez_forms.models.form_field import FormField
from ez_forms.models.form_version import FormVersion
from ez_forms.services.form_versioning import (
    FormSnapshot,
    decode_snapshot,
    encode_snapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class VersionEntry:
    form_id: int
    version: int
    snapshot: FormSnapshot
    created_by: str
    created_at: Optional[datetime]


class FormVersionService:
    """Append-only store of form snapshots, keyed by (form, version)"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def save_snapshot(
        self, form_id: int, version: int, snapshot: FormSnapshot, created_by: str
    ) -> FormVersion:
        """
        Stage a snapshot for ``version`` of a form.

        Note: This does NOT commit - caller must handle transaction. A second
        snapshot for the same (form, version) fails at commit on the unique
        constraint.
        """
        row = FormVersion(
            form_id=form_id,
            version=version,
            payload=encode_snapshot(snapshot),
            created_by=created_by,
        )
        self.db.add(row)
        logger.info(
            f"Staged snapshot of form {form_id} version {version} "
            f"({len(snapshot.fields)} fields)"
        )
        return row

    def get_snapshot(self, form_id: int, version: int) -> Optional[FormSnapshot]:
        """Return the snapshot for (form, version), or None if there is none"""
        row = self.db.exec(
            select(FormVersion).where(
                FormVersion.form_id == form_id, FormVersion.version == version
            )
        ).first()
        if row is None:
            return None
        return decode_snapshot(row.payload)

    def get_version(self, form_id: int, version: int) -> VersionEntry:
        """Return one historical version, raising NotFoundError if missing"""
        row = self.db.exec(
            select(FormVersion).where(
                FormVersion.form_id == form_id, FormVersion.version == version
            )
        ).first()
        if row is None:
            raise NotFoundError(f"Version {version} of form {form_id} not found")
        return self._to_entry(row)

    def get_version_history(self, form_id: int) -> List[VersionEntry]:
        """All snapshots of a form, newest first"""
        rows = self.db.exec(
            select(FormVersion)
            .where(FormVersion.form_id == form_id)
            .order_by(FormVersion.version.desc())
        ).all()
        return [self._to_entry(row) for row in rows]

    def get_live_rows(self, form_id: int) -> List[FormField]:
        """Live field rows of a form, ordered by field_order"""
        rows = list(
            self.db.exec(
                select(FormField)
                .where(FormField.form_id == form_id)
                .order_by(FormField.field_order, FormField.id)
            ).all()
        )
        logger.debug(f"Retrieved {len(rows)} form fields for form {form_id}")
        return rows

    def get_live_fields(self, form_id: int) -> List[FieldDefinition]:
        return [row.to_definition() for row in self.get_live_rows(form_id)]

    def resolve_fields_for_response(
        self, form_id: int, response_version: int
    ) -> List[FieldDefinition]:
        """
        Field definitions that govern a response stamped with ``response_version``.

        Args:
            form_id: ID of the form the response belongs to
            response_version: Form version recorded on the response

        Returns:
            Live fields for the current version, snapshot fields otherwise

        Raises:
            NotFoundError: If the form does not exist
            ConsistencyError: If a non-current version has no snapshot
        """
        form = self.db.get(Form, form_id)
        if not form:
            raise NotFoundError("Form not found")

        if response_version == form.current_version:
            return self.get_live_fields(form_id)

        snapshot = None
        if response_version < form.current_version:
            snapshot = self.get_snapshot(form_id, response_version)

        if snapshot is None:
            logger.error(
                f"Form {form_id} is at version {form.current_version} but has no "
                f"snapshot for version {response_version}"
            )
            raise ConsistencyError(
                f"No snapshot for version {response_version} of form {form_id}"
            )

        return snapshot.fields

    @staticmethod
    def _to_entry(row: FormVersion) -> VersionEntry:
        return VersionEntry(
            form_id=row.form_id,
            version=row.version,
            snapshot=decode_snapshot(row.payload),
            created_by=row.created_by,
            created_at=row.created_at,
        )
