"""FormField service for managing form fields and versioned edits"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from pydantic import BaseModel, model_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ez_forms.errors import (
    ConcurrencyConflict,
    FormPermissionError,
    FormValidationError,
    NotFoundError,
)
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.form import Form
from ez_forms.models.form_field import FormField
from ez_forms.services.form_version_service import FormVersionService
from ez_forms.services.form_versioning import (
    create_form_snapshot,
    detect_version_breaking_changes,
)
from ez_forms.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)


class ScheduleWindow(BaseModel):
    """Optional open/deadline update applied alongside a batch save.

    Only the keys actually provided are applied; pass ``None`` explicitly to
    clear a bound.
    """

    open_time: Optional[datetime] = None
    deadline: Optional[datetime] = None

    @model_validator(mode="after")
    def _validate_order(self):
        open_time, deadline = as_utc(self.open_time), as_utc(self.deadline)
        if open_time is not None and deadline is not None and open_time >= deadline:
            raise ValueError("open_time must be before deadline")
        return self


@dataclass
class BatchSaveResult:
    version_changed: bool
    new_version: int
    fields: List[FieldDefinition]


def parse_field_definitions(
    proposed_fields: Sequence[Union[FieldDefinition, dict]],
) -> List[FieldDefinition]:
    """
    Validate a proposed field list.

    Raises:
        FormValidationError: Naming the first malformed field by index
    """
    parsed: List[FieldDefinition] = []
    for i, field_data in enumerate(proposed_fields):
        try:
            if isinstance(field_data, FieldDefinition):
                # Re-run validators on a copy; callers may have mutated it
                definition = FieldDefinition.model_validate(field_data.model_dump())
            else:
                definition = FieldDefinition.model_validate(field_data)
        except PydanticValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise FormValidationError(f"Field {i}: {messages}") from e
        parsed.append(definition)

    seen_ids = set()
    for i, definition in enumerate(parsed):
        if not definition.is_persisted:
            continue
        if definition.id in seen_ids:
            raise FormValidationError(
                f"Field {i}: id {definition.id} appears more than once"
            )
        seen_ids.add(definition.id)

    return parsed


class FormFieldService:
    """Service for managing form fields"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.versions = FormVersionService(db_session)

    def create_form_fields(
        self, form_id: int, fields: Sequence[Union[FieldDefinition, dict]], version: int
    ) -> List[FormField]:
        """
        Create form fields for a new form
        Note: This does NOT commit - caller must handle transaction

        Args:
            form_id: ID of the form
            fields: Field definitions or dictionaries
            version: Form version to stamp on every field

        Returns:
            List of created FormField instances
        """
        created_fields = []
        for definition in parse_field_definitions(fields):
            if definition.is_persisted:
                raise FormValidationError(
                    f"Field '{definition.label}' already has an id; new forms "
                    "only accept new fields"
                )
            form_field = FormField(form_id=form_id, field_type=definition.field_type)
            form_field.apply_definition(definition, version)
            self.db.add(form_field)
            created_fields.append(form_field)

        logger.info(f"Prepared {len(created_fields)} form fields for form {form_id}")
        return created_fields

    def batch_save_fields(
        self,
        form_id: int,
        user_id: str,
        proposed_fields: Sequence[Union[FieldDefinition, dict]],
        schedule: Optional[ScheduleWindow] = None,
    ) -> BatchSaveResult:
        """
        Replace a form's live fields with ``proposed_fields`` in one transaction.

        Fields carrying an id update that field in place; fields without one
        are created; live fields missing from the proposal are deleted. When
        the change would break previously collected answers, the pre-change
        fields are snapshotted under the current version and the version is
        bumped by one. Every resulting field is stamped with the resulting
        version.

        Args:
            form_id: ID of the form to edit
            user_id: ID of the caller; must own the form
            proposed_fields: Complete desired field list
            schedule: Optional open/deadline changes, never affects versioning

        Returns:
            BatchSaveResult with version_changed, new_version and the fields

        Raises:
            FormValidationError: Malformed field; nothing is written
            NotFoundError: Form does not exist
            FormPermissionError: Caller does not own the form
            ConcurrencyConflict: Another field save landed first
        """
        incoming = parse_field_definitions(proposed_fields)

        try:
            # Lock the form row so concurrent edits of one form serialize
            form = self.db.exec(
                select(Form).where(Form.id == form_id).with_for_update()
            ).first()
            if not form:
                raise NotFoundError("Form not found")
            if form.user_id != user_id:
                raise FormPermissionError(
                    "You do not have permission to edit this form"
                )

            read_revision = form.revision
            live_rows = self.versions.get_live_rows(form_id)
            live_by_id = {row.id: row for row in live_rows}

            unknown_ids = [
                f.id for f in incoming if f.is_persisted and f.id not in live_by_id
            ]
            if unknown_ids:
                raise FormValidationError(
                    f"Some field IDs do not belong to this form: {unknown_ids}"
                )

            existing = [row.to_definition() for row in live_rows]
            version_changed = detect_version_breaking_changes(existing, incoming)
            read_version = form.current_version
            new_version = read_version + 1 if version_changed else read_version

            if version_changed:
                snapshot = create_form_snapshot(form, existing)
                self.versions.save_snapshot(form_id, read_version, snapshot, user_id)

            # Optimistic check: no other field save landed since we read the form
            # (the row lock above is a no-op on SQLite)
            now = datetime.now(timezone.utc)
            result = self.db.exec(
                update(Form)
                .where(
                    Form.id == form_id,
                    Form.revision == read_revision,
                    Form.current_version == read_version,
                )
                .values(
                    current_version=new_version,
                    revision=read_revision + 1,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrencyConflict(
                    f"Form {form_id} changed while saving; reload and retry"
                )
            form.current_version = new_version
            form.revision = read_revision + 1
            form.updated_at = now

            incoming_ids = {f.id for f in incoming if f.is_persisted}
            for row in live_rows:
                if row.id not in incoming_ids:
                    self.db.delete(row)

            saved_rows: List[FormField] = []
            for definition in incoming:
                if definition.is_persisted:
                    row = live_by_id[definition.id]
                else:
                    row = FormField(form_id=form_id, field_type=definition.field_type)
                row.apply_definition(definition, new_version)
                self.db.add(row)
                saved_rows.append(row)

            if schedule is not None:
                for key in schedule.model_fields_set:
                    setattr(form, key, as_utc(getattr(schedule, key)))
                open_time, deadline = as_utc(form.open_time), as_utc(form.deadline)
                if open_time and deadline and open_time >= deadline:
                    raise FormValidationError("open_time must be before deadline")
            self.db.add(form)

            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent version bump on form {form_id}: {e}")
            raise ConcurrencyConflict(
                f"Form {form_id} changed while saving; reload and retry"
            ) from e
        except Exception:
            self.db.rollback()
            raise

        fields = sorted(
            (row.to_definition() for row in saved_rows),
            key=lambda f: (f.field_order, f.id),
        )
        if version_changed:
            logger.info(
                f"Form {form_id}: breaking field change, version "
                f"{read_version} -> {new_version}"
            )
        logger.info(f"Saved {len(fields)} fields for form {form_id} at v{new_version}")
        return BatchSaveResult(
            version_changed=version_changed, new_version=new_version, fields=fields
        )
