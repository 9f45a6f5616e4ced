"""Form Service - Handles form database operations"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ez_forms.errors import FormPermissionError, FormValidationError, NotFoundError
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.form import Form, FormStatus
from ez_forms.models.form_field import FormField
from ez_forms.models.form_response import (
    FormResponse,
    FormResponseField,
    FormResponseHistory,
)
from ez_forms.models.form_version import FormVersion
from ez_forms.services.form_field_service import FormFieldService
from ez_forms.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

# Attributes an owner may change through update_form. Fields and the version
# counter only change through FormFieldService.batch_save_fields.
UPDATABLE_FORM_ATTRIBUTES = (
    "name",
    "description",
    "status",
    "allow_anonymous",
    "allow_multiple_submissions",
    "allow_editing",
    "open_time",
    "deadline",
)


class FormService:
    """Service for handling form operations"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create_form(
        self,
        form: Form,
        fields: Optional[Sequence[Union[FieldDefinition, dict]]] = None,
    ) -> Form:
        """
        Create a new form with its initial fields at version 1

        Args:
            form: Form object to create
            fields: Optional initial field definitions

        Returns:
            The persisted form

        Raises:
            FormValidationError: If a field is malformed or the slug is taken
        """
        form.current_version = 1
        form.revision = 0
        form.created_at = form.created_at or datetime.now(timezone.utc)
        form.updated_at = datetime.now(timezone.utc)

        try:
            self.db.add(form)
            self.db.flush()
            FormFieldService(self.db).create_form_fields(
                form.id, fields or [], version=form.current_version
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Error creating form '{form.slug}': {e}")
            raise FormValidationError(f"Slug '{form.slug}' is already taken") from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(form)
        logger.info(f"Form created successfully: {form.id}")
        return form

    def get_form_by_id(self, form_id: int) -> Optional[Form]:
        return self.db.get(Form, form_id)

    def get_form_by_slug(self, slug: str) -> Optional[Form]:
        """Retrieve a form that is not archived by its slug"""
        statement = select(Form).where(
            Form.slug == slug, Form.status != FormStatus.ARCHIVED
        )
        return self.db.exec(statement).first()

    def get_owned_form(self, form_id: int, user_id: str) -> Form:
        """
        Load a form and check that ``user_id`` owns it

        Raises:
            NotFoundError: If the form does not exist
            FormPermissionError: If the form belongs to someone else
        """
        form = self.db.get(Form, form_id)
        if not form:
            raise NotFoundError("Form not found")
        if form.user_id != user_id:
            raise FormPermissionError(
                "You do not have permission to access this form"
            )
        return form

    def list_forms_for_user(self, user_id: str) -> List[Form]:
        statement = (
            select(Form)
            .where(Form.user_id == user_id)
            .order_by(Form.created_at.desc())
        )
        return list(self.db.exec(statement).all())

    def update_form(
        self, form_id: int, user_id: str, updated_data: Dict[str, Any]
    ) -> Form:
        """
        Update form settings (never fields or version)

        Args:
            form_id: ID of the form to update
            user_id: ID of the caller; must own the form
            updated_data: Attribute values keyed by name

        Returns:
            The updated form
        """
        form = self.get_owned_form(form_id, user_id)

        unknown = set(updated_data) - set(UPDATABLE_FORM_ATTRIBUTES)
        if unknown:
            raise FormValidationError(
                f"Cannot update form attributes: {', '.join(sorted(unknown))}"
            )

        for key, value in updated_data.items():
            if key == "status":
                try:
                    value = FormStatus(value)
                except ValueError as e:
                    self.db.rollback()
                    raise FormValidationError(f"Invalid status '{value}'") from e
            elif key in ("open_time", "deadline"):
                value = as_utc(value)
            setattr(form, key, value)

        open_time, deadline = as_utc(form.open_time), as_utc(form.deadline)
        if open_time and deadline and open_time >= deadline:
            self.db.rollback()
            raise FormValidationError("open_time must be before deadline")
        if not (form.name or "").strip():
            self.db.rollback()
            raise FormValidationError("Form name must not be empty")

        form.updated_at = datetime.now(timezone.utc)
        self.db.add(form)
        self.db.commit()
        self.db.refresh(form)

        logger.info(f"Form updated successfully: {form.id}")
        return form

    def delete_form(self, form_id: int, user_id: str) -> None:
        """Delete a form with its fields, snapshots and responses"""
        form = self.get_owned_form(form_id, user_id)

        response_ids = select(FormResponse.id).where(FormResponse.form_id == form_id)
        try:
            self.db.exec(
                delete(FormResponseField).where(
                    FormResponseField.response_id.in_(response_ids)
                )
            )
            self.db.exec(
                delete(FormResponseHistory).where(
                    FormResponseHistory.response_id.in_(response_ids)
                )
            )
            self.db.exec(delete(FormResponse).where(FormResponse.form_id == form_id))
            self.db.exec(delete(FormVersion).where(FormVersion.form_id == form_id))
            self.db.exec(delete(FormField).where(FormField.form_id == form_id))
            self.db.delete(form)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Form deleted successfully: {form_id}")
