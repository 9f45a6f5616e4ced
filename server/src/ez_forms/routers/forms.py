"""Forms router - form settings, field editing and version history"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ez_forms.auth.dependencies import get_current_user, get_current_user_optional
from ez_forms.auth.models import User
from ez_forms.errors import FormError, FormPermissionError, NotFoundError, http_error
from ez_forms.models.database import get_db
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.form import Form, FormStatus
from ez_forms.services.form_field_service import FormFieldService, ScheduleWindow
from ez_forms.services.form_service import FormService
from ez_forms.services.form_version_service import FormVersionService, VersionEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms", tags=["Forms"])


class FormCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    slug: str = Field(..., min_length=1, max_length=256, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = None
    status: FormStatus = FormStatus.DRAFT
    allow_anonymous: bool = True
    allow_multiple_submissions: bool = False
    allow_editing: bool = False
    open_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    fields: List[dict] = Field(default_factory=list)


class FormUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[FormStatus] = None
    allow_anonymous: Optional[bool] = None
    allow_multiple_submissions: Optional[bool] = None
    allow_editing: Optional[bool] = None
    open_time: Optional[datetime] = None
    deadline: Optional[datetime] = None


class BatchSaveRequest(BaseModel):
    fields: List[dict] = Field(
        ...,
        description="Complete desired field list; fields without an id are created",
    )
    schedule: Optional[ScheduleWindow] = None


def form_payload(form: Form) -> dict:
    return {
        "id": form.id,
        "user_id": form.user_id,
        "name": form.name,
        "slug": form.slug,
        "description": form.description,
        "status": FormStatus(form.status).value,
        "allow_anonymous": form.allow_anonymous,
        "allow_multiple_submissions": form.allow_multiple_submissions,
        "allow_editing": form.allow_editing,
        "open_time": form.open_time,
        "deadline": form.deadline,
        "current_version": form.current_version,
        "created_at": form.created_at,
        "updated_at": form.updated_at,
    }


def version_payload(entry: VersionEntry, include_fields: bool = False) -> dict:
    payload = {
        "version": entry.version,
        "name": entry.snapshot.name,
        "description": entry.snapshot.description,
        "created_by": entry.created_by,
        "created_at": entry.created_at,
        "field_count": len(entry.snapshot.fields),
    }
    if include_fields:
        payload["fields"] = entry.snapshot.fields
    return payload


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_form(
    request: FormCreateRequest,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    form = Form(
        user_id=user.user_id,
        **request.model_dump(exclude={"fields"}),
    )
    try:
        form = FormService(db_session).create_form(form, request.fields)
    except FormError as e:
        raise http_error(e) from e

    fields = FormVersionService(db_session).get_live_fields(form.id)
    return {"form": form_payload(form), "fields": fields}


@router.get("")
async def list_forms(
    user: User = Depends(get_current_user), db_session=Depends(get_db)
):
    forms = FormService(db_session).list_forms_for_user(user.user_id)
    return {"forms": [form_payload(form) for form in forms]}


@router.get("/{form_id}")
async def get_form(
    form_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        form = FormService(db_session).get_owned_form(form_id, user.user_id)
    except FormError as e:
        raise http_error(e) from e

    fields = FormVersionService(db_session).get_live_fields(form.id)
    return {"form": form_payload(form), "fields": fields}


@router.patch("/{form_id}")
async def update_form(
    form_id: int,
    request: FormUpdateRequest,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        form = FormService(db_session).update_form(
            form_id, user.user_id, request.model_dump(exclude_unset=True)
        )
    except FormError as e:
        raise http_error(e) from e
    return {"form": form_payload(form)}


@router.delete("/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_form(
    form_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        FormService(db_session).delete_form(form_id, user.user_id)
    except FormError as e:
        raise http_error(e) from e


@router.put("/{form_id}/fields")
async def batch_save_fields(
    form_id: int,
    request: BatchSaveRequest,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    """Replace the form's fields, bumping the version on breaking changes"""
    try:
        result = FormFieldService(db_session).batch_save_fields(
            form_id, user.user_id, request.fields, schedule=request.schedule
        )
    except FormError as e:
        raise http_error(e) from e

    return {
        "version_changed": result.version_changed,
        "new_version": result.new_version,
        "fields": result.fields,
    }


@router.get("/{form_id}/fields")
async def get_fields(
    form_id: int,
    version: Optional[int] = Query(None, ge=1),
    user: Optional[User] = Depends(get_current_user_optional),
    db_session=Depends(get_db),
):
    """
    Fields of a form at ``version`` (default: current).

    Published forms expose their current fields to anyone; older versions
    and unpublished forms are visible to the owner only.
    """
    form = FormService(db_session).get_form_by_id(form_id)
    if not form:
        raise http_error(NotFoundError("Form not found"))

    is_owner = user is not None and user.user_id == form.user_id
    requested = version or form.current_version
    is_public = form.status == FormStatus.PUBLISHED and requested == form.current_version
    if not (is_owner or is_public):
        raise http_error(
            FormPermissionError("You do not have permission to access this form")
        )
    if requested > form.current_version:
        raise http_error(
            NotFoundError(f"Version {requested} of form {form_id} not found")
        )

    try:
        fields: List[FieldDefinition] = FormVersionService(
            db_session
        ).resolve_fields_for_response(form_id, requested)
    except FormError as e:
        raise http_error(e) from e

    return {"form_id": form_id, "version": requested, "fields": fields}


@router.get("/{form_id}/versions")
async def list_versions(
    form_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        form = FormService(db_session).get_owned_form(form_id, user.user_id)
        history = FormVersionService(db_session).get_version_history(form_id)
    except FormError as e:
        raise http_error(e) from e

    return {
        "current_version": form.current_version,
        "versions": [version_payload(entry) for entry in history],
    }


@router.get("/{form_id}/versions/{version}")
async def get_version(
    form_id: int,
    version: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        FormService(db_session).get_owned_form(form_id, user.user_id)
        entry = FormVersionService(db_session).get_version(form_id, version)
    except FormError as e:
        raise http_error(e) from e

    return version_payload(entry, include_fields=True)
