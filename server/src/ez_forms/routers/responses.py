"""Responses router - submissions, edits and response views"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ez_forms.auth.dependencies import get_current_user, get_current_user_optional
from ez_forms.auth.models import User
from ez_forms.errors import FormError, http_error
from ez_forms.models.answer import FieldAnswer
from ez_forms.models.database import get_db
from ez_forms.models.form_response import FormResponse
from ez_forms.services.response_service import BoundResponse, ResponseService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Responses"])


class ResponseSubmitRequest(BaseModel):
    answers: List[FieldAnswer] = Field(default_factory=list)
    submitter_email: Optional[str] = None
    rating: Optional[int] = None
    comments: Optional[str] = None


class ResponseEditRequest(BaseModel):
    answers: List[FieldAnswer] = Field(default_factory=list)
    rating: Optional[int] = None
    comments: Optional[str] = None


def response_payload(response: FormResponse) -> dict:
    return {
        "id": response.id,
        "form_id": response.form_id,
        "form_version": response.form_version,
        "user_id": response.user_id,
        "submitter_email": response.submitter_email,
        "is_anonymous": response.is_anonymous,
        "rating": response.rating,
        "comments": response.comments,
        "created_at": response.created_at,
        "updated_at": response.updated_at,
    }


def bound_response_payload(bound: BoundResponse) -> dict:
    return {
        "response": response_payload(bound.response),
        "answers": [
            {
                "field_id": answer.field_id,
                "label": answer.label,
                "field": answer.field,
                "field_exists": answer.field_exists,
                "collected": answer.collected,
                "value": answer.value,
            }
            for answer in bound.answers
        ],
    }


@router.post("/forms/{form_id}/responses", status_code=status.HTTP_201_CREATED)
async def submit_response(
    form_id: int,
    request: ResponseSubmitRequest,
    user: Optional[User] = Depends(get_current_user_optional),
    db_session=Depends(get_db),
):
    """Submit a response; anonymous when no bearer token is sent"""
    try:
        response = ResponseService(db_session).submit_response(
            form_id,
            request.answers,
            user_id=user.user_id if user else None,
            submitter_email=request.submitter_email,
            rating=request.rating,
            comments=request.comments,
        )
    except FormError as e:
        raise http_error(e) from e
    return response_payload(response)


@router.get("/forms/{form_id}/responses")
async def list_responses(
    form_id: int,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        items, total = ResponseService(db_session).list_responses_for_form(
            form_id, user.user_id, limit=limit, offset=offset
        )
    except FormError as e:
        raise http_error(e) from e
    return {
        "responses": [response_payload(item) for item in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/forms/{form_id}/responses/stats")
async def response_stats(
    form_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        return ResponseService(db_session).get_response_stats(form_id, user.user_id)
    except FormError as e:
        raise http_error(e) from e


@router.get("/responses/{response_id}")
async def get_response(
    response_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    """Response with each answer bound to the definition it was given for"""
    try:
        bound = ResponseService(db_session).get_bound_response(
            response_id, user.user_id
        )
    except FormError as e:
        raise http_error(e) from e
    return bound_response_payload(bound)


@router.put("/responses/{response_id}")
async def edit_response(
    response_id: int,
    request: ResponseEditRequest,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        response = ResponseService(db_session).edit_response(
            response_id,
            user.user_id,
            request.answers,
            rating=request.rating,
            comments=request.comments,
        )
    except FormError as e:
        raise http_error(e) from e
    return response_payload(response)


@router.get("/responses/{response_id}/history")
async def response_history(
    response_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        history = ResponseService(db_session).get_response_history(
            response_id, user.user_id
        )
    except FormError as e:
        raise http_error(e) from e
    return {
        "history": [
            {
                "id": entry.id,
                "data": entry.data,
                "edited_by": entry.edited_by,
                "created_at": entry.created_at,
            }
            for entry in history
        ]
    }


@router.delete("/responses/{response_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_response(
    response_id: int,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
):
    try:
        ResponseService(db_session).delete_response(response_id, user.user_id)
    except FormError as e:
        raise http_error(e) from e
