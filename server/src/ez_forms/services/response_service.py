"""Response service for handling form submissions"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func
from sqlmodel import Session, select

from ez_forms.errors import FormPermissionError, FormValidationError, NotFoundError
from ez_forms.models.answer import AnswerValue, FieldAnswer, MultiValue
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.field_type import NUMERIC_FIELD_TYPES, OPTION_FIELD_TYPES, FieldType
from ez_forms.models.form import Form, FormStatus
from ez_forms.models.form_response import (
    FormResponse,
    FormResponseField,
    FormResponseHistory,
)
from ez_forms.services.form_version_service import FormVersionService
from ez_forms.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

MISSING_FIELD_LABEL = "Field no longer exists"

_answer_value_adapter = TypeAdapter(AnswerValue)

# Parsers for answers whose text has to be a valid date/time
_TEMPORAL_PARSERS = {
    FieldType.DATE: date.fromisoformat,
    FieldType.TIME: time.fromisoformat,
    FieldType.DATETIME: datetime.fromisoformat,
}


def encode_answer(value: AnswerValue) -> dict:
    return value.model_dump()


def decode_answer(data: dict) -> AnswerValue:
    return _answer_value_adapter.validate_python(data)


@dataclass
class BoundAnswer:
    """A stored answer paired with the definition that governs it.

    ``field`` is None when the answer's field was deleted in a later version
    than the one the response was bound to. ``value`` is None when the field
    was not collected for this response.
    """

    field_id: int
    field: Optional[FieldDefinition]
    value: Optional[AnswerValue]

    @property
    def field_exists(self) -> bool:
        return self.field is not None

    @property
    def collected(self) -> bool:
        return self.value is not None

    @property
    def label(self) -> str:
        return self.field.label if self.field else MISSING_FIELD_LABEL


@dataclass
class BoundResponse:
    response: FormResponse
    fields: List[FieldDefinition]
    answers: List[BoundAnswer]


def parse_answers(answers: Sequence[Union[FieldAnswer, dict]]) -> List[FieldAnswer]:
    parsed = []
    for i, answer in enumerate(answers):
        if isinstance(answer, FieldAnswer):
            parsed.append(answer)
            continue
        try:
            parsed.append(FieldAnswer.model_validate(answer))
        except PydanticValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise FormValidationError(f"Answer {i}: {messages}") from e
    return parsed


def _validate_answer(field: FieldDefinition, value: AnswerValue) -> None:
    label = field.label

    if isinstance(value, MultiValue) and not field.accepts_multiple():
        raise FormValidationError(f"{label} accepts a single value")

    values = value.as_list()

    if field.regex_pattern:
        for item in values:
            if not re.search(field.regex_pattern, item):
                raise FormValidationError(
                    field.validation_message or f"Invalid value for {label}"
                )

    if field.field_type in NUMERIC_FIELD_TYPES:
        for item in values:
            try:
                number = float(item)
            except ValueError:
                raise FormValidationError(f"Invalid number for {label}")
            if not math.isfinite(number):
                raise FormValidationError(f"Invalid number for {label}")
            if field.min_value is not None and number < field.min_value:
                raise FormValidationError(
                    f"{label} must be at least {field.min_value:g}"
                )
            if field.max_value is not None and number > field.max_value:
                raise FormValidationError(f"{label} must be at most {field.max_value:g}")

    parser = _TEMPORAL_PARSERS.get(field.field_type)
    if parser is not None:
        for item in values:
            try:
                parser(item)
            except ValueError:
                raise FormValidationError(f"Invalid {field.field_type.value} for {label}")

    if field.field_type in OPTION_FIELD_TYPES:
        valid_options = set(field.option_labels())
        for item in values:
            if item not in valid_options:
                raise FormValidationError(f"Invalid option selected for {label}")
        if field.selection_limit and len(values) > field.selection_limit:
            raise FormValidationError(
                f"{label} allows a maximum of {field.selection_limit} selections"
            )


def validate_answers(
    fields: Sequence[FieldDefinition], answers: Sequence[FieldAnswer]
) -> None:
    """
    Check a full answer set against the field definitions it is given for.

    Raises:
        FormValidationError: On the first answer that does not fit
    """
    fields_by_id = {field.id: field for field in fields}
    answers_by_field: Dict[int, FieldAnswer] = {}

    for answer in answers:
        if answer.field_id in answers_by_field:
            raise FormValidationError(f"Field {answer.field_id} answered more than once")
        if answer.field_id not in fields_by_id:
            raise FormValidationError(f"Unknown field {answer.field_id}")
        answers_by_field[answer.field_id] = answer

    for field in fields:
        answer = answers_by_field.get(field.id)
        if answer is None or answer.value.is_blank():
            if field.is_required:
                raise FormValidationError(f"Missing required field: {field.label}")
            continue
        _validate_answer(field, answer.value)


def _validate_rating(rating: Optional[int]) -> None:
    if rating is not None and not 1 <= rating <= 5:
        raise FormValidationError("Rating must be between 1 and 5")


class ResponseService:
    """Service for managing form responses"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.versions = FormVersionService(db_session)

    def submit_response(
        self,
        form_id: int,
        answers: Sequence[Union[FieldAnswer, dict]],
        user_id: Optional[str] = None,
        submitter_email: Optional[str] = None,
        rating: Optional[int] = None,
        comments: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FormResponse:
        """
        Create a new response for a form.

        The response is stamped with the form's current version and validated
        against the live fields.

        Args:
            form_id: ID of the form
            answers: One answer per field
            user_id: Auth0 user ID if the submitter is signed in
            submitter_email: Contact email for anonymous submissions
            rating: Optional 1-5 rating
            comments: Optional free-text comments
            now: Override the current time (tests)

        Returns:
            FormResponse: The created response

        Raises:
            NotFoundError: If the form doesn't exist
            FormValidationError: If the form is closed or an answer is invalid
            FormPermissionError: If anonymous submissions are not allowed
        """
        form = self.db.get(Form, form_id)
        if not form:
            raise NotFoundError("Form not found")

        if form.status != FormStatus.PUBLISHED:
            raise FormValidationError("This form is not accepting responses")

        now_utc = as_utc(now) if now else datetime.now(timezone.utc)
        if form.open_time and now_utc < as_utc(form.open_time):
            raise FormValidationError("This form is not open yet")
        if form.deadline and now_utc > as_utc(form.deadline):
            raise FormValidationError("The deadline for this form has passed")

        if user_id is None and not form.allow_anonymous:
            raise FormPermissionError("This form requires authentication to submit")

        if user_id is not None and not form.allow_multiple_submissions:
            existing = self.db.exec(
                select(FormResponse.id).where(
                    FormResponse.form_id == form_id, FormResponse.user_id == user_id
                )
            ).first()
            if existing is not None:
                raise FormValidationError("You have already submitted this form")

        _validate_rating(rating)
        parsed = parse_answers(answers)
        validate_answers(self.versions.get_live_fields(form_id), parsed)

        response = FormResponse(
            form_id=form_id,
            form_version=form.current_version,
            user_id=user_id,
            submitter_email=submitter_email,
            is_anonymous=user_id is None,
            rating=rating,
            comments=comments,
        )

        try:
            self.db.add(response)
            self.db.flush()
            self._add_answer_rows(response.id, parsed)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(response)
        logger.info(
            f"Created response {response.id} for form {form_id} "
            f"at version {response.form_version}"
        )
        return response

    def edit_response(
        self,
        response_id: int,
        editor_id: str,
        answers: Sequence[Union[FieldAnswer, dict]],
        rating: Optional[int] = None,
        comments: Optional[str] = None,
    ) -> FormResponse:
        """
        Replace the answers of a response, keeping the previous state in history.

        Answers are validated against the definitions of the version the
        response was submitted under; that version never changes.
        """
        response = self.db.get(FormResponse, response_id)
        if not response:
            raise NotFoundError("Response not found")

        form = self.db.get(Form, response.form_id)
        if not form.allow_editing:
            raise FormPermissionError("This form does not allow editing responses")
        if response.user_id is None or response.user_id != editor_id:
            raise FormPermissionError("You do not have permission to edit this response")

        _validate_rating(rating)
        parsed = parse_answers(answers)
        fields = self.versions.resolve_fields_for_response(
            form.id, response.form_version
        )
        validate_answers(fields, parsed)

        try:
            history = FormResponseHistory(
                response_id=response.id,
                data=self._response_state(response),
                edited_by=editor_id,
            )
            self.db.add(history)

            self.db.exec(
                delete(FormResponseField).where(
                    FormResponseField.response_id == response.id
                )
            )
            self._add_answer_rows(response.id, parsed)

            response.rating = rating
            response.comments = comments
            response.updated_at = datetime.now(timezone.utc)
            self.db.add(response)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(response)
        logger.info(f"Response {response.id} edited by {editor_id}")
        return response

    def get_response(self, response_id: int, viewer_id: str) -> FormResponse:
        """Load a response visible to the form owner or its submitter"""
        response = self.db.get(FormResponse, response_id)
        if not response:
            raise NotFoundError("Response not found")

        form = self.db.get(Form, response.form_id)
        if viewer_id not in (form.user_id, response.user_id):
            raise FormPermissionError("You do not have permission to view this response")
        return response

    def get_answers(self, response_id: int) -> List[FieldAnswer]:
        rows = self.db.exec(
            select(FormResponseField)
            .where(FormResponseField.response_id == response_id)
            .order_by(FormResponseField.id)
        ).all()
        return [
            FieldAnswer(field_id=row.field_id, value=decode_answer(row.value))
            for row in rows
        ]

    def get_bound_response(self, response_id: int, viewer_id: str) -> BoundResponse:
        """
        Pair each answer with the definition from the response's own version.

        Fields of that version come first in display order (uncollected ones
        with value None), followed by answers whose field no longer exists.
        """
        response = self.get_response(response_id, viewer_id)
        fields = self.versions.resolve_fields_for_response(
            response.form_id, response.form_version
        )
        answers_by_field = {a.field_id: a.value for a in self.get_answers(response.id)}

        bound = [
            BoundAnswer(field_id=field.id, field=field, value=answers_by_field.get(field.id))
            for field in fields
        ]
        known_ids = {field.id for field in fields}
        bound.extend(
            BoundAnswer(field_id=field_id, field=None, value=value)
            for field_id, value in answers_by_field.items()
            if field_id not in known_ids
        )
        return BoundResponse(response=response, fields=list(fields), answers=bound)

    def get_response_history(
        self, response_id: int, viewer_id: str
    ) -> List[FormResponseHistory]:
        """Edit history of a response, newest first"""
        response = self.get_response(response_id, viewer_id)
        statement = (
            select(FormResponseHistory)
            .where(FormResponseHistory.response_id == response.id)
            .order_by(FormResponseHistory.id.desc())
        )
        return list(self.db.exec(statement).all())

    def list_responses_for_form(
        self, form_id: int, owner_id: str, limit: int = 20, offset: int = 0
    ) -> Tuple[List[FormResponse], int]:
        """Page through a form's responses (newest first) and return the total"""
        self._get_owned_form(form_id, owner_id)

        statement = (
            select(FormResponse)
            .where(FormResponse.form_id == form_id)
            .order_by(FormResponse.created_at.desc(), FormResponse.id.desc())
            .limit(limit)
            .offset(offset)
        )
        items = list(self.db.exec(statement).all())
        total = self.db.exec(
            select(func.count(FormResponse.id)).where(FormResponse.form_id == form_id)
        ).one()
        return items, total

    def get_response_stats(self, form_id: int, owner_id: str) -> Dict[str, Any]:
        self._get_owned_form(form_id, owner_id)

        total = self.db.exec(
            select(func.count(FormResponse.id)).where(FormResponse.form_id == form_id)
        ).one()
        anonymous = self.db.exec(
            select(func.count(FormResponse.id)).where(
                FormResponse.form_id == form_id, FormResponse.is_anonymous == True  # noqa: E712
            )
        ).one()
        average_rating = self.db.exec(
            select(func.avg(FormResponse.rating)).where(FormResponse.form_id == form_id)
        ).one()

        return {
            "total": total,
            "anonymous": anonymous,
            "authenticated": total - anonymous,
            "average_rating": float(average_rating) if average_rating is not None else None,
        }

    def delete_response(self, response_id: int, owner_id: str) -> None:
        """Delete a response together with its answers and edit history"""
        response = self.db.get(FormResponse, response_id)
        if not response:
            raise NotFoundError("Response not found")
        self._get_owned_form(response.form_id, owner_id)

        try:
            self.db.exec(
                delete(FormResponseField).where(
                    FormResponseField.response_id == response_id
                )
            )
            self.db.exec(
                delete(FormResponseHistory).where(
                    FormResponseHistory.response_id == response_id
                )
            )
            self.db.delete(response)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Deleted response {response_id}")

    def _get_owned_form(self, form_id: int, owner_id: str) -> Form:
        form = self.db.get(Form, form_id)
        if not form:
            raise NotFoundError("Form not found")
        if form.user_id != owner_id:
            raise FormPermissionError("You do not have permission to access this form")
        return form

    def _add_answer_rows(self, response_id: int, answers: Sequence[FieldAnswer]) -> None:
        for answer in answers:
            self.db.add(
                FormResponseField(
                    response_id=response_id,
                    field_id=answer.field_id,
                    value=encode_answer(answer.value),
                )
            )

    def _response_state(self, response: FormResponse) -> dict:
        return {
            "fields": [
                {"field_id": a.field_id, "value": encode_answer(a.value)}
                for a in self.get_answers(response.id)
            ],
            "rating": response.rating,
            "comments": response.comments,
        }
