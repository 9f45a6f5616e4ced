"""Tests for response submission, editing and binding"""

from datetime import datetime, timedelta, timezone

import pytest

from ez_forms.errors import FormPermissionError, FormValidationError, NotFoundError
from ez_forms.models.answer import FieldAnswer, MultiValue, SingleValue
from ez_forms.models.form import FormStatus
from tests.config import test_config

OWNER_ID = test_config["owner_id"]
SUBMITTER_ID = test_config["submitter_id"]
OTHER_USER_ID = test_config["other_user_id"]

SURVEY_FIELDS = [
    {"label": "Name", "field_type": "text", "is_required": True},
    {
        "label": "Code",
        "field_type": "text",
        "field_order": 1,
        "regex_pattern": r"^[A-Z]{3}$",
        "validation_message": "Use three capital letters",
    },
    {"label": "Age", "field_type": "number", "field_order": 2, "min_value": 0, "max_value": 120},
    {
        "label": "Topics",
        "field_type": "checkbox-group",
        "field_order": 3,
        "options": [{"label": "Python"}, {"label": "SQL"}, {"label": "Go"}],
        "selection_limit": 2,
    },
    {
        "label": "Level",
        "field_type": "radio",
        "field_order": 4,
        "options": [{"label": "Beginner"}, {"label": "Expert"}],
    },
    {"label": "Day", "field_type": "date", "field_order": 5},
]


def single(field_id, value):
    return FieldAnswer(field_id=field_id, value=SingleValue(value=value))


def multi(field_id, *values):
    return FieldAnswer(field_id=field_id, value=MultiValue(values=list(values)))


@pytest.fixture
def survey(make_form, form_version_service):
    form = make_form(SURVEY_FIELDS)
    fields = {f.label: f.id for f in form_version_service.get_live_fields(form.id)}
    return form, fields


class TestSubmitResponse:
    def test_valid_submission_is_stamped_with_current_version(
        self, survey, response_service
    ):
        form, ids = survey

        response = response_service.submit_response(
            form.id,
            [
                single(ids["Name"], "Ada"),
                single(ids["Code"], "ABC"),
                single(ids["Age"], "36"),
                multi(ids["Topics"], "Python", "SQL"),
                single(ids["Level"], "Expert"),
                single(ids["Day"], "2030-05-01"),
            ],
            rating=5,
        )

        assert response.id is not None
        assert response.form_version == 1
        assert response.is_anonymous is True
        answers = response_service.get_answers(response.id)
        assert len(answers) == 6

    def test_accepts_plain_dict_answers(self, survey, response_service):
        form, ids = survey

        response = response_service.submit_response(
            form.id,
            [{"field_id": ids["Name"], "value": {"kind": "single", "value": "Ada"}}],
        )

        [answer] = response_service.get_answers(response.id)
        assert answer.value == SingleValue(value="Ada")

    @pytest.mark.parametrize(
        "label,answer,message",
        [
            ("Code", SingleValue(value="abc"), "three capital letters"),
            ("Age", SingleValue(value="old"), "Invalid number"),
            ("Age", SingleValue(value="121"), "at most"),
            ("Age", SingleValue(value="-1"), "at least"),
            ("Age", SingleValue(value="nan"), "Invalid number"),
            ("Topics", MultiValue(values=["Rust"]), "Invalid option"),
            ("Topics", MultiValue(values=["Python", "SQL", "Go"]), "maximum of 2"),
            ("Level", MultiValue(values=["Expert"]), "single value"),
            ("Level", SingleValue(value="Guru"), "Invalid option"),
            ("Day", SingleValue(value="tomorrow"), "Invalid date"),
        ],
    )
    def test_invalid_answers_are_rejected(
        self, survey, response_service, label, answer, message
    ):
        form, ids = survey
        answers = [single(ids["Name"], "Ada"), FieldAnswer(field_id=ids[label], value=answer)]

        with pytest.raises(FormValidationError, match=message):
            response_service.submit_response(form.id, answers)

        _, total = response_service.list_responses_for_form(form.id, OWNER_ID)
        assert total == 0

    def test_required_field_must_be_answered(self, survey, response_service):
        form, ids = survey

        with pytest.raises(FormValidationError, match="Missing required field: Name"):
            response_service.submit_response(form.id, [single(ids["Name"], "   ")])

    def test_unknown_field_is_rejected(self, survey, response_service):
        form, ids = survey
        with pytest.raises(FormValidationError, match="Unknown field"):
            response_service.submit_response(
                form.id, [single(ids["Name"], "Ada"), single(987654, "x")]
            )

    def test_duplicate_answers_are_rejected(self, survey, response_service):
        form, ids = survey
        with pytest.raises(FormValidationError, match="more than once"):
            response_service.submit_response(
                form.id, [single(ids["Name"], "Ada"), single(ids["Name"], "Bob")]
            )

    def test_rating_out_of_range(self, survey, response_service):
        form, ids = survey
        with pytest.raises(FormValidationError, match="Rating"):
            response_service.submit_response(
                form.id, [single(ids["Name"], "Ada")], rating=6
            )

    def test_draft_form_rejects_responses(self, make_form, response_service):
        form = make_form(status=FormStatus.DRAFT)
        with pytest.raises(FormValidationError, match="not accepting"):
            response_service.submit_response(form.id, [])

    def test_window_is_enforced(self, make_form, response_service):
        opens = datetime(2030, 1, 1, tzinfo=timezone.utc)
        form = make_form(open_time=opens, deadline=opens + timedelta(days=1))

        with pytest.raises(FormValidationError, match="not open yet"):
            response_service.submit_response(form.id, [], now=opens - timedelta(hours=1))
        with pytest.raises(FormValidationError, match="deadline"):
            response_service.submit_response(form.id, [], now=opens + timedelta(days=2))

        response = response_service.submit_response(
            form.id, [], now=opens + timedelta(hours=1)
        )
        assert response.id is not None

    def test_anonymous_submissions_can_be_disabled(self, make_form, response_service):
        form = make_form(allow_anonymous=False)

        with pytest.raises(FormPermissionError):
            response_service.submit_response(form.id, [])

        response = response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)
        assert response.is_anonymous is False

    def test_single_submission_per_user(self, make_form, response_service):
        form = make_form()
        response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)

        with pytest.raises(FormValidationError, match="already submitted"):
            response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)

    def test_multiple_submissions_when_allowed(self, make_form, response_service):
        form = make_form(allow_multiple_submissions=True)
        response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)
        response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)

        _, total = response_service.list_responses_for_form(form.id, OWNER_ID)
        assert total == 2

    def test_missing_form(self, response_service):
        with pytest.raises(NotFoundError):
            response_service.submit_response(31337, [])


class TestEditResponse:
    def test_edit_records_history_and_keeps_version(
        self, make_form, form_version_service, form_field_service, response_service
    ):
        form = make_form([{"label": "Name", "field_type": "text"}], allow_editing=True)
        [name] = form_version_service.get_live_fields(form.id)
        response = response_service.submit_response(
            form.id, [single(name.id, "Ada")], user_id=SUBMITTER_ID, rating=3
        )

        # Bump the form past the response's version
        form_field_service.batch_save_fields(
            form.id, OWNER_ID, [{"label": "Email", "field_type": "text"}]
        )

        edited = response_service.edit_response(
            response.id, SUBMITTER_ID, [single(name.id, "Ada L.")], rating=4
        )

        assert edited.form_version == 1
        assert edited.rating == 4
        [answer] = response_service.get_answers(response.id)
        assert answer.value.value == "Ada L."

        [entry] = response_service.get_response_history(response.id, SUBMITTER_ID)
        assert entry.edited_by == SUBMITTER_ID
        assert entry.data["rating"] == 3
        assert entry.data["fields"] == [
            {"field_id": name.id, "value": {"kind": "single", "value": "Ada"}}
        ]

    def test_history_is_newest_first(self, make_form, form_version_service, response_service):
        form = make_form([{"label": "Name", "field_type": "text"}], allow_editing=True)
        [name] = form_version_service.get_live_fields(form.id)
        response = response_service.submit_response(
            form.id, [single(name.id, "v1")], user_id=SUBMITTER_ID
        )

        response_service.edit_response(response.id, SUBMITTER_ID, [single(name.id, "v2")])
        response_service.edit_response(response.id, SUBMITTER_ID, [single(name.id, "v3")])

        history = response_service.get_response_history(response.id, OWNER_ID)
        assert [h.data["fields"][0]["value"]["value"] for h in history] == ["v2", "v1"]

    def test_editing_must_be_enabled(self, make_form, response_service):
        form = make_form(allow_editing=False)
        response = response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)

        with pytest.raises(FormPermissionError):
            response_service.edit_response(response.id, SUBMITTER_ID, [])

    def test_only_submitter_can_edit(self, make_form, response_service):
        form = make_form(allow_editing=True)
        response = response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)
        anonymous = response_service.submit_response(form.id, [])

        with pytest.raises(FormPermissionError):
            response_service.edit_response(response.id, OTHER_USER_ID, [])
        with pytest.raises(FormPermissionError):
            response_service.edit_response(anonymous.id, SUBMITTER_ID, [])

    def test_edit_is_validated_against_the_response_version(
        self, make_form, form_version_service, form_field_service, response_service
    ):
        form = make_form([{"label": "Name", "field_type": "text"}], allow_editing=True)
        [name] = form_version_service.get_live_fields(form.id)
        response = response_service.submit_response(
            form.id, [single(name.id, "Ada")], user_id=SUBMITTER_ID
        )
        result = form_field_service.batch_save_fields(
            form.id, OWNER_ID, [{"label": "Email", "field_type": "text"}]
        )
        [email] = result.fields

        with pytest.raises(FormValidationError, match="Unknown field"):
            response_service.edit_response(
                response.id, SUBMITTER_ID, [single(email.id, "a@b.c")]
            )

        assert response_service.get_response_history(response.id, SUBMITTER_ID) == []


class TestBoundResponse:
    def test_answers_bind_to_the_submission_version(
        self, make_form, form_version_service, form_field_service, response_service
    ):
        form = make_form(
            [
                {"label": "Name", "field_type": "text"},
                {"label": "Phone", "field_type": "text", "field_order": 1},
            ]
        )
        name, phone = form_version_service.get_live_fields(form.id)
        response = response_service.submit_response(form.id, [single(name.id, "Ada")])

        # Two later breaking edits: retype Name, then drop Phone
        form_field_service.batch_save_fields(
            form.id,
            OWNER_ID,
            [
                {**name.model_dump(), "field_type": "number"},
                phone.model_dump(),
            ],
        )
        form_field_service.batch_save_fields(
            form.id, OWNER_ID, [{**name.model_dump(), "field_type": "number"}]
        )

        bound = response_service.get_bound_response(response.id, OWNER_ID)

        by_id = {answer.field_id: answer for answer in bound.answers}
        assert by_id[name.id].field.field_type.value == "text"
        assert by_id[name.id].value == SingleValue(value="Ada")
        assert by_id[phone.id].collected is False
        assert by_id[phone.id].field_exists is True

    def test_answer_for_deleted_field(
        self, make_form, form_version_service, form_field_service, response_service,
        _db_session,
    ):
        form = make_form([{"label": "Name", "field_type": "text"}])
        [name] = form_version_service.get_live_fields(form.id)
        response = response_service.submit_response(form.id, [single(name.id, "Ada")])

        # Deleting the field moves the form to version 2; rebind the response there
        form_field_service.batch_save_fields(form.id, OWNER_ID, [])
        response.form_version = 2
        _db_session.add(response)
        _db_session.commit()

        bound = response_service.get_bound_response(response.id, OWNER_ID)

        [answer] = bound.answers
        assert answer.field_exists is False
        assert answer.label == "Field no longer exists"
        assert answer.value == SingleValue(value="Ada")

    def test_viewer_must_be_owner_or_submitter(self, make_form, response_service):
        form = make_form()
        response = response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)

        assert response_service.get_bound_response(response.id, SUBMITTER_ID).answers == []
        with pytest.raises(FormPermissionError):
            response_service.get_bound_response(response.id, OTHER_USER_ID)


class TestResponseAdministration:
    def test_list_is_paginated_and_owner_only(self, make_form, response_service):
        form = make_form()
        for _ in range(3):
            response_service.submit_response(form.id, [])

        page, total = response_service.list_responses_for_form(
            form.id, OWNER_ID, limit=2, offset=0
        )
        assert total == 3
        assert len(page) == 2

        with pytest.raises(FormPermissionError):
            response_service.list_responses_for_form(form.id, OTHER_USER_ID)

    def test_stats(self, make_form, response_service):
        form = make_form(allow_multiple_submissions=True)
        response_service.submit_response(form.id, [], rating=4)
        response_service.submit_response(form.id, [], user_id=SUBMITTER_ID, rating=2)
        response_service.submit_response(form.id, [], user_id=SUBMITTER_ID)

        stats = response_service.get_response_stats(form.id, OWNER_ID)

        assert stats == {
            "total": 3,
            "anonymous": 1,
            "authenticated": 2,
            "average_rating": 3.0,
        }

    def test_delete_removes_answers_and_history(
        self, make_form, form_version_service, response_service
    ):
        form = make_form([{"label": "Name", "field_type": "text"}], allow_editing=True)
        [name] = form_version_service.get_live_fields(form.id)
        response = response_service.submit_response(
            form.id, [single(name.id, "Ada")], user_id=SUBMITTER_ID
        )
        response_service.edit_response(response.id, SUBMITTER_ID, [single(name.id, "Bo")])
        response_id = response.id

        with pytest.raises(FormPermissionError):
            response_service.delete_response(response_id, SUBMITTER_ID)

        response_service.delete_response(response_id, OWNER_ID)

        assert response_service.get_answers(response_id) == []
        with pytest.raises(NotFoundError):
            response_service.get_response_history(response_id, OWNER_ID)
