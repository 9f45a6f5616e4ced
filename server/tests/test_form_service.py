"""Tests for form settings management"""

from datetime import datetime, timezone

import pytest

from ez_forms.errors import FormPermissionError, FormValidationError, NotFoundError
from ez_forms.models.form import FormStatus
from tests.config import test_config

OWNER_ID = test_config["owner_id"]
OTHER_USER_ID = test_config["other_user_id"]


class TestFormService:
    def test_get_form_by_slug_skips_archived(self, make_form, form_service):
        form = make_form(slug="lunch-order")
        assert form_service.get_form_by_slug("lunch-order").id == form.id

        form_service.update_form(form.id, OWNER_ID, {"status": "archived"})

        assert form_service.get_form_by_slug("lunch-order") is None

    def test_list_forms_for_user(self, make_form, form_service):
        make_form()
        make_form()
        make_form(user_id=OTHER_USER_ID)

        assert len(form_service.list_forms_for_user(OWNER_ID)) == 2

    def test_update_settings_never_touch_version(self, make_form, form_service):
        form = make_form()

        updated = form_service.update_form(
            form.id,
            OWNER_ID,
            {"name": "Renamed", "allow_editing": True, "status": FormStatus.DRAFT},
        )

        assert updated.name == "Renamed"
        assert updated.allow_editing is True
        assert updated.status == FormStatus.DRAFT
        assert updated.current_version == 1

    @pytest.mark.parametrize(
        "changes",
        [
            {"current_version": 5},
            {"status": "live"},
            {"name": "  "},
            {
                "open_time": datetime(2030, 2, 1, tzinfo=timezone.utc),
                "deadline": datetime(2030, 1, 1, tzinfo=timezone.utc),
            },
        ],
    )
    def test_invalid_updates(self, make_form, form_service, changes):
        form = make_form()

        with pytest.raises(FormValidationError):
            form_service.update_form(form.id, OWNER_ID, changes)

        assert form_service.get_form_by_id(form.id).current_version == 1

    def test_update_requires_ownership(self, make_form, form_service):
        form = make_form()
        with pytest.raises(FormPermissionError):
            form_service.update_form(form.id, OTHER_USER_ID, {"name": "Mine now"})

    def test_delete_form_removes_everything(
        self, make_form, form_service, form_field_service, form_version_service,
        response_service,
    ):
        form = make_form([{"label": "A", "field_type": "text"}])
        response_service.submit_response(form.id, [])
        form_field_service.batch_save_fields(form.id, OWNER_ID, [])
        form_id = form.id

        form_service.delete_form(form_id, OWNER_ID)

        assert form_service.get_form_by_id(form_id) is None
        assert form_version_service.get_version_history(form_id) == []
        assert form_version_service.get_live_fields(form_id) == []

    def test_delete_unknown_form(self, form_service):
        with pytest.raises(NotFoundError):
            form_service.delete_form(777, OWNER_ID)
