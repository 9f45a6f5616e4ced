"""Tests for the snapshot store and response binding"""

import pytest

from ez_forms.errors import ConsistencyError, NotFoundError
from tests.config import test_config

OWNER_ID = test_config["owner_id"]


def _break(form_field_service, form_id, label):
    """Replace every field with a single new one, forcing a version bump"""
    return form_field_service.batch_save_fields(
        form_id, OWNER_ID, [{"label": label, "field_type": "text"}]
    )


class TestResolveFieldsForResponse:
    def test_current_version_uses_live_fields(
        self, make_form, form_version_service
    ):
        form = make_form([{"label": "A", "field_type": "text"}])

        fields = form_version_service.resolve_fields_for_response(form.id, 1)

        assert [f.label for f in fields] == ["A"]

    def test_old_version_resolves_to_its_own_snapshot(
        self, make_form, form_field_service, form_version_service
    ):
        form = make_form(
            [
                {"label": "A", "field_type": "text"},
                {"label": "Count", "field_type": "number", "field_order": 1},
            ]
        )
        original = form_version_service.get_live_fields(form.id)

        _break(form_field_service, form.id, "B")
        result = _break(form_field_service, form.id, "C")
        assert result.new_version == 3

        resolved = form_version_service.resolve_fields_for_response(form.id, 1)

        assert resolved == original
        assert [f.label for f in form_version_service.get_live_fields(form.id)] == ["C"]
        assert [
            f.label for f in form_version_service.resolve_fields_for_response(form.id, 2)
        ] == ["B"]

    def test_missing_snapshot_is_a_consistency_error(
        self, make_form, form_service, form_version_service, caplog
    ):
        form = make_form([{"label": "A", "field_type": "text"}])
        form.current_version = 3
        form_service.db.add(form)
        form_service.db.commit()

        with pytest.raises(ConsistencyError):
            form_version_service.resolve_fields_for_response(form.id, 1)

        assert any(record.levelname == "ERROR" for record in caplog.records)

    def test_version_above_current_is_a_consistency_error(
        self, make_form, form_version_service
    ):
        form = make_form([{"label": "A", "field_type": "text"}])

        with pytest.raises(ConsistencyError):
            form_version_service.resolve_fields_for_response(form.id, 2)

    def test_missing_form(self, form_version_service):
        with pytest.raises(NotFoundError):
            form_version_service.resolve_fields_for_response(4242, 1)


class TestVersionHistory:
    def test_history_is_newest_first(
        self, make_form, form_field_service, form_version_service
    ):
        form = make_form([{"label": "A", "field_type": "text"}])
        _break(form_field_service, form.id, "B")
        _break(form_field_service, form.id, "C")

        history = form_version_service.get_version_history(form.id)

        assert [entry.version for entry in history] == [2, 1]
        assert [f.label for f in history[0].snapshot.fields] == ["B"]
        assert history[1].created_by == OWNER_ID

    def test_get_version(self, make_form, form_field_service, form_version_service):
        form = make_form([{"label": "A", "field_type": "text"}])
        _break(form_field_service, form.id, "B")

        entry = form_version_service.get_version(form.id, 1)

        assert entry.version == 1
        assert entry.snapshot.name == form.name

    def test_get_unknown_version(self, make_form, form_version_service):
        form = make_form()
        with pytest.raises(NotFoundError):
            form_version_service.get_version(form.id, 1)

    def test_missing_snapshot_returns_none(self, make_form, form_version_service):
        form = make_form()
        assert form_version_service.get_snapshot(form.id, 1) is None
