"""Form versioning: compatibility checks, break detection and snapshots.

Everything here is pure. An edit to a form's fields is "version breaking"
when answers collected under the old definitions could become invalid or be
misread under the new ones. Breaking edits freeze the old definitions in a
snapshot and bump the form version; see FormFieldService.batch_save_fields.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ez_forms.errors import ConsistencyError
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.field_type import NUMERIC_FIELD_TYPES

# Current layout of encoded snapshots
SNAPSHOT_SCHEMA_VERSION = 1

# Type changes that keep the stored representation of an answer intact.
# Listed one way; both directions are safe.
_COMPATIBLE_TYPE_PAIRS = (
    ("text", "textarea"),
    ("text", "email"),
    ("text", "url"),
    ("text", "tel"),
    ("number", "range"),
)

COMPATIBLE_TYPE_CHANGES = frozenset(
    pair for a, b in _COMPATIBLE_TYPE_PAIRS for pair in ((a, b), (b, a))
)


def _type_name(field_type: Union[str, Enum]) -> str:
    # FieldType hashes by member name, so normalize before set lookups
    if isinstance(field_type, Enum):
        return field_type.value
    return field_type


def is_incompatible_type_change(
    old_type: Union[str, Enum], new_type: Union[str, Enum]
) -> bool:
    """True when retyping a field could misinterpret answers already stored"""
    old_name, new_name = _type_name(old_type), _type_name(new_type)
    if old_name == new_name:
        return False
    return (old_name, new_name) not in COMPATIBLE_TYPE_CHANGES


def has_regex_invalidation(
    old_pattern: Optional[str], new_pattern: Optional[str]
) -> bool:
    """True when a pattern change could reject answers that used to pass.

    Removing a pattern only loosens validation. Adding one, or swapping it for
    a different one, may not.
    """
    if not new_pattern:
        return False
    if not old_pattern:
        return True
    return old_pattern != new_pattern


def _has_stricter_bounds(existing: FieldDefinition, incoming: FieldDefinition) -> bool:
    # An absent old bound is unbounded, so any new bound counts as stricter
    new_min, new_max = incoming.min_value, incoming.max_value
    old_min, old_max = existing.min_value, existing.max_value

    if new_min is not None and (old_min is None or new_min > old_min):
        return True
    if new_max is not None and (old_max is None or new_max < old_max):
        return True
    return False


def is_breaking_field_change(
    existing: FieldDefinition, incoming: FieldDefinition
) -> bool:
    """Classify one field's before/after definitions"""
    if is_incompatible_type_change(existing.field_type, incoming.field_type):
        return True

    if has_regex_invalidation(existing.regex_pattern, incoming.regex_pattern):
        return True

    if not existing.is_required and incoming.is_required:
        return True

    if existing.field_type in NUMERIC_FIELD_TYPES and _has_stricter_bounds(
        existing, incoming
    ):
        return True

    return False


def detect_version_breaking_changes(
    existing_fields: Sequence[FieldDefinition],
    incoming_fields: Sequence[FieldDefinition],
) -> bool:
    """
    Decide whether replacing ``existing_fields`` by ``incoming_fields`` needs
    a new form version.

    Args:
        existing_fields: Live persisted fields, each with an id
        incoming_fields: Complete proposed replacement; fields without a
            persisted id are new

    Returns:
        True if any field is deleted or changed in a data-incompatible way
    """
    existing_by_id: Dict[int, FieldDefinition] = {f.id: f for f in existing_fields}
    incoming_ids = {f.id for f in incoming_fields if f.is_persisted}

    # Deleting a field orphans its historical answers
    for existing in existing_fields:
        if existing.id not in incoming_ids:
            return True

    for incoming in incoming_fields:
        if not incoming.is_persisted:
            # New fields simply were not collected before
            continue
        existing = existing_by_id.get(incoming.id)
        if existing is not None and is_breaking_field_change(existing, incoming):
            return True

    return False


class FormSnapshot(BaseModel):
    """Self-contained copy of a form's definitions at one version"""

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    name: str
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    captured_at: Optional[datetime] = None


def create_form_snapshot(form, fields: Sequence[FieldDefinition]) -> FormSnapshot:
    """
    Capture ``form``'s name, description and fields.

    Fields are deep-copied in display order so later edits to the live rows
    cannot leak into the snapshot.
    """
    ordered = sorted(fields, key=lambda f: (f.field_order, f.id or 0))
    return FormSnapshot(
        name=form.name,
        description=form.description,
        fields=[f.model_copy(deep=True) for f in ordered],
        captured_at=datetime.now(timezone.utc),
    )


def encode_snapshot(snapshot: FormSnapshot) -> str:
    """Serialize a snapshot for storage"""
    return snapshot.model_dump_json()


def decode_snapshot(payload: Union[str, bytes, dict]) -> FormSnapshot:
    """Rebuild a snapshot from its stored form.

    Raises:
        ConsistencyError: If the payload is unreadable or written by an
            unknown snapshot layout
    """
    try:
        data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
    except json.JSONDecodeError as e:
        raise ConsistencyError(f"Corrupted form snapshot: {e}") from e
    if not isinstance(data, dict):
        raise ConsistencyError("Corrupted form snapshot: expected an object")

    schema_version = data.get("schema_version", SNAPSHOT_SCHEMA_VERSION)
    if schema_version != SNAPSHOT_SCHEMA_VERSION:
        raise ConsistencyError(
            f"Unsupported form snapshot schema version {schema_version}"
        )

    try:
        return FormSnapshot.model_validate(data)
    except PydanticValidationError as e:
        raise ConsistencyError(f"Corrupted form snapshot: {e}") from e
