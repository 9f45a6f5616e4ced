"""AI form generation: (de)serialization of forms for the LLM and the generator"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ez_forms.backends.llm_client import LLMClient
from ez_forms.errors import FormValidationError
from ez_forms.models.field_definition import FieldDefinition
from ez_forms.models.field_type import FieldType
from ez_forms.models.form import Form, FormStatus
from ez_forms.system_prompts import FORM_GENERATION_PROMPT

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
VALID_FIELD_TYPES = frozenset(field_type.value for field_type in FieldType)
VALID_STATUSES = frozenset(status.value for status in FormStatus)
FORM_FLAGS = ("allow_anonymous", "allow_multiple_submissions")


@dataclass
class DeserializedForm:
    """Form settings and fields recovered from an AI form structure"""

    form: Dict[str, Any]
    fields: List[FieldDefinition]
    warnings: List[str] = field(default_factory=list)


def serialize_form_for_ai(form: Form, fields: Sequence[FieldDefinition]) -> dict:
    """
    Convert a form and its fields to the structure the model reads and writes.

    Ids, versions and timestamps are left out; fields are in display order.
    """
    ordered = sorted(fields, key=lambda f: (f.field_order, f.id or 0))
    return {
        "name": form.name,
        "slug": form.slug,
        "description": form.description,
        "status": FormStatus(form.status).value,
        "allow_anonymous": form.allow_anonymous,
        "allow_multiple_submissions": form.allow_multiple_submissions,
        "fields": [
            {
                "label": f.label,
                "type": f.field_type.value,
                "required": f.is_required,
                "order": f.field_order,
                "placeholder": f.placeholder,
                "help_text": f.help_text,
                "regex_pattern": f.regex_pattern,
                "validation_message": f.validation_message,
                "options": (
                    [option.model_dump() for option in f.options]
                    if f.options
                    else None
                ),
                "allow_multiple": f.allow_multiple,
                "selection_limit": f.selection_limit,
                "min_value": f.min_value,
                "max_value": f.max_value,
                "default_value": f.default_value,
            }
            for f in ordered
        ],
    }


def _basic_field_error(field_data: Any) -> Optional[str]:
    """Reason a field lacks the minimal label/type/required/order shape"""
    if not isinstance(field_data, dict):
        return "not an object"
    label = field_data.get("label")
    if not isinstance(label, str) or not label:
        return "invalid or missing label"
    if field_data.get("type") not in VALID_FIELD_TYPES:
        return f"invalid field type {field_data.get('type')!r}"
    if not isinstance(field_data.get("required"), bool):
        return "invalid or missing required property"
    order = field_data.get("order")
    if isinstance(order, bool) or not isinstance(order, (int, float)):
        return "invalid or missing order"
    return None


def validate_ai_form_structure(data: Any) -> bool:
    """
    Check the overall shape of a generated form.

    Individual fields may still be invalid; they are dropped later by
    deserialize_form_from_ai. At least one field must have a valid basic
    shape unless the form has no fields at all.
    """
    if not isinstance(data, dict) or not isinstance(data.get("form"), dict):
        logger.error("AI response validation: missing or invalid 'form' object")
        return False

    form = data["form"]

    name = form.get("name")
    if not isinstance(name, str) or not name or len(name) > 256:
        logger.error("AI response validation: invalid form name")
        return False

    slug = form.get("slug")
    if not isinstance(slug, str) or len(slug) > 256 or not SLUG_PATTERN.match(slug):
        logger.error(
            "AI response validation: slug must be lowercase letters, numbers "
            "and hyphens"
        )
        return False

    if form.get("status") not in VALID_STATUSES:
        logger.error(f"AI response validation: invalid status {form.get('status')!r}")
        return False

    for flag in FORM_FLAGS:
        if not isinstance(form.get(flag), bool):
            logger.error(f"AI response validation: invalid {flag} value")
            return False

    fields = form.get("fields")
    if not isinstance(fields, list):
        logger.error("AI response validation: fields must be an array")
        return False

    if not fields:
        logger.warning("AI response validation: form has no fields")
        return True

    for i, field_data in enumerate(fields):
        error = _basic_field_error(field_data)
        if error is None:
            return True
        logger.warning(f"AI response validation: field {i} {error}")

    logger.error("AI response validation: no valid fields found in the form")
    return False


def deserialize_form_from_ai(ai_form: dict) -> DeserializedForm:
    """
    Turn a validated AI form structure into form settings and new fields.

    Invalid fields are skipped with a warning. The remaining fields are
    renumbered 0..n-1 in their original order and carry no id.
    """
    warnings: List[str] = []
    fields: List[FieldDefinition] = []

    for i, field_data in enumerate(ai_form.get("fields") or []):
        label = field_data.get("label") if isinstance(field_data, dict) else None
        error = _basic_field_error(field_data)
        if error is None:
            try:
                definition = FieldDefinition(
                    label=field_data["label"],
                    field_type=field_data["type"],
                    is_required=field_data["required"],
                    field_order=int(field_data["order"]),
                    placeholder=field_data.get("placeholder"),
                    help_text=field_data.get("help_text"),
                    regex_pattern=field_data.get("regex_pattern"),
                    validation_message=field_data.get("validation_message"),
                    options=field_data.get("options"),
                    allow_multiple=field_data.get("allow_multiple"),
                    selection_limit=field_data.get("selection_limit"),
                    min_value=field_data.get("min_value"),
                    max_value=field_data.get("max_value"),
                    default_value=field_data.get("default_value"),
                )
            except PydanticValidationError as e:
                error = "; ".join(err["msg"] for err in e.errors())

        if error is not None:
            warnings.append(f"Skipping field {i} ({label or 'unknown'}): {error}")
            continue
        fields.append(definition)

    for order, definition in enumerate(fields):
        definition.field_order = order

    for warning in warnings:
        logger.warning(warning)

    return DeserializedForm(
        form={
            "name": ai_form["name"],
            "slug": ai_form["slug"],
            "description": ai_form.get("description"),
            "status": ai_form["status"],
            "allow_anonymous": ai_form["allow_anonymous"],
            "allow_multiple_submissions": ai_form["allow_multiple_submissions"],
        },
        fields=fields,
        warnings=warnings,
    )


class AIFormGenerator:
    """Generates or revises forms from a natural-language prompt"""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    async def generate(
        self,
        prompt: str,
        form: Optional[Form] = None,
        fields: Optional[Sequence[FieldDefinition]] = None,
    ) -> DeserializedForm:
        """
        Ask the model for a form and return its validated settings and fields.

        Args:
            prompt: What the user wants
            form: Existing form to revise, if any
            fields: Live fields of ``form``

        Raises:
            FormValidationError: If the prompt is empty or the model's answer
                is not a usable form
        """
        if not prompt or not prompt.strip():
            raise FormValidationError("Prompt is required")

        content = prompt
        if form is not None:
            existing = serialize_form_for_ai(form, fields or [])
            content = f"{prompt}\n\nexistingForm:{json.dumps(existing, default=str)}"

        response = await self.llm_client.process_instruction(
            messages=[{"role": "user", "content": content}],
            max_tokens=4000,
            system=FORM_GENERATION_PROMPT,
        )

        try:
            data = json.loads(response)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON from LLM: {response}")
            raise FormValidationError(f"AI returned invalid JSON: {e}") from e

        if not validate_ai_form_structure(data):
            raise FormValidationError(
                "AI generated an invalid form structure. Please try again with "
                "a different prompt."
            )

        result = deserialize_form_from_ai(data["form"])
        logger.info(
            f"Generated form '{result.form['name']}' with {len(result.fields)} fields"
        )
        return result
