"""AI router - generate or revise forms from a prompt"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ez_forms.auth.dependencies import get_current_user
from ez_forms.auth.models import User
from ez_forms.backends.llm_client import LLMClient
from ez_forms.errors import FormError, http_error
from ez_forms.models.database import get_db
from ez_forms.services.ai_form_service import AIFormGenerator
from ez_forms.services.form_service import FormService
from ez_forms.services.form_version_service import FormVersionService
from ez_forms.services.llm_service import get_llm_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])


class GenerateFormRequest(BaseModel):
    prompt: str = Field(
        ...,
        min_length=1,
        description="What the form should collect, or how to change it",
        json_schema_extra={"example": "A feedback form for a cooking workshop"},
    )
    form_id: Optional[int] = Field(
        None, description="Existing form to revise instead of starting fresh"
    )


@router.post("/generate")
async def generate_form(
    request: GenerateFormRequest,
    user: User = Depends(get_current_user),
    db_session=Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
):
    """Return generated form settings and fields; nothing is saved"""
    form = None
    fields = None
    try:
        if request.form_id is not None:
            form = FormService(db_session).get_owned_form(request.form_id, user.user_id)
            fields = FormVersionService(db_session).get_live_fields(form.id)

        result = await AIFormGenerator(llm_client).generate(
            request.prompt, form=form, fields=fields
        )
    except FormError as e:
        raise http_error(e) from e

    return {"form": result.form, "fields": result.fields, "warnings": result.warnings}
