"""Answer values submitted for a field.

Single- and multi-valued answers are distinct variants tagged by ``kind``,
so nothing downstream has to sniff whether a value is a string or a list.
"""

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field


class SingleValue(BaseModel):
    kind: Literal["single"] = "single"
    value: str

    def is_blank(self) -> bool:
        return not self.value.strip()

    def as_list(self) -> List[str]:
        return [self.value]


class MultiValue(BaseModel):
    kind: Literal["multi"] = "multi"
    values: List[str]

    def is_blank(self) -> bool:
        return not self.values

    def as_list(self) -> List[str]:
        return list(self.values)


AnswerValue = Annotated[Union[SingleValue, MultiValue], Field(discriminator="kind")]


class FieldAnswer(BaseModel):
    field_id: int
    value: AnswerValue
