from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class RebuttalRequest(BaseModel):
    """Founder's defense against the killer question. Legacy camelCase keys are accepted."""
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = Field(None, alias="killerQuestion")
    answer: Optional[str] = Field(None, alias="userAnswer")
    context: Optional[str] = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.question and self.question.strip() and self.answer and self.answer.strip())


class RebuttalResponse(BaseModel):
    judgement: str
