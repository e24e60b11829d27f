"""
models/request.py
All incoming request schemas.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    """
    Body of POST /ask-ai.
    `question` is optional here so an empty/missing question gets the
    relay's own 400 message instead of a schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = Field(None, description="User question, sent upstream verbatim")
    user_id: Optional[str] = Field(None, alias="userId", description="Owner of uploaded materials")

    @property
    def has_question(self) -> bool:
        return bool(self.question and self.question.strip())
