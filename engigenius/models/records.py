"""
models/records.py
Rows of the collaborator-owned tables.
The relay only reads syllabus / past_papers; the client only inserts
ai_answers / important_topics / study_notes.
"""

from typing import Optional
from pydantic import BaseModel, Field


# ── Table names ──────────────────────────────────────────────────────────────
SYLLABUS = "syllabus"
PAST_PAPERS = "past_papers"
AI_ANSWERS = "ai_answers"
IMPORTANT_TOPICS = "important_topics"
STUDY_NOTES = "study_notes"


class SyllabusRecord(BaseModel):
    title: str
    file_url: Optional[str] = None


class PastPaperRecord(BaseModel):
    year: str
    subject: Optional[str] = None
    file_url: Optional[str] = None


class AIAnswerRecord(BaseModel):
    user_id: str
    question: str
    answer: str
    summary: str = ""
    subject: str = "General"


class ImportantTopicRecord(BaseModel):
    user_id: str
    subject: str = "General"
    topic: str
    probability: int = Field(..., ge=0, le=100)


class StudyNoteRecord(BaseModel):
    user_id: str
    title: str
    content: str


class ExtractedInsight(BaseModel):
    """Topics + summary parsed from the trailing ```json block of an answer."""
    topics: list[str] = Field(default_factory=list)
    summary: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.topics and not self.summary
