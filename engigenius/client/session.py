"""
client/session.py

One user's chat session: transcript, in-flight guard, notifications,
and the post-answer persistence of topics / answers / notes.

Flow of ask():
  1. Append user message
  2. Stream answer, growing one assistant message per delta
  3. On failure → notification + apology message
  4. On success (signed in) → extract JSON block, queue inserts

Any exception while streaming ends the turn with the apology message.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Literal, Optional, Union

from engigenius.client.ask_client import GENERIC_FAILURE, AskClient
from engigenius.client.conversation import Conversation, Message
from engigenius.client.extractor import build_records, extract_insight
from engigenius.client.persistence import PersistenceQueue, PersistJob
from engigenius.core.errors import AskError
from engigenius.core.logger import get_logger
from engigenius.models.records import (
    AI_ANSWERS,
    IMPORTANT_TOPICS,
    AIAnswerRecord,
    ExtractedInsight,
    StudyNoteRecord,
    STUDY_NOTES,
)
from engigenius.services.record_store import RecordStore

logger = get_logger(__name__)

APOLOGY = "I'm sorry, I encountered an error. Please try again."


@dataclass(frozen=True)
class Notification:
    title: str
    description: str = ""
    variant: Literal["default", "destructive"] = "default"


@dataclass(frozen=True)
class AskOutcome:
    answer: str
    insight: Optional[ExtractedInsight] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StudySession:
    def __init__(
        self,
        client: AskClient,
        store: RecordStore,
        user_id: Optional[str] = None,
        notify: Optional[Callable[[Notification], None]] = None,
        conversation: Optional[Conversation] = None,
    ):
        self.client = client
        self.user_id = user_id
        self.conversation = conversation or Conversation()
        self._notify = notify or (lambda n: None)
        self.persistence = PersistenceQueue(store, on_error=self._persist_failed)
        self._in_flight = False

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    async def ask(self, text: str, *, cancel: Optional[asyncio.Event] = None) -> Optional[AskOutcome]:
        question = (text or "").strip()
        if not question:
            return None
        if self._in_flight:
            raise AskError("A question is already in progress")

        self.conversation.append("user", question)
        self._in_flight = True
        streaming: Optional[Message] = None

        def on_delta(delta: str, full: str) -> None:
            nonlocal streaming
            if streaming is None:
                streaming = self.conversation.append("assistant", full)
            else:
                streaming = self.conversation.update(streaming.id, full)

        try:
            answer = await self.client.stream_answer(
                question, self.user_id, on_delta=on_delta, cancel=cancel,
            )
        except Exception as e:
            message = str(e) if isinstance(e, AskError) else GENERIC_FAILURE
            logger.error(f"AI error: {type(e).__name__}: {e}")
            self._notify(Notification("Error", message, "destructive"))
            self.conversation.append("assistant", APOLOGY)
            return AskOutcome(answer="", error=message)
        finally:
            self._in_flight = False

        if cancel is not None and cancel.is_set():
            # partial answer stays on screen but is not saved
            return AskOutcome(answer=answer)

        insight = None
        if self.user_id and answer:
            insight = self._persist_answer(question, answer)
        return AskOutcome(answer=answer, insight=insight)

    def _persist_answer(self, question: str, answer: str) -> Optional[ExtractedInsight]:
        insight = extract_insight(answer)
        for record in build_records(self.user_id, question, answer, insight):
            table = AI_ANSWERS if isinstance(record, AIAnswerRecord) else IMPORTANT_TOPICS
            self.persistence.submit(table, record.model_dump())
        return insight

    def save_note(self, content: str, title: Optional[str] = None) -> bool:
        if not self.user_id:
            self._notify(Notification("Sign in required", "Please sign in to save notes", "destructive"))
            return False
        note = StudyNoteRecord(
            user_id=self.user_id,
            title=title or f"AI Answer - {date.today().isoformat()}",
            content=content,
        )
        self.persistence.submit(STUDY_NOTES, note.model_dump())
        self._notify(Notification("Saved to notes!"))
        return True

    def export_answer(self, content: str, path: Union[str, Path, None] = None) -> Path:
        """Write the answer to a text file; default name is engi-genius-answer-<ms>.txt."""
        target = Path(path) if path is not None else Path(".")
        if target.is_dir():
            target = target / f"engi-genius-answer-{int(time.time() * 1000)}.txt"
        target.write_text(content, encoding="utf-8")
        self._notify(Notification("Downloaded!"))
        return target

    def _persist_failed(self, error: Exception, job: PersistJob) -> None:
        what = "note" if job.table == STUDY_NOTES else "answer"
        self._notify(Notification("Error", f"Failed to save {what}", "destructive"))

    async def aclose(self) -> None:
        await self.persistence.close()
        await self.client.aclose()
