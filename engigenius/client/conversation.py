"""
client/conversation.py

Transcript of one chat session.
Messages are frozen; a streaming answer is updated by swapping in a new
version of its Message and replacing the whole tuple, then notifying
subscribers with the new snapshot.
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

Role = Literal["user", "assistant"]
Subscriber = Callable[[tuple["Message", ...]], None]

WELCOME_ID = "welcome"
WELCOME_TEXT = (
    "Hello! I'm your AI study assistant. I can help you understand topics, "
    "generate exam-ready answers, predict important questions, and create quick "
    "revision notes. What would you like to learn today?"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)
    version: int = 0


class Conversation:
    def __init__(self, welcome: bool = True):
        self._messages: tuple[Message, ...] = ()
        self._subscribers: list[Subscriber] = []
        if welcome:
            self._messages = (Message(role="assistant", content=WELCOME_TEXT, id=WELCOME_ID),)

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._messages

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for snapshots. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def append(self, role: Role, content: str) -> Message:
        message = Message(role=role, content=content)
        self._publish(self._messages + (message,))
        return message

    def update(self, message_id: str, content: str) -> Message:
        for i, current in enumerate(self._messages):
            if current.id == message_id:
                updated = dataclasses.replace(current, content=content, version=current.version + 1)
                self._publish(self._messages[:i] + (updated,) + self._messages[i + 1:])
                return updated
        raise KeyError(message_id)

    def _publish(self, snapshot: tuple[Message, ...]) -> None:
        self._messages = snapshot
        for callback in list(self._subscribers):
            callback(snapshot)
