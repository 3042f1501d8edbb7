"""Data models for the chat application."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from tappi.config.settings import settings


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    """Generate a message id that is never reused within a session."""
    return f"msg-{uuid.uuid4().hex}"


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


@dataclass(frozen=True)
class CitationSource:
    """
    A grounding citation attached to an assistant answer.

    Uniqueness within a message is by ``uri``.
    """
    title: str
    uri: str


@dataclass(frozen=True)
class ChunkUpdate:
    """
    The parsed content of one network chunk.

    Attributes:
        text: Text delta carried by the chunk (may be empty)
        sources: Citation entries carried by the chunk, in chunk order
    """
    text: str = ""
    sources: Tuple[CitationSource, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """
    A full restatement of an in-flight response.

    Attributes:
        text: Accumulated response text so far (not a delta)
        sources: Deduplicated citations so far, in first-seen order
        done: True only on the final element of a stream
    """
    text: str = ""
    sources: Tuple[CitationSource, ...] = ()
    done: bool = False


@dataclass(frozen=True)
class Message:
    """
    One conversation entry.

    Messages are immutable; the store swaps in updated copies. ``restored``
    marks messages loaded from persistence so renderers can treat them as
    history without relying on their age.
    """
    id: str
    role: Role
    content: str = ""
    sources: Tuple[CitationSource, ...] = ()
    timestamp: datetime = field(default_factory=utc_now)
    streaming: bool = False
    restored: bool = False

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(id=new_message_id(), role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(id=new_message_id(), role=Role.ASSISTANT, content=content)

    @classmethod
    def placeholder(cls) -> "Message":
        """An empty assistant message awaiting its first snapshot."""
        return cls(id=new_message_id(), role=Role.ASSISTANT, streaming=True)

    @property
    def is_assistant(self) -> bool:
        return self.role == Role.ASSISTANT

    def with_snapshot(self, snapshot: Snapshot) -> "Message":
        """Replace content and sources wholesale; settle on the terminal snapshot."""
        return replace(
            self,
            content=snapshot.text,
            sources=tuple(snapshot.sources),
            streaming=not snapshot.done,
        )

    def reset_for_stream(self) -> "Message":
        """Empty the message and mark it streaming, keeping its identity."""
        return replace(self, content="", sources=(), streaming=True)

    def settle(self, content: Optional[str] = None) -> "Message":
        """Clear the streaming flag, optionally replacing the content."""
        if content is None:
            return replace(self, streaming=False)
        return replace(self, content=content, streaming=False)


@dataclass(frozen=True)
class SavedExcerpt:
    """A pinned copy of a message's content at save time."""
    id: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class StreamRequest:
    """
    Everything needed to start one completion stream.

    Attributes:
        prompt: The user query
        model: Model identifier
        use_search: Bind the web search grounding tool
        use_maps: Bind the maps grounding tool (and send the location if known)
        attempt: Regeneration attempt count, 0 for a fresh answer
    """
    prompt: str
    model: str = settings.MODEL_NAME
    use_search: bool = True
    use_maps: bool = False
    attempt: int = 0


@dataclass
class UserSettings:
    """User-adjustable preferences, persisted as one record."""
    model: str = settings.MODEL_NAME
    use_search: bool = True
    use_maps: bool = False
    voice_language: str = settings.DEFAULT_VOICE_LANGUAGE
    background_image: Optional[str] = settings.DEFAULT_BACKGROUND_IMAGE
    background_opacity: float = settings.DEFAULT_BACKGROUND_OPACITY
    is_dark_mode: bool = False
    user_avatar: Optional[str] = None

    def to_request(self, prompt: str, attempt: int = 0) -> StreamRequest:
        return StreamRequest(
            prompt=prompt,
            model=self.model,
            use_search=self.use_search,
            use_maps=self.use_maps,
            attempt=attempt,
        )
