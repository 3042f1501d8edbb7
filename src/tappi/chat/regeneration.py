"""Regeneration of the last answer with an escalating attempt counter."""

from dataclasses import dataclass
from typing import Optional

from tappi.chat.message_store import ConversationStore
from tappi.chat.models import Message
from tappi.utils.logger import logger
from tappi.utils.structured_logging import log_regeneration


@dataclass
class RegenerationCursor:
    """The last user query and how many times its answer was regenerated."""
    last_query: str = ""
    attempts: int = 0

    def remember(self, query: str) -> None:
        """Start tracking a brand-new user query."""
        self.last_query = query
        self.attempts = 0

    def reset(self) -> None:
        self.last_query = ""
        self.attempts = 0

    def advance(self) -> int:
        self.attempts += 1
        return self.attempts


@dataclass(frozen=True)
class RegenerationPlan:
    """Where and how the next regenerated answer is streamed."""
    slot_id: str
    query: str
    attempt: int
    reused_slot: bool


class RegenerationController:
    """
    Prepares the conversation for a regenerated answer.

    The in-flight check belongs to the caller, which shares one gate between
    sending and regenerating.
    """

    def __init__(self, store: ConversationStore, cursor: Optional[RegenerationCursor] = None):
        self.store = store
        self.cursor = cursor or RegenerationCursor()

    @property
    def can_regenerate(self) -> bool:
        return bool(self.cursor.last_query)

    def prepare(self) -> Optional[RegenerationPlan]:
        """
        Advance the attempt counter and pick the slot for the new answer.

        If the most recent message is the assistant's it is reset and reused,
        keeping its identity; otherwise a fresh placeholder is appended.

        Returns:
            The plan, or None when there is no query to regenerate
        """
        if not self.can_regenerate:
            logger.debug("Nothing to regenerate: no previous user query")
            return None

        attempt = self.cursor.advance()
        last = self.store.last()

        if last is not None and last.is_assistant:
            self.store.replace_by_id(last.id, Message.reset_for_stream)
            slot_id, reused = last.id, True
        else:
            placeholder = Message.placeholder()
            self.store.append([placeholder])
            slot_id, reused = placeholder.id, False

        log_regeneration(self.cursor.last_query, attempt, reused)
        logger.info(f"Regenerating answer (attempt {attempt}, reused_slot={reused})")
        return RegenerationPlan(
            slot_id=slot_id,
            query=self.cursor.last_query,
            attempt=attempt,
            reused_slot=reused,
        )
