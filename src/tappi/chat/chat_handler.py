"""Core chat handler: sends, regenerations and the in-flight gate."""

from dataclasses import fields, replace
from typing import Any, AsyncIterator, List, Optional

from tappi.chat.engine import ChatEngine
from tappi.chat.message_store import ConversationStore
from tappi.chat.models import Message, SavedExcerpt, UserSettings
from tappi.chat.regeneration import RegenerationController
from tappi.config.persona import TAPPI, Persona
from tappi.config.settings import settings
from tappi.storage.persistence import SessionRepository, SessionState
from tappi.utils.logger import logger
from tappi.utils.structured_logging import (
    CorrelationContext,
    log_chat_request,
    log_chat_response,
    log_error,
)


class InFlightGate:
    """Admits one request at a time; a second one is rejected, not queued."""

    def __init__(self):
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def try_acquire(self) -> bool:
        if self._busy:
            return False
        self._busy = True
        return True

    def release(self) -> None:
        self._busy = False


class ChatHandler:
    """
    Handles chat interactions for a single session.

    Snapshots from the engine are applied to the conversation one at a time,
    in the order they are produced, always addressed by message id.
    """

    def __init__(
        self,
        chat_engine: ChatEngine,
        store: Optional[ConversationStore] = None,
        repository: Optional[SessionRepository] = None,
        user_settings: Optional[UserSettings] = None,
        persona: Persona = TAPPI,
    ):
        """
        Initialize the chat handler.

        Args:
            chat_engine: Engine producing snapshot streams
            store: Conversation store, a fresh one by default
            repository: Optional session persistence
            user_settings: Current user settings
            persona: Persona supplying the canned apologies
        """
        self.chat_engine = chat_engine
        self.persona = persona
        self.store = store or ConversationStore(persona=persona)
        self.repository = repository
        self.user_settings = user_settings or UserSettings()
        self.excerpts: List[SavedExcerpt] = []
        self.regeneration = RegenerationController(self.store)
        self.gate = InFlightGate()

    @classmethod
    def from_session(
        cls,
        chat_engine: ChatEngine,
        repository: SessionRepository,
        persona: Persona = TAPPI,
    ) -> "ChatHandler":
        """Build a handler from the records stored by ``repository``."""
        state: SessionState = repository.load()
        handler = cls(
            chat_engine,
            store=ConversationStore(persona=persona, messages=state.messages),
            repository=repository,
            user_settings=state.settings,
            persona=persona,
        )
        handler.excerpts = list(state.excerpts)
        return handler

    @property
    def busy(self) -> bool:
        return self.gate.busy

    @property
    def cursor(self):
        return self.regeneration.cursor

    async def send(self, user_message: str) -> AsyncIterator[Message]:
        """
        Send a user message and stream the answer into a new placeholder.

        Nothing happens for blank input or while another request is in flight.

        Args:
            user_message: The user's message

        Yields:
            The assistant message after every applied snapshot
        """
        if not user_message.strip():
            logger.debug("Ignoring blank message")
            return
        if not self.gate.try_acquire():
            logger.warning("Rejected message: a response is already in flight")
            return

        try:
            self.cursor.remember(user_message)
            placeholder = Message.placeholder()
            self.store.append([Message.user(user_message), placeholder])
            self._save_messages()

            stream = self._stream_into(placeholder.id, user_message, 0, self.persona.error_apology)
            try:
                async for message in stream:
                    yield message
            finally:
                await stream.aclose()
        finally:
            self.gate.release()

    async def regenerate(self) -> AsyncIterator[Message]:
        """
        Re-answer the last user query with an incremented attempt count.

        A no-op when there is no previous query or a request is in flight.

        Yields:
            The assistant message after every applied snapshot
        """
        if not self.regeneration.can_regenerate:
            logger.debug("Ignoring regenerate: no previous user query")
            return
        if not self.gate.try_acquire():
            logger.warning("Rejected regenerate: a response is already in flight")
            return

        try:
            plan = self.regeneration.prepare()
            stream = self._stream_into(
                plan.slot_id, plan.query, plan.attempt, self.persona.regeneration_apology
            )
            try:
                async for message in stream:
                    yield message
            finally:
                await stream.aclose()
        finally:
            self.gate.release()

    async def _stream_into(
        self, slot_id: str, query: str, attempt: int, apology: str
    ) -> AsyncIterator[Message]:
        """
        Apply one engine stream to the message ``slot_id``.

        The slot itself is yielded first, before the request starts. A failed
        stream replaces the slot content with ``apology``. If the consumer
        stops at any frame, the slot is settled with whatever it holds and no
        further snapshots are applied.
        """
        request = self.user_settings.to_request(query, attempt)
        settled = False

        with CorrelationContext():
            try:
                yield self.store.get(slot_id)

                log_chat_request(user_message=query, model=request.model, attempt=attempt)
                async for snapshot in self.chat_engine.stream(request):
                    message = self.store.replace_by_id(
                        slot_id, lambda m, s=snapshot: m.with_snapshot(s)
                    )
                    settled = snapshot.done
                    yield message

                if not settled:
                    logger.warning("Stream ended without a terminal snapshot")
                    message = self.store.replace_by_id(slot_id, lambda m: m.settle())
                    settled = True
                    yield message

                log_chat_response(
                    message_id=slot_id,
                    response_length=len(message.content),
                    source_count=len(message.sources),
                    attempt=attempt,
                )
            except Exception as e:
                logger.error(f"Failed to generate response: {e}")
                logger.exception("Exception during stream response")
                log_error(
                    error_type="stream_error",
                    error_message=str(e),
                    context={"model": request.model, "attempt": attempt},
                )
                log_chat_response(
                    message_id=slot_id,
                    response_length=0,
                    source_count=0,
                    success=False,
                    error_message=str(e),
                    attempt=attempt,
                )
                message = self.store.replace_by_id(slot_id, lambda m: m.settle(apology))
                settled = True
                yield message
            finally:
                if not settled:
                    logger.info(f"Consumer stopped early; settling {slot_id}")
                    self.store.replace_by_id(slot_id, lambda m: m.settle())
                self._save_messages()

    def clear_history(self) -> bool:
        """
        Reset the conversation to the welcome message and forget the last query.

        Returns:
            False if rejected because a response is in flight
        """
        if self.busy:
            logger.warning("Rejected clear: a response is in flight")
            return False
        logger.info("Clearing conversation history")
        self.store.clear()
        self.cursor.reset()
        if self.repository is not None:
            self.repository.clear_messages()
        self._save_messages()
        return True

    def save_excerpt(self, message_id: str) -> Optional[SavedExcerpt]:
        """
        Pin a copy of a message's current content.

        Returns:
            The new excerpt, or None if that message is already saved
        """
        if any(excerpt.id == message_id for excerpt in self.excerpts):
            return None
        message = self.store.get(message_id)
        excerpt = SavedExcerpt(id=message.id, content=message.content)
        self.excerpts.insert(0, excerpt)
        self._save_excerpts()
        logger.debug(f"Saved excerpt {message_id}")
        return excerpt

    def remove_excerpt(self, excerpt_id: str) -> None:
        self.excerpts = [excerpt for excerpt in self.excerpts if excerpt.id != excerpt_id]
        self._save_excerpts()

    def is_saved(self, message_id: str) -> bool:
        return any(excerpt.id == message_id for excerpt in self.excerpts)

    def update_settings(self, **changes: Any) -> UserSettings:
        """
        Apply and persist settings changes.

        Raises:
            ValueError: On an unknown setting or unsupported model
        """
        known = {f.name for f in fields(UserSettings)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "model" in changes and changes["model"] not in settings.AVAILABLE_MODELS:
            raise ValueError(f"Unsupported model: {changes['model']}")

        self.user_settings = replace(self.user_settings, **changes)
        if self.repository is not None:
            self.repository.save_settings(self.user_settings)
        logger.info(f"Settings updated: {', '.join(sorted(changes))}")
        return self.user_settings

    def _save_messages(self) -> None:
        if self.repository is not None:
            self.repository.save_messages(self.store.all())

    def _save_excerpts(self) -> None:
        if self.repository is not None:
            self.repository.save_excerpts(self.excerpts)
