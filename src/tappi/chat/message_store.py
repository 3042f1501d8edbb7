"""Conversation state: the ordered list of messages."""

from typing import Callable, Iterable, List, Optional

from tappi.chat.models import Message, Role
from tappi.config.persona import TAPPI, Persona
from tappi.exceptions import MessageNotFoundError
from tappi.utils.logger import logger


class ConversationStore:
    """
    In-memory conversation owned by a single chat session.

    The list is append-only except for ``clear`` and ``load``. Updates go
    through ``replace_by_id`` so late snapshots always land on the message
    they were addressed to, however many messages were appended since.
    """

    def __init__(self, persona: Persona = TAPPI, messages: Optional[Iterable[Message]] = None):
        """
        Initialize the store.

        Args:
            persona: Persona providing the welcome message
            messages: Initial messages; defaults to a single welcome message
        """
        self.persona = persona
        self._messages: List[Message] = list(messages) if messages else [self.welcome_message()]
        logger.debug(f"ConversationStore initialized with {len(self._messages)} messages")

    def welcome_message(self) -> Message:
        """A fresh welcome message; its id is new every time."""
        return Message.assistant(self.persona.welcome_message)

    def append(self, messages: Iterable[Message]) -> None:
        """
        Append messages in order.

        Args:
            messages: Messages to add at the end of the conversation
        """
        messages = list(messages)
        logger.debug(f"Appending {len(messages)} messages, current count: {len(self._messages)}")
        self._messages.extend(messages)

    def replace_by_id(self, message_id: str, updater: Callable[[Message], Message]) -> Message:
        """
        Replace exactly one message with ``updater(message)``.

        Args:
            message_id: Identity of the message to update
            updater: Pure function returning the new version of the message

        Returns:
            The updated message

        Raises:
            MessageNotFoundError: If no message has that id
        """
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                updated = updater(message)
                if updated.id != message_id:
                    raise ValueError("updater must preserve message identity")
                self._messages[index] = updated
                return updated
        raise MessageNotFoundError(message_id)

    def get(self, message_id: str) -> Message:
        for message in self._messages:
            if message.id == message_id:
                return message
        raise MessageNotFoundError(message_id)

    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def all(self) -> List[Message]:
        """
        Get all stored messages.

        Returns:
            Copy of the messages in conversation order
        """
        return self._messages.copy()

    def streaming(self) -> List[Message]:
        return [message for message in self._messages if message.streaming]

    def clear(self) -> None:
        """Reset the conversation to a single welcome message."""
        message_count = len(self._messages)
        self._messages = [self.welcome_message()]
        logger.info(f"Cleared {message_count} messages from store")

    def load(self, messages: Iterable[Message]) -> None:
        """Replace the conversation with restored messages (welcome if empty)."""
        messages = list(messages)
        self._messages = messages or [self.welcome_message()]
        logger.debug(f"Loaded {len(self._messages)} messages into store")

    def search(self, term: str) -> List[Message]:
        """
        Messages whose content contains ``term``, case-insensitively.

        A blank term matches every message.
        """
        needle = term.strip().lower()
        if not needle:
            return self.all()
        return [message for message in self._messages if needle in message.content.lower()]

    def transcript(self) -> str:
        """
        Render the conversation as plain text.

        Returns:
            One ``[HH:MM] Name: content`` block per message, blank-line separated
        """
        blocks = []
        for message in self._messages:
            name = (
                self.persona.assistant_name if message.role == Role.ASSISTANT
                else self.persona.user_name
            )
            time = message.timestamp.astimezone().strftime("%H:%M")
            blocks.append(f"[{time}] {name}: {message.content}")
        return "\n\n".join(blocks)

    def __len__(self) -> int:
        return len(self._messages)
