"""Custom exception hierarchy for the Tappi chat client."""


class TappiError(Exception):
    """Base exception for Tappi errors."""
    pass


class ChatError(TappiError):
    """Chat-related errors."""
    pass


class MessageNotFoundError(ChatError):
    """Raised when a message id is not present in the conversation."""

    def __init__(self, message_id: str):
        super().__init__(f"No message with id '{message_id}' in conversation")
        self.message_id = message_id


class StreamError(ChatError):
    """Streaming response errors."""
    pass


class ConfigurationError(TappiError):
    """Configuration errors."""
    pass


class SpeechError(TappiError):
    """Speech synthesis errors."""
    pass


class PersistenceError(TappiError):
    """Session persistence errors."""
    pass
