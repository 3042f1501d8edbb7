"""Structured logging helpers: correlation ids and typed events."""

import contextvars
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from tappi.config.settings import settings
from tappi.utils.logger import logger

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)

_MAX_TEXT_PREVIEW = 200


def generate_correlation_id() -> str:
    """
    Generate a unique correlation ID for request tracking.

    Returns:
        Unique correlation ID string (e.g., "req-abc123")
    """
    return f"req-{uuid.uuid4().hex[:8]}"


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


class CorrelationContext:
    """Context manager binding a correlation ID to every event logged inside it."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token = None

    def __enter__(self) -> str:
        self._token = _correlation_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is None:
            return
        try:
            _correlation_id.reset(self._token)
        except ValueError:
            # Token created in another context (async generator resumed elsewhere)
            _correlation_id.set(None)
        self._token = None


def _preview(text: str) -> str:
    return text[:_MAX_TEXT_PREVIEW] if len(text) > _MAX_TEXT_PREVIEW else text


def _log_structured_event(
    event_type: str,
    level: str = "INFO",
    message: Optional[str] = None,
    **kwargs: Any
) -> None:
    """
    Log a structured event with consistent format.

    Args:
        event_type: Type of event (e.g., "chat_request", "llm_call")
        level: Log level (INFO, DEBUG, WARNING, ERROR)
        message: Optional message to log
        **kwargs: Additional fields to include in the log
    """
    now = datetime.now()
    log_data = {
        "event_type": event_type,
        "timestamp_iso": now.isoformat(),
        "timestamp_unix": now.timestamp(),
        **kwargs
    }

    correlation_id = get_correlation_id()
    if correlation_id and settings.ENABLE_CORRELATION_IDS:
        log_data.setdefault("correlation_id", correlation_id)

    bound_logger = logger.bind(**log_data)
    getattr(bound_logger, level.lower())(message or f"{event_type} event")


def log_chat_request(user_message: str, model: str, attempt: int = 0, **kwargs: Any) -> None:
    """
    Log a chat request event.

    Args:
        user_message: The user's message
        model: Model identifier the request targets
        attempt: Regeneration attempt count (0 for a fresh answer)
        **kwargs: Additional fields to include
    """
    _log_structured_event(
        event_type="chat_request",
        user_message=_preview(user_message),
        message_length=len(user_message),
        model=model,
        attempt=attempt,
        **kwargs
    )


def log_chat_response(
    message_id: str,
    response_length: int,
    source_count: int,
    success: bool = True,
    error_message: Optional[str] = None,
    **kwargs: Any
) -> None:
    """
    Log the outcome of a streamed answer.

    Args:
        message_id: Assistant message that received the answer
        response_length: Length of the final content
        source_count: Number of citations attached
        success: Whether the stream completed
        error_message: Error message if the stream failed
        **kwargs: Additional fields to include
    """
    _log_structured_event(
        event_type="chat_response",
        message_id=message_id,
        response_length=response_length,
        source_count=source_count,
        success=success,
        error_message=error_message,
        **kwargs
    )


def log_regeneration(query: str, attempt: int, reused_slot: bool, **kwargs: Any) -> None:
    """Log a regeneration request."""
    _log_structured_event(
        event_type="regeneration",
        query=_preview(query),
        attempt=attempt,
        reused_slot=reused_slot,
        **kwargs
    )


def log_llm_call(
    model_name: str,
    prompt_tokens: int,
    completion_tokens: int,
    total_tokens: int,
    latency_ms: int,
    **kwargs: Any
) -> None:
    """
    Log an LLM API call with metrics.

    Args:
        model_name: Name of the model used
        prompt_tokens: Number of prompt tokens
        completion_tokens: Number of completion tokens
        total_tokens: Total tokens used
        latency_ms: Latency in milliseconds
        **kwargs: Additional fields to include
    """
    _log_structured_event(
        event_type="llm_call",
        model_name=model_name,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        latency_ms=latency_ms,
        **kwargs
    )


def log_speech_request(text_length: int, success: bool, error_message: Optional[str] = None, **kwargs: Any) -> None:
    """Log a speech synthesis request."""
    _log_structured_event(
        event_type="speech_request",
        text_length=text_length,
        success=success,
        error_message=error_message,
        **kwargs
    )


def log_error(
    error_type: str,
    error_message: str,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any
) -> None:
    """
    Log a structured error event.

    Args:
        error_type: Type of error (e.g., "stream_error", "speech_error")
        error_message: Error message
        context: Additional context about the error
        **kwargs: Additional fields to include
    """
    _log_structured_event(
        event_type="error",
        level="ERROR",
        error_type=error_type,
        error_message=error_message,
        context=context,
        **kwargs
    )
