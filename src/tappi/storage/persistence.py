"""Session persistence: named JSON records behind a small adapter interface."""

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from tappi.chat.models import CitationSource, Message, Role, SavedExcerpt, UserSettings
from tappi.config.settings import settings
from tappi.exceptions import PersistenceError
from tappi.utils.logger import logger

HISTORY_RECORD = "chat_history"
SETTINGS_RECORD = "settings"
EXCERPTS_RECORD = "saved_excerpts"


class PersistenceAdapter(Protocol):
    """Durable key-value store of named text records."""

    def read(self, name: str) -> Optional[str]:
        """Return the record's text, or None if it was never written."""
        ...

    def write(self, name: str, text: str) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


class InMemoryAdapter:
    """Records kept in a dict; nothing survives the process."""

    def __init__(self, records: Optional[Dict[str, str]] = None):
        self.records: Dict[str, str] = dict(records or {})

    def read(self, name: str) -> Optional[str]:
        return self.records.get(name)

    def write(self, name: str, text: str) -> None:
        self.records[name] = text

    def delete(self, name: str) -> None:
        self.records.pop(name, None)


class JsonFileAdapter:
    """One ``<name>.json`` file per record inside a directory."""

    def __init__(self, directory: str | Path = settings.STORAGE_DIR):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def read(self, name: str) -> Optional[str]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read record '{name}': {e}") from e

    def write(self, name: str, text: str) -> None:
        path = self._path(name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_name(f"{path.name}.tmp")
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise PersistenceError(f"Failed to write record '{name}': {e}") from e

    def delete(self, name: str) -> None:
        try:
            self._path(name).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to delete record '{name}': {e}") from e


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role.value,
        "content": message.content,
        "sources": [{"title": s.title, "uri": s.uri} for s in message.sources],
        "timestamp": message.timestamp.isoformat(),
        "streaming": message.streaming,
    }


def message_from_dict(data: Dict[str, Any]) -> Message:
    """
    Rebuild a message from its stored form.

    Restored messages are marked as history and never come back streaming.
    """
    return Message(
        id=str(data["id"]),
        role=Role(data["role"]),
        content=str(data.get("content", "")),
        sources=tuple(
            CitationSource(title=s["title"], uri=s["uri"]) for s in data.get("sources") or []
        ),
        timestamp=_parse_timestamp(data["timestamp"]),
        streaming=False,
        restored=True,
    )


def excerpt_to_dict(excerpt: SavedExcerpt) -> Dict[str, Any]:
    return {
        "id": excerpt.id,
        "content": excerpt.content,
        "timestamp": excerpt.timestamp.isoformat(),
    }


def excerpt_from_dict(data: Dict[str, Any]) -> SavedExcerpt:
    return SavedExcerpt(
        id=str(data["id"]),
        content=str(data["content"]),
        timestamp=_parse_timestamp(data["timestamp"]),
    )


def settings_from_dict(data: Dict[str, Any]) -> UserSettings:
    """Known keys override the defaults; unknown keys are ignored."""
    if not isinstance(data, dict):
        raise TypeError(f"settings record must be an object, got {type(data).__name__}")
    known = {f.name for f in fields(UserSettings)}
    loaded = UserSettings(**{k: v for k, v in data.items() if k in known})
    if not loaded.background_image:
        loaded.background_image = settings.DEFAULT_BACKGROUND_IMAGE
    return loaded


@dataclass
class SessionState:
    """Everything restored at startup. ``messages`` empty means use the welcome message."""
    messages: List[Message] = field(default_factory=list)
    settings: UserSettings = field(default_factory=UserSettings)
    excerpts: List[SavedExcerpt] = field(default_factory=list)


class SessionRepository:
    """
    Loads and saves the three session records.

    Each record loads independently: a corrupt record falls back to its
    default and never prevents the others from loading.
    """

    def __init__(self, adapter: PersistenceAdapter):
        self.adapter = adapter

    def load(self) -> SessionState:
        state = SessionState()

        raw = self._read(HISTORY_RECORD)
        if raw is not None:
            try:
                state.messages = [message_from_dict(item) for item in json.loads(raw)]
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Corrupt chat history record, starting fresh: {e}")
                state.messages = []

        raw = self._read(SETTINGS_RECORD)
        if raw is not None:
            try:
                state.settings = settings_from_dict(json.loads(raw))
            except (ValueError, TypeError) as e:
                logger.warning(f"Corrupt settings record, using defaults: {e}")
                state.settings = UserSettings()

        raw = self._read(EXCERPTS_RECORD)
        if raw is not None:
            try:
                state.excerpts = [excerpt_from_dict(item) for item in json.loads(raw)]
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Corrupt saved excerpts record, starting empty: {e}")
                state.excerpts = []

        logger.info(
            f"Session loaded: {len(state.messages)} messages, "
            f"{len(state.excerpts)} saved excerpts"
        )
        return state

    def _read(self, name: str) -> Optional[str]:
        try:
            return self.adapter.read(name)
        except PersistenceError as e:
            logger.warning(f"Could not read record '{name}': {e}")
            return None

    def save_messages(self, messages: List[Message]) -> None:
        self._write(HISTORY_RECORD, [message_to_dict(m) for m in messages])

    def save_settings(self, user_settings: UserSettings) -> None:
        self._write(SETTINGS_RECORD, asdict(user_settings))

    def save_excerpts(self, excerpts: List[SavedExcerpt]) -> None:
        self._write(EXCERPTS_RECORD, [excerpt_to_dict(e) for e in excerpts])

    def clear_messages(self) -> None:
        try:
            self.adapter.delete(HISTORY_RECORD)
        except PersistenceError as e:
            logger.warning(f"Could not delete chat history: {e}")

    def _write(self, name: str, payload: Any) -> None:
        """Best effort: write failures are logged, not raised."""
        try:
            self.adapter.write(name, json.dumps(payload))
        except PersistenceError as e:
            logger.warning(f"Could not save record '{name}': {e}")
