"""Shared pytest fixtures for all tests."""

from typing import Any, List, Optional, Sequence
from unittest.mock import Mock

import pytest

from tappi.chat.chat_handler import ChatHandler
from tappi.chat.engine import GeminiChatEngine
from tappi.chat.message_store import ConversationStore
from tappi.chat.models import CitationSource, Snapshot, StreamRequest
from tappi.storage.persistence import InMemoryAdapter, SessionRepository


async def _aiter(items: Sequence[Any], error: Optional[Exception] = None):
    for item in items:
        yield item
    if error is not None:
        raise error


class ScriptedEngine:
    """Chat engine double that replays scripted snapshot streams, one per request."""

    def __init__(self):
        self.requests: List[StreamRequest] = []
        self.scripts: List[tuple] = []

    def will_stream(self, snapshots: Sequence[Snapshot], error: Optional[Exception] = None) -> None:
        self.scripts.append((list(snapshots), error))

    def stream(self, request: StreamRequest):
        self.requests.append(request)
        snapshots, error = self.scripts.pop(0) if self.scripts else ([Snapshot(done=True)], None)
        return _aiter(snapshots, error)


@pytest.fixture
def stream_of():
    """Turn a list of items into an async iterator, optionally ending in an error."""
    return _aiter


@pytest.fixture
def make_chunk():
    """Build AIMessageChunk-like mocks with optional grounding and usage metadata."""

    def _make(content: Any = "", grounding: Optional[list] = None, usage: Optional[dict] = None) -> Mock:
        response_metadata = {}
        if grounding is not None:
            response_metadata["grounding_metadata"] = {"grounding_chunks": grounding}
        return Mock(content=content, response_metadata=response_metadata, usage_metadata=usage or {})

    return _make


@pytest.fixture
def mock_llm_client():
    """Create a mock chat model whose bound runnable is itself."""
    client = Mock()
    client.bind_tools.return_value = client
    return client


@pytest.fixture
def gemini_engine(mock_llm_client):
    """Create a GeminiChatEngine over the mock chat model."""
    return GeminiChatEngine(client_factory=lambda model: mock_llm_client)


@pytest.fixture
def scripted_engine():
    return ScriptedEngine()


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def adapter():
    return InMemoryAdapter()


@pytest.fixture
def repository(adapter):
    return SessionRepository(adapter)


@pytest.fixture
def chat_handler(scripted_engine, store, repository):
    """Create a ChatHandler wired to the scripted engine and in-memory storage."""
    return ChatHandler(scripted_engine, store=store, repository=repository)


@pytest.fixture
def paris_snapshots():
    return [
        Snapshot(text="Paris"),
        Snapshot(text="Paris is"),
        Snapshot(
            text="Paris is the capital.",
            sources=(CitationSource(title="France", uri="https://a.example"),),
            done=True,
        ),
    ]
