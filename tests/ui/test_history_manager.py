"""Unit tests for GradioHistoryManager and draft helpers."""

from datetime import datetime, timezone

import pytest

from tappi.chat.models import CitationSource, Message, SavedExcerpt, Snapshot
from tappi.chat.typewriter import IN_PROGRESS_MARKER, TypewriterRenderer
from tappi.ui.history_manager import GradioHistoryManager, append_utterance, format_sources


@pytest.fixture
def history_manager():
    """History manager whose renderer treats every settled answer as history."""
    return GradioHistoryManager(TypewriterRenderer(interval=0, history_grace_seconds=-1))


def _answer(text: str, *sources: CitationSource, done: bool = True) -> Message:
    return Message.placeholder().with_snapshot(Snapshot(text=text, sources=sources, done=done))


@pytest.mark.parametrize(
    "draft,utterance,expected",
    [
        ("", "hello", "hello"),
        ("What is", "the capital", "What is the capital"),
        ("What is ", "the capital", "What is the capital"),
        ("What is", "   ", "What is"),
        ("", "", ""),
    ],
)
def test_append_utterance_extends_draft(draft, utterance, expected):
    assert append_utterance(draft, utterance) == expected


def test_format_sources():
    message = _answer("x", CitationSource("France", "https://a.example"), CitationSource("[Map] Cafe", "https://m.example"))

    assert format_sources(message) == (
        "- 🔗 [France](https://a.example)\n- 🔗 [[Map] Cafe](https://m.example)"
    )


class TestGradioHistoryManager:
    """Tests for GradioHistoryManager."""

    def test_render_roles_and_content(self, history_manager):
        messages = [Message.user("Hi"), _answer("Hello, dear.")]

        rendered = history_manager.render(messages)

        assert [m.role for m in rendered] == ["user", "assistant"]
        assert [m.content for m in rendered] == ["Hi", "Hello, dear."]

    def test_settled_answer_lists_sources(self, history_manager):
        message = _answer("Paris.", CitationSource("France", "https://a.example"))

        rendered = history_manager.render([message])

        assert rendered[0].content == "Paris.\n\n- 🔗 [France](https://a.example)"

    def test_streaming_answer_hides_sources_and_shows_marker(self, history_manager):
        message = _answer("Par", CitationSource("France", "https://a.example"), done=False)

        rendered = history_manager.render([message])

        assert rendered[0].content == f"Par{IN_PROGRESS_MARKER}"

    def test_visible_subset(self, history_manager):
        """Test that search results limit what is shown."""
        hit, miss = Message.user("Paris?"), Message.user("Berlin?")

        rendered = history_manager.render([hit, miss], visible=[hit])

        assert [m.content for m in rendered] == ["Paris?"]

    def test_render_excerpts_empty(self):
        assert GradioHistoryManager.render_excerpts([]) == "_Nothing saved yet._"

    def test_render_excerpts(self):
        stamp = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
        excerpts = [
            SavedExcerpt(id="msg-2", content="Second", timestamp=stamp),
            SavedExcerpt(id="msg-1", content="First", timestamp=stamp),
        ]
        saved_at = stamp.astimezone().strftime("%Y-%m-%d %H:%M")

        rendered = GradioHistoryManager.render_excerpts(excerpts)

        assert rendered == f"**{saved_at}**\n\nSecond\n\n---\n\n**{saved_at}**\n\nFirst"
