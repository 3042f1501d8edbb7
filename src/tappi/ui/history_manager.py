"""Gradio chat history rendering."""

from typing import List, Sequence

import gradio as gr

from tappi.chat.models import Message, SavedExcerpt
from tappi.chat.typewriter import TypewriterRenderer
from tappi.utils.logger import logger


def append_utterance(draft: str, utterance: str) -> str:
    """
    Add a recognized voice utterance to the current draft.

    The draft is extended, never replaced.
    """
    utterance = utterance.strip()
    if not utterance:
        return draft
    if not draft:
        return utterance
    return f"{draft.rstrip()} {utterance}"


def format_sources(message: Message) -> str:
    """Markdown list of a message's citations."""
    return "\n".join(f"- 🔗 [{source.title}]({source.uri})" for source in message.sources)


class GradioHistoryManager:
    """Turns conversation state into Gradio chatbot messages."""

    def __init__(self, renderer: TypewriterRenderer):
        """
        Args:
            renderer: Typewriter renderer pacing assistant text
        """
        self.renderer = renderer

    def to_chat_message(self, message: Message) -> gr.ChatMessage:
        content = self.renderer.displayed(message)
        view = self.renderer.view(message.id)
        settled = view is None or not view.in_progress
        if message.is_assistant and message.sources and settled:
            content = f"{content}\n\n{format_sources(message)}"
        return gr.ChatMessage(role=message.role.value, content=content)

    def render(self, messages: Sequence[Message], visible: Sequence[Message] = None) -> List[gr.ChatMessage]:
        """
        Build the chatbot value.

        Args:
            messages: The whole conversation (keeps every view up to date)
            visible: Subset to display, e.g. search results; defaults to all

        Returns:
            List of gr.ChatMessage in conversation order
        """
        self.renderer.sync(messages)
        shown = messages if visible is None else visible
        logger.debug(f"Rendering {len(shown)} of {len(messages)} messages")
        return [self.to_chat_message(message) for message in shown]

    @staticmethod
    def render_excerpts(excerpts: Sequence[SavedExcerpt]) -> str:
        """Markdown for the saved excerpts panel, newest first."""
        if not excerpts:
            return "_Nothing saved yet._"
        blocks = []
        for excerpt in excerpts:
            saved_at = excerpt.timestamp.astimezone().strftime("%Y-%m-%d %H:%M")
            blocks.append(f"**{saved_at}**\n\n{excerpt.content}")
        return "\n\n---\n\n".join(blocks)
