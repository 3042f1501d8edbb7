"""Gradio UI for the chat interface."""

import asyncio
from typing import AsyncIterator, List, Optional, Tuple

import gradio as gr
import numpy as np

from tappi.chat.chat_handler import ChatHandler
from tappi.chat.models import Message
from tappi.chat.typewriter import TypewriterRenderer
from tappi.config.settings import settings
from tappi.exceptions import SpeechError
from tappi.speech.tts import SpeechService
from tappi.ui.history_manager import GradioHistoryManager, append_utterance
from tappi.utils.logger import logger

APPLY_THEME_JS = """
(dark, image, opacity) => {
    document.body.classList.toggle('dark', dark);
    const style = document.documentElement.style;
    style.setProperty('--tappi-background-image', image ? `url("${image}")` : 'none');
    style.setProperty('--tappi-background-opacity', String(opacity ?? 0));
}
"""

BACKGROUND_CSS = """
body::before {
    content: "";
    position: fixed;
    inset: 0;
    background-image: var(--tappi-background-image, none);
    background-size: cover;
    background-position: center;
    opacity: var(--tappi-background-opacity, 0);
    pointer-events: none;
    z-index: 0;
}
.gradio-container { position: relative; z-index: 1; background: transparent; }
"""


def _last_settled_answer(chat_handler: ChatHandler) -> Optional[Message]:
    for message in reversed(chat_handler.store.all()):
        if message.is_assistant and not message.streaming:
            return message
    return None


def _excerpt_choices(chat_handler: ChatHandler) -> List[Tuple[str, str]]:
    choices = []
    for excerpt in chat_handler.excerpts:
        preview = excerpt.content[:60] + ("..." if len(excerpt.content) > 60 else "")
        choices.append((preview, excerpt.id))
    return choices


class ChatActions:
    """
    Event handlers behind the chat interface.

    Streaming handlers are async generators yielding one frame per applied
    snapshot, then one per revealed character.
    """

    def __init__(
        self,
        chat_handler: ChatHandler,
        speech_service: Optional[SpeechService] = None,
        renderer: Optional[TypewriterRenderer] = None,
    ):
        """
        Args:
            chat_handler: ChatHandler instance for processing messages
            speech_service: Optional speech service for Listen and dictation
            renderer: Typewriter renderer, a default one if omitted
        """
        self.chat_handler = chat_handler
        self.speech_service = speech_service
        self.renderer = renderer or TypewriterRenderer()
        self.history_manager = GradioHistoryManager(self.renderer)

    @property
    def persona(self):
        return self.chat_handler.persona

    def current_view(self, search_term: str = "") -> list:
        visible = None
        if search_term and search_term.strip():
            visible = self.chat_handler.store.search(search_term)
        return self.history_manager.render(self.chat_handler.store.all(), visible)

    async def play_out(self, updates: AsyncIterator[Message], search_term: str = "") -> AsyncIterator[list]:
        """Yield a frame per applied snapshot, then per revealed character."""
        try:
            async for _ in updates:
                yield self.current_view(search_term)
            while self.renderer.revealing:
                await asyncio.sleep(self.renderer.interval)
                yield self.current_view(search_term)
            yield self.current_view(search_term)
        finally:
            await updates.aclose()
            # Reveals resume from the displayed prefix on the next render
            self.renderer.pause()

    async def chat(self, message: str, search_term: str = ""):
        """
        Send a message and stream the answer.

        The message and search boxes are cleared only once the send is
        accepted; a rejected message stays in the box.

        Yields:
            (chatbot history, message box, search box)
        """
        if self.chat_handler.busy:
            logger.warning("Keeping draft: a response is already in flight")
            gr.Warning(f"Hold on, {self.persona.user_name}, I'm still talking.")
            yield self.current_view(search_term), gr.update(), gr.update()
            return
        if not message.strip():
            yield self.current_view(search_term), gr.update(), gr.update()
            return

        logger.info(f"Received user message (length: {len(message)} chars)")
        async for history in self.play_out(self.chat_handler.send(message)):
            yield history, "", ""

    async def regenerate(self):
        """
        Regenerate the last answer with the search filter cleared.

        Yields:
            (chatbot history, search box)
        """
        logger.info("User requested regeneration")
        async for history in self.play_out(self.chat_handler.regenerate()):
            yield history, ""

    def clear(self):
        """Clear the chat history."""
        logger.info("User requested to clear chat history")
        if not self.chat_handler.clear_history():
            gr.Warning("Let me finish first, dear.")
        return self.current_view(), ""

    def _excerpt_panel(self):
        return (
            self.history_manager.render_excerpts(self.chat_handler.excerpts),
            gr.update(choices=_excerpt_choices(self.chat_handler), value=None),
        )

    def save(self):
        answer = _last_settled_answer(self.chat_handler)
        if answer is None:
            gr.Info("Nothing to save yet.")
        elif self.chat_handler.save_excerpt(answer.id) is None:
            gr.Info("Already saved, honey.")
        return self._excerpt_panel()

    def remove_excerpt(self, excerpt_id: Optional[str]):
        if excerpt_id:
            self.chat_handler.remove_excerpt(excerpt_id)
        return self._excerpt_panel()

    async def listen(self):
        answer = _last_settled_answer(self.chat_handler)
        if answer is None or self.speech_service is None:
            gr.Info("Nothing to read out.")
            return None
        try:
            clip = await self.speech_service.synthesize(answer.content)
        except SpeechError as e:
            logger.warning(f"Speech synthesis failed: {e}")
            gr.Warning(self.persona.speech_failure_notice)
            return None
        return clip.sample_rate, clip.samples

    async def dictate(self, draft: str, recording: Optional[Tuple[int, np.ndarray]]):
        """
        Transcribe a microphone recording and add it to the draft.

        Returns:
            (message box, cleared recording)
        """
        draft = draft or ""
        if recording is None or self.speech_service is None:
            return draft, None
        sample_rate, samples = recording
        try:
            utterance = await self.speech_service.transcribe(
                samples, sample_rate, self.chat_handler.user_settings.voice_language
            )
        except SpeechError as e:
            logger.warning(f"Dictation failed: {e}")
            gr.Warning(f"I couldn't catch that, {self.persona.user_name}. Speak up.")
            return draft, None
        return append_utterance(draft, utterance), None

    def transcript(self) -> str:
        return self.chat_handler.store.transcript()

    def update_settings(
        self,
        model: str,
        use_search: bool,
        use_maps: bool,
        voice_language: str,
        is_dark_mode: bool,
        background_image: str,
        background_opacity: float,
    ) -> None:
        try:
            self.chat_handler.update_settings(
                model=model,
                use_search=use_search,
                use_maps=use_maps,
                voice_language=voice_language,
                is_dark_mode=is_dark_mode,
                background_image=background_image or settings.DEFAULT_BACKGROUND_IMAGE,
                background_opacity=background_opacity,
            )
        except ValueError as e:
            logger.warning(f"Rejected settings change: {e}")
            gr.Warning(str(e))

    def load(self):
        """
        Initial page state, including the persisted theme.

        Returns:
            (chatbot, excerpts markdown, excerpt picker, dark mode,
            background image, background opacity)
        """
        user_settings = self.chat_handler.user_settings
        return (
            self.current_view(),
            *self._excerpt_panel(),
            user_settings.is_dark_mode,
            user_settings.background_image or "",
            user_settings.background_opacity,
        )


def create_chat_interface(
    chat_handler: ChatHandler,
    speech_service: Optional[SpeechService] = None,
    renderer: Optional[TypewriterRenderer] = None,
) -> "gr.Blocks":
    """
    Create a Gradio chat interface with streaming support.

    Args:
        chat_handler: ChatHandler instance for processing messages
        speech_service: Optional speech service for the Listen button and dictation
        renderer: Typewriter renderer, a default one if omitted

    Returns:
        Configured Gradio Blocks interface
    """
    logger.info("Creating Gradio chat interface")
    actions = ChatActions(chat_handler, speech_service=speech_service, renderer=renderer)
    persona = chat_handler.persona
    user_settings = chat_handler.user_settings

    with gr.Blocks(title=f"{persona.assistant_name} Chat", css=BACKGROUND_CSS) as demo:
        gr.Markdown(
            f"""
            # {persona.assistant_name}

            {persona.user_name}'s sassy assistant, grounded in search and maps.
            """
        )

        with gr.Row():
            with gr.Column(scale=4):
                chatbot = gr.Chatbot(
                    label="Conversation",
                    height=560,
                    type="messages",
                    avatar_images=(user_settings.user_avatar, user_settings.background_image),
                )
                with gr.Row():
                    msg = gr.Textbox(
                        placeholder=f"Ask {persona.assistant_name} anything...",
                        container=False,
                        scale=4,
                    )
                    submit_btn = gr.Button("Send", variant="primary", scale=1)
                mic = gr.Audio(
                    sources=["microphone"],
                    type="numpy",
                    label="Dictate",
                    visible=speech_service is not None,
                )
                with gr.Row():
                    regenerate_btn = gr.Button("🔄 Regenerate")
                    save_btn = gr.Button("⭐ Save answer")
                    listen_btn = gr.Button("🔊 Listen")
                    clear_btn = gr.Button("🗑️ Clear")
                audio = gr.Audio(label="Voice", autoplay=True, interactive=False)

            with gr.Column(scale=2):
                search = gr.Textbox(label="Search conversation", placeholder="Filter messages...")

                with gr.Accordion("Saved wisdom", open=True):
                    excerpts_md = gr.Markdown()
                    with gr.Row():
                        excerpt_picker = gr.Dropdown(label="Saved", choices=[], scale=3)
                        remove_btn = gr.Button("Remove", scale=1)

                with gr.Accordion("Transcript", open=False):
                    transcript_btn = gr.Button("Export transcript")
                    transcript_box = gr.Textbox(label="Transcript", lines=10, interactive=False)

                with gr.Accordion("Settings", open=False):
                    model_dropdown = gr.Dropdown(
                        choices=list(settings.AVAILABLE_MODELS),
                        value=user_settings.model,
                        label="Model",
                    )
                    search_toggle = gr.Checkbox(value=user_settings.use_search, label="Google Search")
                    maps_toggle = gr.Checkbox(value=user_settings.use_maps, label="Google Maps")
                    voice_language = gr.Textbox(value=user_settings.voice_language, label="Voice language")
                    dark_mode = gr.Checkbox(value=user_settings.is_dark_mode, label="Dark mode")
                    background_image = gr.Textbox(
                        value=user_settings.background_image or "", label="Background image URL"
                    )
                    background_opacity = gr.Slider(
                        minimum=0.0,
                        maximum=1.0,
                        step=0.01,
                        value=user_settings.background_opacity,
                        label="Background opacity",
                    )

        theme_inputs = [dark_mode, background_image, background_opacity]

        # Event handlers
        msg.submit(actions.chat, [msg, search], [chatbot, msg, search], queue=True)
        submit_btn.click(actions.chat, [msg, search], [chatbot, msg, search], queue=True)
        mic.stop_recording(actions.dictate, [msg, mic], [msg, mic], queue=True)
        regenerate_btn.click(actions.regenerate, None, [chatbot, search], queue=True)
        clear_btn.click(actions.clear, None, [chatbot, search], queue=False)
        save_btn.click(actions.save, None, [excerpts_md, excerpt_picker], queue=False)
        remove_btn.click(actions.remove_excerpt, [excerpt_picker], [excerpts_md, excerpt_picker], queue=False)
        listen_btn.click(actions.listen, None, [audio], queue=True)
        search.change(actions.current_view, [search], [chatbot], queue=False)
        transcript_btn.click(actions.transcript, None, [transcript_box], queue=False)

        settings_inputs = [model_dropdown, search_toggle, maps_toggle, voice_language, *theme_inputs]
        for component in settings_inputs:
            component.change(actions.update_settings, settings_inputs, None, queue=False)
        for component in theme_inputs:
            component.change(None, theme_inputs, None, js=APPLY_THEME_JS)

        demo.load(
            actions.load,
            None,
            [chatbot, excerpts_md, excerpt_picker, *theme_inputs],
        ).then(None, theme_inputs, None, js=APPLY_THEME_JS)

    return demo
