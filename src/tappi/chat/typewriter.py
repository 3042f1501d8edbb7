"""Typewriter renderer: paces the display of assistant text."""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

from tappi.chat.models import Message, utc_now
from tappi.config.settings import settings
from tappi.utils.logger import logger

IN_PROGRESS_MARKER = "▌"


class RenderMode(str, Enum):
    """How a message's text is put on screen."""
    INSTANT = "instant"
    LIVE = "live"
    REVEAL = "reveal"


def common_prefix_length(a: str, b: str) -> int:
    length = min(len(a), len(b))
    for index in range(length):
        if a[index] != b[index]:
            return index
    return length


class MessageView:
    """
    Displayed state of one message, with its own reveal task.

    The reveal never restarts from empty: it resumes from whatever prefix of
    the target is already displayed.
    """

    def __init__(
        self,
        message_id: str,
        interval: float,
        on_frame: Optional[Callable[["MessageView"], None]] = None,
    ):
        self.message_id = message_id
        self.interval = interval
        self.on_frame = on_frame
        self.displayed = ""
        self.mode: Optional[RenderMode] = None
        self._target = ""
        self._task: Optional[asyncio.Task] = None

    @property
    def revealing(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_progress(self) -> bool:
        return self.mode == RenderMode.LIVE or self.revealing

    def render(self) -> str:
        """Displayed text, with the in-progress marker while live or revealing."""
        if self.in_progress:
            return f"{self.displayed}{IN_PROGRESS_MARKER}"
        return self.displayed

    def show(self, text: str, mode: RenderMode) -> None:
        """Display ``text`` immediately, abandoning any reveal."""
        self.cancel()
        self.mode = mode
        self.displayed = text
        self._target = text

    def reveal(self, content: str) -> None:
        """
        Animate the display toward ``content``.

        Displayed text that is not a prefix of ``content`` is first cut back
        to the common prefix, so the animation always ends on ``content``.
        """
        self.mode = RenderMode.REVEAL
        self._target = content
        self.displayed = self.displayed[: common_prefix_length(self.displayed, content)]

        if len(self.displayed) >= len(content):
            self.cancel()
            self.displayed = content
            return
        if not self.revealing:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while len(self.displayed) < len(self._target):
            await asyncio.sleep(self.interval)
            self.displayed = self._target[: len(self.displayed) + 1]
            if self.on_frame is not None:
                self.on_frame(self)
        logger.debug(f"Reveal finished for {self.message_id}")

    async def wait(self) -> None:
        """Wait for a running reveal to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class TypewriterRenderer:
    """
    Decouples the perceived text reveal rate from network delivery.

    Per message:

    * INSTANT for user messages and for assistant history (restored from
      storage, or older than the grace window).
    * LIVE while the message is streaming: content shown exactly as received.
    * REVEAL once settled with a shorter displayed prefix: one character per
      interval until the full content is shown.

    Use as a context manager (sync or async) so reveal tasks are cancelled
    when the hosting view goes away.
    """

    def __init__(
        self,
        interval: Optional[float] = None,
        history_grace_seconds: Optional[float] = settings.HISTORY_GRACE_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        on_frame: Optional[Callable[[MessageView], None]] = None,
    ):
        """
        Args:
            interval: Seconds between revealed characters
            history_grace_seconds: Age after which an assistant message counts
                as history; None disables the age check and relies on the
                ``restored`` flag alone
            clock: Source of the current time
            on_frame: Called after every revealed character
        """
        self.interval = settings.typing_interval_seconds() if interval is None else interval
        self.history_grace_seconds = history_grace_seconds
        self.clock = clock
        self.on_frame = on_frame
        self._views: Dict[str, MessageView] = {}

    def is_history(self, message: Message) -> bool:
        if message.restored:
            return True
        if self.history_grace_seconds is None:
            return False
        age = (self.clock() - message.timestamp).total_seconds()
        return age > self.history_grace_seconds

    def mode_for(self, message: Message) -> RenderMode:
        if not message.is_assistant:
            return RenderMode.INSTANT
        if message.streaming:
            return RenderMode.LIVE
        if self.is_history(message):
            return RenderMode.INSTANT
        return RenderMode.REVEAL

    def view(self, message_id: str) -> Optional[MessageView]:
        return self._views.get(message_id)

    def update(self, message: Message) -> MessageView:
        """
        Bring the view of ``message`` in line with its current state.

        Returns:
            The message's view
        """
        view = self._views.get(message.id)
        if view is None:
            view = MessageView(message.id, self.interval, self.on_frame)
            self._views[message.id] = view

        mode = self.mode_for(message)
        if mode == RenderMode.REVEAL:
            view.reveal(message.content)
        else:
            view.show(message.content, mode)
        return view

    def sync(self, messages: Iterable[Message]) -> None:
        """Update every message and drop views of messages that are gone."""
        present = set()
        for message in messages:
            self.update(message)
            present.add(message.id)
        for message_id in list(self._views):
            if message_id not in present:
                self._views.pop(message_id).cancel()

    def displayed(self, message: Message) -> str:
        """Rendered text for ``message`` (updating its view first)."""
        return self.update(message).render()

    @property
    def revealing(self) -> bool:
        return any(view.revealing for view in self._views.values())

    async def wait_idle(self) -> None:
        """Wait until no reveal is running."""
        for view in list(self._views.values()):
            await view.wait()

    def pause(self) -> None:
        """Cancel running reveals; the next update resumes from what is displayed."""
        for view in self._views.values():
            view.cancel()

    def close(self) -> None:
        """Cancel every reveal and forget all views."""
        self.pause()
        self._views.clear()

    def __enter__(self) -> "TypewriterRenderer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def __aenter__(self) -> "TypewriterRenderer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
