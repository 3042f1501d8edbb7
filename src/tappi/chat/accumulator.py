"""Accumulates parsed chunks into full-response snapshots."""

from typing import Dict, List

from tappi.chat.models import ChunkUpdate, CitationSource, Snapshot
from tappi.exceptions import StreamError


class StreamAccumulator:
    """
    Builds monotonically growing response state from chunk deltas.

    Text deltas are concatenated; citations are deduplicated by URI keeping
    the first-seen entry. Every ``feed`` returns a Snapshot that restates the
    whole response so far, and ``finish`` returns the terminal one.
    """

    def __init__(self):
        self._text = ""
        self._sources: List[CitationSource] = []
        self._seen: Dict[str, CitationSource] = {}
        self._finished = False

    @property
    def text(self) -> str:
        return self._text

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, update: ChunkUpdate) -> Snapshot:
        """
        Apply one chunk and return the resulting snapshot.

        Raises:
            StreamError: If the accumulator has already been finished
        """
        if self._finished:
            raise StreamError("Cannot feed a finished stream")

        if update.text:
            self._text += update.text
        for source in update.sources:
            if source.uri not in self._seen:
                self._seen[source.uri] = source
                self._sources.append(source)

        return self.snapshot()

    def finish(self) -> Snapshot:
        """Mark the stream complete and return the terminal snapshot."""
        self._finished = True
        return self.snapshot()

    def snapshot(self) -> Snapshot:
        return Snapshot(text=self._text, sources=tuple(self._sources), done=self._finished)
