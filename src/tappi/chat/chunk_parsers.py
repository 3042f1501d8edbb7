"""Chunk parsers for Gemini streaming responses."""

from typing import Any, Iterable, List, Optional

from tappi.chat.models import ChunkUpdate, CitationSource
from tappi.telemetry.metrics import TelemetryMetrics

MAP_TITLE_PREFIX = "[Map] "


def _field(obj: Any, *names: str) -> Any:
    """Read the first present attribute or key among ``names`` (snake or camel case)."""
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, dict):
            if obj.get(name) is not None:
                return obj[name]
        else:
            value = getattr(obj, name, None)
            if value is not None:
                return value
    return None


class GroundingChunkParser:
    """Parser for LangChain message chunks produced by Gemini."""

    @staticmethod
    def parse(chunk: Any, metrics: Optional[TelemetryMetrics] = None) -> ChunkUpdate:
        """
        Parse a streamed chunk into a ChunkUpdate.

        Args:
            chunk: AIMessageChunk-like object with ``content`` and optionally
                ``response_metadata`` and ``usage_metadata``
            metrics: Optional TelemetryMetrics instance to update with token usage

        Returns:
            ChunkUpdate with the text delta and citations carried by the chunk
        """
        text = GroundingChunkParser._text(getattr(chunk, "content", None))

        response_metadata = getattr(chunk, "response_metadata", None)
        if not isinstance(response_metadata, dict):
            response_metadata = {}
        grounding = _field(response_metadata, "grounding_metadata", "groundingMetadata")
        entries = _field(grounding, "grounding_chunks", "groundingChunks") or []
        sources = tuple(GroundingChunkParser._citations(entries))

        if metrics is not None:
            GroundingChunkParser._parse_usage(getattr(chunk, "usage_metadata", None), metrics)

        return ChunkUpdate(text=text, sources=sources)

    @staticmethod
    def _text(content: Any) -> str:
        """
        Extract text from chunk content.

        Content is either a string or a list of content blocks; only text
        blocks contribute.
        """
        if not content:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for block in content:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and block.get("type", "text") == "text":
                    parts.append(block.get("text") or "")
            return "".join(parts)
        return ""

    @staticmethod
    def _citations(entries: Iterable[Any]) -> List[CitationSource]:
        """
        Normalize grounding chunks into citations.

        Web results keep their title; map results are tagged with a title
        prefix. Entries without both a URI and a title are skipped.
        """
        citations = []
        for entry in entries:
            web = _field(entry, "web")
            if web is not None:
                uri, title = _field(web, "uri"), _field(web, "title")
                if uri and title:
                    citations.append(CitationSource(title=title, uri=uri))

            place = _field(entry, "maps")
            if place is not None:
                uri, title = _field(place, "uri"), _field(place, "title")
                if uri and title:
                    citations.append(CitationSource(title=f"{MAP_TITLE_PREFIX}{title}", uri=uri))
        return citations

    @staticmethod
    def _parse_usage(usage: Any, metrics: TelemetryMetrics) -> None:
        """
        Update metrics from usage metadata, if the chunk carries any.

        Args:
            usage: Usage metadata dictionary
            metrics: TelemetryMetrics instance to update
        """
        if not usage or not isinstance(usage, dict):
            return
        metrics.add_token_usage(
            usage.get("input_tokens", 0),
            usage.get("output_tokens", 0),
            usage.get("total_tokens", 0),
        )
