"""Chat engine abstraction: turns a completion stream into snapshots."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from tappi.chat.accumulator import StreamAccumulator
from tappi.chat.chunk_parsers import GroundingChunkParser
from tappi.chat.models import ChunkUpdate, Snapshot, StreamRequest
from tappi.clients.geolocation import Coordinates, LocationProvider
from tappi.config.persona import TAPPI, Persona
from tappi.telemetry.metrics import TelemetryMetrics
from tappi.utils.logger import logger
from tappi.utils.structured_logging import log_llm_call

SEARCH_TOOL = {"google_search": {}}
MAPS_TOOL = {"google_maps": {}}


class ChatEngine(Protocol):
    """
    Protocol for chat engines that generate responses.
    """

    def stream(self, request: StreamRequest) -> AsyncIterator[Snapshot]:
        """
        Stream a response for a request.

        Args:
            request: Prompt plus model, tool and attempt configuration

        Yields:
            Snapshot objects; the last one has ``done=True``. Raises instead
            of yielding a terminal snapshot if the source fails.
        """
        ...


class BaseChatEngine(ABC):
    """
    Base class for chat engines with common accumulation and metrics logic.
    """

    async def _stream_with_metrics(
        self,
        chunks: AsyncIterator[Any],
        engine_name: str,
        model_name: Optional[str] = None,
    ) -> AsyncIterator[Snapshot]:
        """
        Accumulate raw chunks into snapshots while tracking metrics.

        One snapshot is yielded per chunk, then a terminal ``done`` snapshot.
        Exceptions from the source are logged and re-raised.

        Args:
            chunks: Async iterator of raw chunks from the model
            engine_name: Name of the engine for logging
            model_name: Model that serves the stream

        Yields:
            Snapshot objects
        """
        logger.info(f"Starting {engine_name} stream")

        metrics = TelemetryMetrics(model_name=model_name)
        metrics.start_timer()
        accumulator = StreamAccumulator()

        try:
            async for chunk in chunks:
                metrics.record_chunk()
                update = self._process_chunk(chunk, metrics)
                yield accumulator.feed(update)
        except Exception as e:
            metrics.stop_timer()
            logger.error(f"{engine_name} failed to generate response: {e}")
            raise

        metrics.stop_timer()
        final = accumulator.finish()

        logger.info(
            f"{engine_name} stream completed: {len(final.text)} chars, "
            f"{len(final.sources)} sources {metrics.format_stats()}"
        )
        stats = metrics.to_dict()
        log_llm_call(
            model_name=stats["model_name"] or "unknown",
            prompt_tokens=stats["prompt_tokens"],
            completion_tokens=stats["completion_tokens"],
            total_tokens=stats["total_tokens"],
            latency_ms=stats["latency_ms"],
            first_chunk_ms=stats["first_chunk_ms"],
            engine_type=engine_name,
            chunk_count=stats["chunk_count"],
            response_length=len(final.text),
        )

        yield final

    @abstractmethod
    def _process_chunk(self, chunk: Any, metrics: TelemetryMetrics) -> ChunkUpdate:
        """
        Parse a single raw chunk.

        Args:
            chunk: The chunk to process
            metrics: TelemetryMetrics instance to update

        Returns:
            ChunkUpdate with whatever text and citations the chunk carried
        """
        pass


class GeminiChatEngine(BaseChatEngine):
    """
    Gemini chat engine with search and maps grounding.
    """

    def __init__(
        self,
        client_factory: Callable[[str], BaseChatModel],
        location_provider: Optional[LocationProvider] = None,
        persona: Persona = TAPPI,
    ):
        """
        Initialize the Gemini chat engine.

        Args:
            client_factory: Builds a chat model for a model identifier
            location_provider: Optional source of coordinates for maps grounding
            persona: Persona providing the system instructions
        """
        self.client_factory = client_factory
        self.location_provider = location_provider
        self.persona = persona
        self._clients: Dict[str, BaseChatModel] = {}

    def _client(self, model: str) -> BaseChatModel:
        if model not in self._clients:
            self._clients[model] = self.client_factory(model)
        return self._clients[model]

    def build_messages(self, request: StreamRequest) -> List[BaseMessage]:
        """System instruction for the attempt count, then the user prompt."""
        return [
            SystemMessage(content=self.persona.system_instruction(request.attempt)),
            HumanMessage(content=request.prompt),
        ]

    async def _locate(self) -> Optional[Coordinates]:
        """Look up the location once; any failure means no location."""
        if self.location_provider is None:
            return None
        try:
            return await self.location_provider.locate()
        except Exception as e:
            logger.warning(f"Geolocation failed, continuing without location: {e}")
            return None

    async def _bind(self, request: StreamRequest):
        """Bind the grounding tools the request enables."""
        client = self._client(request.model)

        tools = []
        if request.use_search:
            tools.append(SEARCH_TOOL)
        if request.use_maps:
            tools.append(MAPS_TOOL)
        if not tools:
            return client

        tool_config = None
        if request.use_maps:
            coordinates = await self._locate()
            if coordinates is not None:
                tool_config = coordinates.to_retrieval_config()
                logger.debug(f"Maps grounding keyed on {coordinates}")

        if tool_config is None:
            return client.bind_tools(tools)
        return client.bind_tools(tools, tool_config=tool_config)

    async def stream(self, request: StreamRequest) -> AsyncIterator[Snapshot]:
        """
        Stream a grounded answer to the request prompt.
        """
        runnable = await self._bind(request)
        chunks = runnable.astream(self.build_messages(request))
        async for snapshot in self._stream_with_metrics(chunks, "GeminiChatEngine", request.model):
            yield snapshot

    def _process_chunk(self, chunk: Any, metrics: TelemetryMetrics) -> ChunkUpdate:
        return GroundingChunkParser.parse(chunk, metrics)
