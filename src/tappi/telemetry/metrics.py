"""Telemetry metrics tracking: latency, chunks and tokens."""

import time
from typing import Any, Dict, Optional

from tappi.utils.logger import logger


class TelemetryMetrics:
    """Track and format telemetry metrics for one streamed response."""

    def __init__(self, model_name: Optional[str] = None):
        """
        Initialize metrics tracking.

        Args:
            model_name: Model that served the response, for reporting
        """
        self.model_name = model_name
        self.start_time: Optional[float] = None
        self.first_chunk_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.chunk_count: int = 0
        self.prompt_tokens: int = 0
        self.completion_tokens: int = 0
        self.total_tokens: int = 0

    def start_timer(self) -> None:
        """Start the latency timer."""
        self.start_time = time.time()
        logger.debug("Telemetry timer started")

    def record_chunk(self) -> None:
        """Count a received chunk, remembering when the first one arrived."""
        if self.first_chunk_time is None:
            self.first_chunk_time = time.time()
        self.chunk_count += 1

    def stop_timer(self) -> None:
        """Stop the latency timer."""
        self.end_time = time.time()
        if self.start_time:
            logger.debug(f"Telemetry timer stopped: {self.get_latency_ms()}ms latency")

    def get_latency_ms(self) -> int:
        """
        Get the latency in milliseconds.

        Returns:
            Latency in milliseconds, or 0 if timer wasn't started/stopped
        """
        if self.start_time is None or self.end_time is None:
            return 0
        return int((self.end_time - self.start_time) * 1000)

    def get_first_chunk_ms(self) -> int:
        """Time until the first chunk arrived, or 0 if none did."""
        if self.start_time is None or self.first_chunk_time is None:
            return 0
        return int((self.first_chunk_time - self.start_time) * 1000)

    def add_token_usage(
        self, prompt_tokens: int, completion_tokens: int, total_tokens: int
    ) -> None:
        """
        Add one chunk's token usage to the running totals.

        Streamed chunks report usage as deltas, so the stream total is
        their sum.

        Args:
            prompt_tokens: Number of prompt/input tokens
            completion_tokens: Number of completion/output tokens
            total_tokens: Total tokens used
        """
        self.prompt_tokens += prompt_tokens or 0
        self.completion_tokens += completion_tokens or 0
        self.total_tokens += total_tokens or 0
        logger.debug(
            f"Token usage now: prompt={self.prompt_tokens}, "
            f"completion={self.completion_tokens}, total={self.total_tokens}"
        )

    def format_stats(self) -> str:
        """
        Format metrics as a stats string.

        Returns:
            Formatted string: [stats] prompt=X completion=Y chunks=Z latency=W ms
        """
        return (
            f"[stats] prompt={self.prompt_tokens} "
            f"completion={self.completion_tokens} "
            f"chunks={self.chunk_count} "
            f"latency={self.get_latency_ms()} ms"
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert metrics to a dictionary.

        Returns:
            Dictionary with all metrics
        """
        return {
            "model_name": self.model_name,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "chunk_count": self.chunk_count,
            "first_chunk_ms": self.get_first_chunk_ms(),
            "latency_ms": self.get_latency_ms(),
        }
