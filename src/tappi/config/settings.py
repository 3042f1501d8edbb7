"""Configuration settings for the Tappi chat client."""

import os
from typing import Optional, Tuple

from dotenv import load_dotenv

from tappi.exceptions import ConfigurationError
from tappi.utils.logger import logger

# Load environment variables from .env file
load_dotenv()
logger.debug("Environment variables loaded from .env file")


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {name}: {value!r}")
        return None


class Settings:
    """Application settings loaded from environment variables."""

    # Gemini Configuration
    GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", "")
    AVAILABLE_MODELS: Tuple[str, ...] = ("gemini-3-flash-preview", "gemini-3-pro-preview")
    MODEL_NAME: str = os.getenv("MODEL_NAME", "gemini-3-flash-preview")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "1.0"))

    # Speech synthesis
    TTS_MODEL: str = os.getenv("TTS_MODEL", "gemini-2.5-flash-preview-tts")
    TTS_VOICE: str = os.getenv("TTS_VOICE", "Kore")
    TTS_SAMPLE_RATE: int = 24000
    TTS_CHANNELS: int = 1
    # Dictation (speech to text)
    TRANSCRIBE_MODEL: str = os.getenv("TRANSCRIBE_MODEL", "gemini-2.5-flash")

    # Typewriter pacing
    TYPING_INTERVAL_MS: int = int(os.getenv("TYPING_INTERVAL_MS", "15"))
    # Assistant messages older than this are treated as history and never animated
    HISTORY_GRACE_SECONDS: float = float(os.getenv("HISTORY_GRACE_SECONDS", "2.0"))

    # Session persistence
    STORAGE_DIR: str = os.getenv("TAPPI_STORAGE_DIR", ".tappi")

    # Fixed location used for maps grounding (optional)
    LATITUDE: Optional[float] = _optional_float("TAPPI_LATITUDE")
    LONGITUDE: Optional[float] = _optional_float("TAPPI_LONGITUDE")

    # User settings defaults
    DEFAULT_BACKGROUND_IMAGE: str = os.getenv(
        "DEFAULT_BACKGROUND_IMAGE",
        "https://images.unsplash.com/photo-1534528741775-53994a69daeb?q=80&w=1000&auto=format&fit=crop",
    )
    DEFAULT_BACKGROUND_OPACITY: float = 0.12
    DEFAULT_VOICE_LANGUAGE: str = "en-US"

    # Logging
    ENABLE_CORRELATION_IDS: bool = os.getenv("ENABLE_CORRELATION_IDS", "true").lower() == "true"

    # Server
    SERVER_NAME: str = os.getenv("SERVER_NAME", "0.0.0.0")
    SERVER_PORT: int = int(os.getenv("SERVER_PORT", "7860"))

    @classmethod
    def validate(cls) -> None:
        """Validate that required environment variables are set."""
        logger.debug("Validating configuration settings")

        if not cls.GOOGLE_API_KEY:
            logger.error("GOOGLE_API_KEY is not set")
            raise ConfigurationError(
                "GOOGLE_API_KEY environment variable is required. "
                "Set it in your .env file or environment."
            )
        if cls.MODEL_NAME not in cls.AVAILABLE_MODELS:
            logger.error(f"MODEL_NAME '{cls.MODEL_NAME}' is not supported")
            raise ConfigurationError(
                f"MODEL_NAME must be one of: {', '.join(cls.AVAILABLE_MODELS)}"
            )

        logger.info("Configuration validation successful")
        logger.debug(
            f"Configuration: model={cls.MODEL_NAME}, tts_model={cls.TTS_MODEL}, "
            f"storage_dir={cls.STORAGE_DIR}"
        )

    @classmethod
    def typing_interval_seconds(cls) -> float:
        """Delay between two revealed characters, in seconds."""
        return cls.TYPING_INTERVAL_MS / 1000.0


# Global settings instance
settings = Settings()
