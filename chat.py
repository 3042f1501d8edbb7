#!/usr/bin/env python3
"""Main entry point for the Tappi chat application."""

import os
import sys

from tappi.chat.chat_handler import ChatHandler
from tappi.chat.engine import GeminiChatEngine
from tappi.chat.typewriter import TypewriterRenderer
from tappi.clients.geolocation import StaticLocationProvider
from tappi.clients.llm_client import create_llm_client, create_speech_client
from tappi.config.settings import settings
from tappi.exceptions import ConfigurationError
from tappi.speech.tts import SpeechService
from tappi.storage.persistence import JsonFileAdapter, SessionRepository
from tappi.ui.gradio_ui import create_chat_interface
from tappi.utils.logger import logger, setup_logging


def main():
    """Initialize and launch the chat interface."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_file = os.getenv("LOG_FILE", "logs/tappi.log")
    log_format = os.getenv("LOG_FORMAT", "both")  # json, text, or both
    json_log_file = os.getenv("LOG_JSON_FILE", "logs/tappi.jsonl")

    setup_logging(
        level=log_level,
        log_file=log_file if log_file else None,
        log_format=log_format,
        json_log_file=json_log_file if log_format in ("json", "both") else None,
    )

    try:
        logger.info("Starting Tappi initialization")
        settings.validate()

        logger.info("Initializing chat engine")
        chat_engine = GeminiChatEngine(
            client_factory=create_llm_client,
            location_provider=StaticLocationProvider(),
        )

        logger.info(f"Loading session from {settings.STORAGE_DIR}")
        repository = SessionRepository(JsonFileAdapter(settings.STORAGE_DIR))
        chat_handler = ChatHandler.from_session(chat_engine, repository)
        logger.success("Chat handler initialized")

        speech_service = SpeechService(create_speech_client())
        logger.success("Speech service initialized")

        demo = create_chat_interface(
            chat_handler,
            speech_service=speech_service,
            renderer=TypewriterRenderer(),
        )
        logger.success("Gradio interface created")

        logger.info("=" * 60)
        logger.info(f"Model: {chat_handler.user_settings.model}")
        logger.info(f"Search grounding: {chat_handler.user_settings.use_search}")
        logger.info(f"Maps grounding: {chat_handler.user_settings.use_maps}")
        logger.info("=" * 60)

        logger.info(f"Launching Gradio interface on {settings.SERVER_NAME}:{settings.SERVER_PORT}")
        demo.launch(server_name=settings.SERVER_NAME, server_port=settings.SERVER_PORT, share=False)

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"Error starting chat application: {e}")
        logger.exception("Unexpected error during application startup")
        sys.exit(1)


if __name__ == "__main__":
    main()
