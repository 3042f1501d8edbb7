"""LangChain and Gemini client initialization."""

from google import genai
from langchain_google_genai import ChatGoogleGenerativeAI

from tappi.config.settings import settings
from tappi.utils.logger import logger


def create_llm_client(model: str | None = None) -> ChatGoogleGenerativeAI:
    """
    Create and configure a ChatGoogleGenerativeAI client.

    Args:
        model: Model identifier, defaults to settings.MODEL_NAME

    Returns:
        Configured ChatGoogleGenerativeAI instance

    Raises:
        ConfigurationError: If required configuration is missing
    """
    settings.validate()
    model = model or settings.MODEL_NAME
    logger.info(f"Creating ChatGoogleGenerativeAI client for model={model}")

    client = ChatGoogleGenerativeAI(
        model=model,
        google_api_key=settings.GOOGLE_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
    )

    logger.success("ChatGoogleGenerativeAI client created successfully")
    return client


def create_speech_client() -> genai.Client:
    """
    Create the google-genai client used for speech synthesis.

    Raises:
        ConfigurationError: If required configuration is missing
    """
    settings.validate()
    logger.info(f"Creating speech client for model={settings.TTS_MODEL}")
    return genai.Client(api_key=settings.GOOGLE_API_KEY)
