"""Unit tests for LLM and speech client creation."""

from unittest.mock import Mock, patch

import pytest
from langchain_google_genai import ChatGoogleGenerativeAI

from tappi.clients.llm_client import create_llm_client, create_speech_client
from tappi.config.settings import Settings
from tappi.exceptions import ConfigurationError


class TestLLMClient:
    """Tests for client creation."""

    @pytest.fixture
    def mock_settings(self):
        """Create a mock settings object."""
        settings = Mock(spec=Settings)
        settings.GOOGLE_API_KEY = "test-key"
        settings.MODEL_NAME = "gemini-3-flash-preview"
        settings.LLM_TEMPERATURE = 0.7
        settings.TTS_MODEL = "gemini-2.5-flash-preview-tts"
        settings.validate = Mock()
        return settings

    def test_create_llm_client_success(self, mock_settings):
        """Test successful LLM client creation."""
        with patch("tappi.clients.llm_client.settings", mock_settings):
            with patch("tappi.clients.llm_client.ChatGoogleGenerativeAI") as mock_client_class:
                mock_client = Mock(spec=ChatGoogleGenerativeAI)
                mock_client_class.return_value = mock_client

                client = create_llm_client()

                assert client == mock_client
                mock_settings.validate.assert_called_once()
                call_kwargs = mock_client_class.call_args[1]
                assert call_kwargs["model"] == "gemini-3-flash-preview"
                assert call_kwargs["google_api_key"] == "test-key"
                assert call_kwargs["temperature"] == 0.7

    def test_create_llm_client_for_model(self, mock_settings):
        """Test that an explicit model overrides the default."""
        with patch("tappi.clients.llm_client.settings", mock_settings):
            with patch("tappi.clients.llm_client.ChatGoogleGenerativeAI") as mock_client_class:
                create_llm_client("gemini-3-pro-preview")

                assert mock_client_class.call_args[1]["model"] == "gemini-3-pro-preview"

    def test_create_llm_client_validation_error(self, mock_settings):
        """Test that validation errors are raised."""
        mock_settings.validate.side_effect = ConfigurationError("GOOGLE_API_KEY missing")

        with patch("tappi.clients.llm_client.settings", mock_settings):
            with patch("tappi.clients.llm_client.ChatGoogleGenerativeAI") as mock_client_class:
                with pytest.raises(ConfigurationError, match="GOOGLE_API_KEY"):
                    create_llm_client()
                mock_client_class.assert_not_called()

    def test_create_speech_client(self, mock_settings):
        with patch("tappi.clients.llm_client.settings", mock_settings):
            with patch("tappi.clients.llm_client.genai") as mock_genai:
                client = create_speech_client()

                assert client == mock_genai.Client.return_value
                mock_genai.Client.assert_called_once_with(api_key="test-key")
