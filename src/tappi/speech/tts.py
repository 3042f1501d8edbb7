"""Speech: Gemini TTS, dictation and PCM encoding/decoding."""

import base64
import binascii
import io
import wave
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np
from google.genai import types

from tappi.config.persona import TAPPI, Persona
from tappi.config.settings import settings
from tappi.exceptions import SpeechError
from tappi.utils.logger import logger
from tappi.utils.structured_logging import log_error, log_speech_request

PCM_SCALE = 32768.0

TRANSCRIBE_PROMPT = (
    "Transcribe this recording. The speaker uses the {language} locale. "
    "Reply with the spoken words only."
)


@dataclass(frozen=True)
class AudioClip:
    """
    Decoded audio ready for playback.

    Attributes:
        samples: float32 array of shape (frames, channels), values in [-1, 1)
        sample_rate: Frames per second
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_seconds(self) -> float:
        return self.samples.shape[0] / float(self.sample_rate)


def decode_pcm(data: Union[bytes, str], channels: int = settings.TTS_CHANNELS) -> np.ndarray:
    """
    Decode 16-bit little-endian signed PCM into normalized float samples.

    Args:
        data: Raw PCM bytes, or the same bytes base64-encoded
        channels: Number of interleaved channels

    Returns:
        float32 array of shape (frames, channels); a trailing partial frame
        is dropped

    Raises:
        SpeechError: If ``data`` is not valid base64
    """
    if channels < 1:
        raise ValueError(f"channels must be >= 1, got {channels}")
    if isinstance(data, str):
        try:
            data = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SpeechError(f"Audio payload is not valid base64: {e}") from e

    frame_bytes = 2 * channels
    usable = len(data) - (len(data) % frame_bytes)
    pcm = np.frombuffer(data[:usable], dtype="<i2")
    return (pcm.astype(np.float32) / PCM_SCALE).reshape(-1, channels)


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """
    Encode recorded samples as a 16-bit PCM WAV file.

    Args:
        samples: int16 samples, or floats in [-1, 1); shape (frames,) or
            (frames, channels)
        sample_rate: Frames per second

    Returns:
        WAV file bytes
    """
    array = np.asarray(samples)
    if array.ndim == 1:
        array = array.reshape(-1, 1)
    if array.ndim != 2:
        raise ValueError(f"samples must be 1-D or 2-D, got shape {array.shape}")
    if np.issubdtype(array.dtype, np.floating):
        array = np.clip(np.round(array * PCM_SCALE), -PCM_SCALE, PCM_SCALE - 1)
    pcm = array.astype("<i2")

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(pcm.shape[1])
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return buffer.getvalue()


class SpeechService:
    """Reads assistant messages aloud in the persona's voice and transcribes dictation."""

    def __init__(
        self,
        client: Any,
        model: str = settings.TTS_MODEL,
        voice: str = settings.TTS_VOICE,
        persona: Persona = TAPPI,
        sample_rate: int = settings.TTS_SAMPLE_RATE,
        channels: int = settings.TTS_CHANNELS,
        transcribe_model: str = settings.TRANSCRIBE_MODEL,
    ):
        """
        Args:
            client: google-genai ``Client``
            model: TTS model identifier
            voice: Prebuilt voice name
            persona: Persona providing the tone instruction
            sample_rate: Sample rate of the returned PCM
            channels: Channel count of the returned PCM
            transcribe_model: Model used to turn dictation into text
        """
        self.client = client
        self.model = model
        self.voice = voice
        self.persona = persona
        self.sample_rate = sample_rate
        self.channels = channels
        self.transcribe_model = transcribe_model

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice)
                )
            ),
        )

    @staticmethod
    def _extract_audio(response: Any) -> Optional[Union[bytes, str]]:
        try:
            return response.candidates[0].content.parts[0].inline_data.data
        except (AttributeError, IndexError, TypeError):
            return None

    async def synthesize(self, text: str) -> AudioClip:
        """
        Generate speech for ``text``.

        Raises:
            SpeechError: If the text is blank, the request fails or no audio
                comes back
        """
        if not text.strip():
            raise SpeechError("Nothing to say")

        logger.info(f"Requesting speech for {len(text)} chars")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=self.persona.speech_prompt(text),
                config=self._config(),
            )
            audio = self._extract_audio(response)
            if not audio:
                raise SpeechError(f"No audio data received from {self.persona.assistant_name}.")
            samples = decode_pcm(audio, self.channels)
        except SpeechError as e:
            log_speech_request(text_length=len(text), success=False, error_message=str(e))
            raise
        except Exception as e:
            logger.error(f"Speech synthesis failed: {e}")
            log_error(error_type="speech_error", error_message=str(e), context={"model": self.model})
            log_speech_request(text_length=len(text), success=False, error_message=str(e))
            raise SpeechError(f"Speech synthesis failed: {e}") from e

        clip = AudioClip(samples=samples, sample_rate=self.sample_rate)
        log_speech_request(
            text_length=len(text), success=True, duration_seconds=round(clip.duration_seconds, 3)
        )
        return clip

    async def transcribe(
        self,
        samples: np.ndarray,
        sample_rate: int,
        language: str = settings.DEFAULT_VOICE_LANGUAGE,
    ) -> str:
        """
        Turn a dictated recording into text.

        Args:
            samples: Recorded samples as delivered by the microphone widget
            sample_rate: Frames per second of the recording
            language: BCP 47 locale of the speaker

        Returns:
            The recognized utterance

        Raises:
            SpeechError: If nothing was recorded, the request fails or no
                speech is recognized
        """
        if np.asarray(samples).size == 0:
            raise SpeechError("Nothing was recorded")

        logger.info(f"Requesting transcription ({language}, {sample_rate} Hz)")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.transcribe_model,
                contents=[
                    types.Part.from_bytes(data=encode_wav(samples, sample_rate), mime_type="audio/wav"),
                    TRANSCRIBE_PROMPT.format(language=language),
                ],
            )
            text = (getattr(response, "text", None) or "").strip()
            if not text:
                raise SpeechError("No speech recognized")
        except SpeechError as e:
            log_speech_request(text_length=0, success=False, error_message=str(e), mode="transcribe")
            raise
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            log_error(error_type="speech_error", error_message=str(e), context={"model": self.transcribe_model})
            log_speech_request(text_length=0, success=False, error_message=str(e), mode="transcribe")
            raise SpeechError(f"Transcription failed: {e}") from e

        log_speech_request(text_length=len(text), success=True, mode="transcribe")
        return text
