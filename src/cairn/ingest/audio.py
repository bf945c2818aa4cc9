"""Audio transcription via LiteLLM (Whisper-compatible endpoints).

Only supported audio extensions are accepted and a missing API key is
detected before any upload. The size ceiling is enforced by the extractor.
"""

from __future__ import annotations

import logging
from pathlib import Path

import litellm

from cairn.errors import ExtractionFailed, UnsupportedMediaType
from cairn.ingest.media import AUDIO_EXTENSIONS
from cairn.rag.llm_client import validate_api_key

logger = logging.getLogger(__name__)

_WHISPER_MODEL = "openai/whisper-1"


class Transcriber:
    """Transcription capability: ``transcribe(path) -> text``."""

    def __init__(self, model: str = _WHISPER_MODEL) -> None:
        self.model = model

    def transcribe(self, path: str) -> str:
        """Transcribe the audio file at *path*.

        Raises:
            UnsupportedMediaType: For extensions outside AUDIO_EXTENSIONS.
            ExtractionFailed: If the provider call fails or no key is set.
        """
        self._validate_path(path)
        try:
            validate_api_key(self.model)
            transcript = self._transcribe(path)
        except EnvironmentError as exc:
            raise ExtractionFailed(str(exc)) from exc
        except Exception as exc:
            raise ExtractionFailed(f"Transcription failed for '{path}': {exc}") from exc
        logger.debug("Transcribed %s (%d chars)", path, len(transcript))
        return transcript

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_path(path: str) -> None:
        ext = Path(path).suffix.lower()
        if ext not in AUDIO_EXTENSIONS:
            raise UnsupportedMediaType(
                f"Unsupported audio format '{ext}'. "
                f"Supported: {', '.join(sorted(AUDIO_EXTENSIONS))}"
            )

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    def _transcribe(self, path: str) -> str:
        """Call litellm.transcription() and return the transcript text."""
        with open(path, "rb") as audio_file:
            response = litellm.transcription(model=self.model, file=audio_file)
        return response.text or ""
