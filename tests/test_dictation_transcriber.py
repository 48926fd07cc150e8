"""Tests for fallback audio transcription."""

import base64
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.realtime.dictation_transcriber import DictationTranscriber
from services.realtime.errors import ExternalCapabilityError, TurnValidationError

AUDIO_B64 = base64.b64encode(b"\x1a\x45\xdf\xa3 fake webm").decode()


def client_with(side_effect):
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(side_effect=side_effect)
    return client


class TestDictationTranscriber:
    def test_requires_client(self):
        with pytest.raises(ValueError):
            DictationTranscriber(None)

    @pytest.mark.asyncio
    async def test_returns_trimmed_text_and_removes_temp_file(self):
        staged = []

        async def create(file, **kwargs):
            staged.append(file.name)
            assert os.path.exists(file.name)
            assert kwargs["language"] == "ja"
            assert kwargs["model"] == "whisper-1"
            return "  konnichiwa \n"

        transcriber = DictationTranscriber(client_with(create), language="ja")
        text = await transcriber.transcribe(AUDIO_B64, "audio/webm;codecs=opus")

        assert text == "konnichiwa"
        assert staged[0].endswith(".webm")
        assert not os.path.exists(staged[0])

    @pytest.mark.asyncio
    async def test_removes_temp_file_on_failure(self):
        staged = []

        async def create(file, **kwargs):
            staged.append(file.name)
            raise RuntimeError("service down")

        transcriber = DictationTranscriber(client_with(create))
        with pytest.raises(ExternalCapabilityError):
            await transcriber.transcribe(AUDIO_B64)

        assert staged and not os.path.exists(staged[0])

    @pytest.mark.asyncio
    async def test_omits_language_when_not_set(self):
        async def create(file, **kwargs):
            assert "language" not in kwargs
            return "hi"

        assert await DictationTranscriber(client_with(create)).transcribe(AUDIO_B64) == "hi"

    @pytest.mark.asyncio
    async def test_rejects_invalid_base64(self):
        transcriber = DictationTranscriber(client_with(AssertionError("not called")))
        with pytest.raises(TurnValidationError):
            await transcriber.transcribe("not base64!!")
