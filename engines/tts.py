"""
Speech synthesis via the Google Cloud Text-to-Speech REST API.

Uses API key authentication. Output is LINEAR16 PCM, wrapped as WAV and handed
to an audio sink; the default sink keeps the latest clip so the presentation
layer can fetch and play it.
"""
import base64
import io
import os
import struct
import time
import wave
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import aiohttp

from logging_setup import get_logger, Component
from orchestrator.interfaces import VoiceSettings

logger = get_logger(Component.SPEECH_SYNTHESIZER)

SYNTHESIZE_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"


class SynthesisError(RuntimeError):
    """Provider rejected the request or returned no audio."""


@dataclass(frozen=True)
class AudioClip:
    wav: bytes
    locale: str
    sample_rate: int
    text_length: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AudioSink(Protocol):

    async def play(self, clip: AudioClip) -> None:
        ...


class LatestClipSink:
    """Keeps only the most recent clip."""

    def __init__(self):
        self.latest: Optional[AudioClip] = None

    async def play(self, clip: AudioClip) -> None:
        self.latest = clip


def pcm_to_wav(pcm: bytes, sample_rate: int) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
    return buffer.getvalue()


def smooth_edges(pcm: bytes, sample_rate: int, fade_ms: int = 50) -> bytes:
    """
    Fade the first and last fade_ms of 16-bit little-endian PCM.

    Prevents audible clicks when a clip starts or is cut off.
    """
    num_samples = len(pcm) // 2
    if num_samples == 0:
        return pcm
    samples = list(struct.unpack(f"<{num_samples}h", pcm[: num_samples * 2]))

    fade = min(int(sample_rate * fade_ms / 1000), num_samples // 2)
    for i in range(fade):
        # Exponential fade-in, linear fade-out
        samples[i] = int(samples[i] * (i / fade) ** 2)
        idx = num_samples - 1 - i
        samples[idx] = int(samples[idx] * (i / fade))

    return struct.pack(f"<{num_samples}h", *samples)


class GoogleCloudSpeechSynthesizer:
    """Google Cloud Text-to-Speech -> WAV clips delivered to an AudioSink.

    Sample rate is configurable via GOOGLE_TTS_SAMPLE_RATE (default 24000 Hz).
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        sink: Optional[AudioSink] = None,
        url: str = SYNTHESIZE_URL,
    ):
        if not api_key:
            raise ValueError("Google Cloud TTS requires a valid API key in GOOGLE_TTS_API_KEY")
        self._api_key = api_key
        self._url = url
        self._sample_rate = int(os.getenv("GOOGLE_TTS_SAMPLE_RATE", "24000"))
        self.sink = sink or LatestClipSink()
        self._generation = 0

        # Connection pooling
        self._http_session: Optional[aiohttp.ClientSession] = None
        self._connector: Optional[aiohttp.TCPConnector] = None

    def _get_or_create_session(self) -> aiohttp.ClientSession:
        """
        Get or create shared HTTP session with connection pooling.

        Reuses TCP connections between requests to reduce latency.
        """
        if self._http_session is None or self._http_session.closed:
            pool_size = int(os.getenv("GOOGLE_TTS_CONNECTION_POOL_SIZE", "10"))
            connect_timeout = float(os.getenv("GOOGLE_TTS_CONNECTION_TIMEOUT", "3.0"))
            total_timeout = float(os.getenv("GOOGLE_TTS_CONNECTION_TOTAL_TIMEOUT", "10.0"))

            self._connector = aiohttp.TCPConnector(
                limit=pool_size,
                limit_per_host=pool_size,
                ttl_dns_cache=300,
                force_close=False,
            )
            timeout = aiohttp.ClientTimeout(total=total_timeout, connect=connect_timeout)
            self._http_session = aiohttp.ClientSession(connector=self._connector, timeout=timeout)

            logger.info(
                "TTS connection pool created",
                pool_size=pool_size,
                connect_timeout_ms=int(connect_timeout * 1000),
                total_timeout_ms=int(total_timeout * 1000),
            )
        else:
            logger.debug("TTS connection pool reused")

        return self._http_session

    def build_payload(self, text: str, locale: str, voice: VoiceSettings) -> dict:
        return {
            "input": {"text": text},
            "voice": {
                "languageCode": locale,
                "ssmlGender": "MALE" if voice.gender.lower() == "male" else "FEMALE",
            },
            "audioConfig": {
                "audioEncoding": "LINEAR16",
                "sampleRateHertz": self._sample_rate,
                "speakingRate": voice.speed,
            },
        }

    async def speak(self, text: str, locale_hint: str, voice: VoiceSettings) -> None:
        self._generation += 1
        generation = self._generation

        logger.info("TTS call started", locale=locale_hint, text_length=len(text))
        t_api_start = time.perf_counter()

        session = self._get_or_create_session()
        try:
            async with session.post(
                self._url,
                params={"key": self._api_key},
                json=self.build_payload(text, locale_hint, voice),
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(
                        "Google Cloud TTS error",
                        status_code=response.status,
                        error_text=error_text[:500],
                    )
                    raise SynthesisError(f"Google Cloud TTS API error: {response.status}")
                data = await response.json()
        except aiohttp.ClientError as e:
            logger.error("Google Cloud TTS exception", error=str(e), error_type=type(e).__name__)
            raise SynthesisError(f"Google Cloud TTS exception: {e}") from e

        audio_b64 = data.get("audioContent")
        if not audio_b64:
            raise SynthesisError("Google Cloud TTS: no audioContent in response")

        if generation != self._generation:
            logger.debug("TTS result superseded; dropped", locale=locale_hint)
            return

        pcm = decode_linear16(base64.b64decode(audio_b64))
        clip = AudioClip(
            wav=pcm_to_wav(smooth_edges(pcm, self._sample_rate), self._sample_rate),
            locale=locale_hint,
            sample_rate=self._sample_rate,
            text_length=len(text),
        )
        await self.sink.play(clip)

        logger.info(
            "TTS call completed",
            locale=locale_hint,
            text_length=len(text),
            latency_ms=int((time.perf_counter() - t_api_start) * 1000),
        )

    async def cancel(self) -> None:
        """Mark the in-flight request superseded; its audio is never delivered."""
        self._generation += 1

    async def aclose(self) -> None:
        """
        Best-effort cleanup of HTTP session and connector.
        Safe to call multiple times.
        """
        if self._http_session is not None:
            try:
                await self._http_session.close()
                logger.info("TTS connection pool closed")
            except Exception as e:
                logger.warning(
                    "Error closing TTS HTTP session",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                self._http_session = None
                self._connector = None


def decode_linear16(audio: bytes) -> bytes:
    """LINEAR16 responses carry a WAV header; return the raw PCM frames."""
    if audio[:4] == b"RIFF":
        with wave.open(io.BytesIO(audio), "rb") as wav_file:
            return wav_file.readframes(wav_file.getnframes())
    return audio


class NullSpeechSynthesizer:
    """Used when no TTS provider is configured. Logs and returns."""

    def __init__(self):
        self.spoken = 0

    async def speak(self, text: str, locale_hint: str, voice: VoiceSettings) -> None:
        self.spoken += 1
        logger.debug("Speech synthesis disabled; skipping", locale=locale_hint, text_length=len(text))

    async def cancel(self) -> None:
        return None
