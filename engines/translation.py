"""
Translation engine over an OpenAI-compatible chat-completions endpoint.

The orchestrator's directive is sent as the single user message; the reply
content is taken verbatim as the translation. If the provider adds a numeric
"confidence" to the response body it is passed through.
"""
import os
import time
from typing import Any, Dict, Optional

import aiohttp

from logging_setup import get_logger, Component
from orchestrator.errors import TranslationEngineError
from orchestrator.interfaces import TranslationRequest, TranslationResponse

logger = get_logger(Component.TRANSLATION_ENGINE)


class LLMTranslationEngine:

    def __init__(
        self,
        *,
        api_key: Optional[str],
        url: str = "https://api.groq.com/openai/v1/chat/completions",
        model: str = "llama-3.1-8b-instant",
        temperature: float = 0.0,
    ):
        if not api_key:
            raise ValueError("Translation engine requires an API key in TRANSLATION_API_KEY")
        self._api_key = api_key
        self._url = url
        self._model = model
        self._temperature = temperature

        # Connection pooling
        self._http_session: Optional[aiohttp.ClientSession] = None

    def _get_or_create_session(self) -> aiohttp.ClientSession:
        """Shared HTTP session; TCP connections are reused between requests."""
        if self._http_session is None or self._http_session.closed:
            pool_size = int(os.getenv("TRANSLATION_CONNECTION_POOL_SIZE", "10"))
            connect_timeout = float(os.getenv("TRANSLATION_CONNECTION_TIMEOUT", "3.0"))

            connector = aiohttp.TCPConnector(
                limit=pool_size,
                limit_per_host=pool_size,
                ttl_dns_cache=300,
            )
            # Total time is bounded by the pipeline's own timeout.
            timeout = aiohttp.ClientTimeout(total=None, connect=connect_timeout)
            self._http_session = aiohttp.ClientSession(connector=connector, timeout=timeout)

            logger.info(
                "Translation connection pool created",
                pool_size=pool_size,
                connect_timeout_ms=int(connect_timeout * 1000),
            )
        return self._http_session

    def _payload(self, request: TranslationRequest) -> Dict[str, Any]:
        return {
            "model": self._model,
            "temperature": self._temperature,
            "messages": [{"role": "user", "content": request.directive}],
        }

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        started = time.perf_counter()
        try:
            session = self._get_or_create_session()
            async with session.post(self._url, json=self._payload(request), headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(
                        "Translation API error",
                        status_code=response.status,
                        error_text=error_text[:500],
                    )
                    raise TranslationEngineError(
                        f"translation API returned {response.status}",
                        detail=f"http_{response.status}",
                    )
                data = await response.json()
        except TranslationEngineError:
            raise
        except aiohttp.ClientError as e:
            logger.error("Translation API transport error", error=str(e), error_type=type(e).__name__)
            raise TranslationEngineError(f"translation transport error: {e}", detail=type(e).__name__) from e

        translated, confidence = parse_completion(data)
        logger.info(
            "Translation call completed",
            source_language=request.source_language,
            target_language=request.target_language,
            text_length=len(request.text),
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
        return TranslationResponse(translated_text=translated, confidence=confidence)

    async def aclose(self) -> None:
        """Best-effort cleanup of the HTTP session. Safe to call multiple times."""
        if self._http_session is not None:
            try:
                await self._http_session.close()
                logger.info("Translation connection pool closed")
            except Exception as e:
                logger.warning(
                    "Error closing translation HTTP session",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                self._http_session = None


def parse_completion(data: Any) -> "tuple[str, Optional[int]]":
    """Extract (text, confidence) from a chat-completions body."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise TranslationEngineError("malformed translation response", detail="malformed_body") from e
    if not isinstance(content, str):
        raise TranslationEngineError("malformed translation response", detail="malformed_body")

    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = None
    else:
        confidence = int(confidence)
    return content, confidence
