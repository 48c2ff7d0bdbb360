"""Gemini provider speaking the REST API directly over httpx.

Streams ``models/{model}:streamGenerateContent?alt=sse`` and decodes the
server-sent events itself, so the wire format is visible and testable
with ``httpx.MockTransport``. Use this provider where the GenAI SDK is
not wanted or a proxy endpoint must be targeted.
"""

import json
from typing import Any

import httpx
from loguru import logger

from ..base import LLMProvider
from ..errors import APIStatusError, EmptyResponseError
from ..models import ChatMessage, LLMResponse, StreamingResponse
from ..streaming import MalformedChunk, StreamComplete, StreamDecoder, sse_data

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT = 60.0
FINISH_STOP = "STOP"

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def build_request_body(
    messages: list[ChatMessage],
    temperature: float,
    max_tokens: int | None = None,
    top_p: float | None = None,
    top_k: int | None = None,
) -> dict[str, Any]:
    """Build a generateContent request body.

    System messages become ``systemInstruction``; 'assistant' turns use
    Gemini's 'model' role.
    """
    contents = []
    system_parts = []
    for msg in messages:
        if msg.role == "system":
            system_parts.append({"text": msg.content})
            continue
        role = "model" if msg.role == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": msg.content}]})

    generation_config: dict[str, Any] = {"temperature": temperature}
    if top_k is not None:
        generation_config["topK"] = top_k
    if top_p is not None:
        generation_config["topP"] = top_p
    if max_tokens is not None:
        generation_config["maxOutputTokens"] = max_tokens

    body: dict[str, Any] = {
        "contents": contents,
        "generationConfig": generation_config,
        "safetySettings": [
            {"category": category, "threshold": "BLOCK_NONE"}
            for category in SAFETY_CATEGORIES
        ],
    }
    if system_parts:
        body["systemInstruction"] = {"parts": system_parts}
    return body


def candidate_text(payload: dict[str, Any]) -> tuple[str, str | None]:
    """Return (text, finish_reason) of the first candidate in a response payload."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return "", None
    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    return text, candidate.get("finishReason")


def parse_sse_line(line: str) -> str | None:
    """Decode one SSE line of a streamGenerateContent response.

    Only ``finishReason == "STOP"`` (or ``[DONE]``) completes the stream;
    the chunk carrying it may still hold the last fragment. Other reasons
    (SAFETY, MAX_TOKENS, ...) are not a completion: their text is emitted
    and reading continues, so a close without ``STOP`` fails as
    ``StreamEndedError``.
    """
    payload = sse_data(line)
    if payload is None:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedChunk(f"invalid JSON chunk: {payload[:80]!r}") from exc
    if not isinstance(data, dict):
        raise MalformedChunk(f"unexpected chunk type: {type(data).__name__}")

    text, finish_reason = candidate_text(data)
    if finish_reason == FINISH_STOP:
        raise StreamComplete(text or None)
    if finish_reason:
        logger.warning("Gemini stream reported finish reason {}", finish_reason)
    return text


def status_error(status_code: int, body: bytes) -> APIStatusError:
    """Convert an error response into APIStatusError, preferring the API's message."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        payload = json.loads(text)
        message = payload["error"]["message"]
    except (ValueError, KeyError, TypeError):
        message = text or httpx.codes.get_reason_phrase(status_code)
    return APIStatusError(status_code, message)


class GeminiRestProvider(LLMProvider):
    """Gemini over plain HTTPS.

    Hidden design decisions:
    - Endpoint layout and API key header
    - SSE framing and chunk JSON decoding (via StreamDecoder)
    - Error body decoding
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        **client_kwargs: Any
    ):
        """Initialize the REST provider.

        Args:
            api_key: Google AI API key
            model: Default model
            base_url: API root up to the version segment
            timeout: Connect/read timeout in seconds
            **client_kwargs: Additional kwargs for httpx.AsyncClient
                (e.g. ``transport`` for tests)
        """
        self._model = model
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion with generateContent.

        Raises:
            APIStatusError: If the API answers with a non-200 status
            EmptyResponseError: If the response carries no text
        """
        model_to_use = model or self._model
        body = build_request_body(messages, temperature, max_tokens, top_p, top_k)
        body.update(kwargs)

        response = await self._client.post(f"/models/{model_to_use}:generateContent", json=body)
        if response.status_code != 200:
            raise status_error(response.status_code, response.content)

        payload = response.json()
        text, _ = candidate_text(payload)
        if not text:
            raise EmptyResponseError(f"{model_to_use} returned no content")

        usage = None
        metadata = payload.get("usageMetadata")
        if metadata:
            usage = {
                "prompt_tokens": metadata.get("promptTokenCount", 0),
                "completion_tokens": metadata.get("candidatesTokenCount", 0),
                "total_tokens": metadata.get("totalTokenCount", 0),
            }
        return LLMResponse(content=text, model=model_to_use, usage=usage)

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Open a streamGenerateContent SSE stream.

        Raises:
            APIStatusError: If the API answers with a non-200 status
            httpx.HTTPError: On connection failures
        """
        model_to_use = model or self._model
        body = build_request_body(messages, temperature, max_tokens, top_p, top_k)
        body.update(kwargs)

        request = self._client.build_request(
            "POST",
            f"/models/{model_to_use}:streamGenerateContent",
            params={"alt": "sse"},
            json=body,
        )
        logger.debug("Opening {} SSE stream with {} contents", model_to_use, len(body["contents"]))
        response = await self._client.send(request, stream=True)

        if response.status_code != 200:
            try:
                error_body = await response.aread()
            finally:
                await response.aclose()
            raise status_error(response.status_code, error_body)

        decoder = StreamDecoder(
            response.aiter_lines(),
            parse_sse_line,
            require_terminal=True,
            on_close=response.aclose,
        )
        return StreamingResponse(decoder, model=model_to_use)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
