"""Client and wire models for the Gemini generateContent API.

Only the subset of the API the relay uses is modelled:
- request: one content with a text part and an inline image part
- response: candidates -> content -> parts -> text, each level optional
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..config import (
    DEFAULT_GEMINI_BASE_URL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
)
from ..errors import UpstreamError, UpstreamMalformedResponse, UpstreamUnreachable

logger = logging.getLogger(__name__)

SOLUTION_PROMPT = (
    "Please analyze this image and provide a detailed solution in HTML format. "
    "Include step-by-step explanations and in proper paragraphs. "
    "Use proper HTML tags for formatting."
)

# The actual image format is not inspected; every payload is declared as JPEG.
INLINE_IMAGE_MIME_TYPE = "image/jpeg"

NO_CONTENT_SENTINEL = "No content returned from Gemini API."


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class InlineData(BaseModel):
    """Inline binary payload, base64 encoded."""

    mime_type: str = Field(..., description="Declared MIME type of the payload")
    data: str = Field(..., description="Base64-encoded bytes")


class RequestPart(BaseModel):
    """One part of a request content: either text or inline data."""

    text: Optional[str] = None
    inline_data: Optional[InlineData] = None


class RequestContent(BaseModel):
    parts: List[RequestPart]


class GenerateContentRequest(BaseModel):
    """Body of a generateContent call."""

    contents: List[RequestContent]


def build_generate_request(image_base64: str) -> GenerateContentRequest:
    """
    Build the upstream request for one image.

    Args:
        image_base64: The client's base64 string, forwarded unchanged

    Returns:
        Request with the instruction part followed by the inline image part
    """
    return GenerateContentRequest(
        contents=[
            RequestContent(
                parts=[
                    RequestPart(text=SOLUTION_PROMPT),
                    RequestPart(
                        inline_data=InlineData(
                            mime_type=INLINE_IMAGE_MIME_TYPE,
                            data=image_base64,
                        )
                    ),
                ]
            )
        ]
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ResponsePart(BaseModel):
    text: Optional[str] = None


class ResponseContent(BaseModel):
    parts: Optional[List[Optional[ResponsePart]]] = None


class Candidate(BaseModel):
    content: Optional[ResponseContent] = None


class GenerateContentResponse(BaseModel):
    """generateContent response. Unknown fields are ignored; null list elements are kept as None."""

    candidates: Optional[List[Optional[Candidate]]] = None


# A literal JSON null body is accepted and treated as an empty response.
_response_adapter = TypeAdapter(Optional[GenerateContentResponse])


def parse_generate_response(body: bytes) -> GenerateContentResponse:
    """
    Deserialize a success body into GenerateContentResponse.

    Raises:
        UpstreamMalformedResponse: If the body is not JSON or has the wrong shape
    """
    try:
        parsed = _response_adapter.validate_json(body)
    except ValidationError as e:
        raise UpstreamMalformedResponse(_first_error(e)) from e
    return parsed or GenerateContentResponse()


def extract_solution_text(response: GenerateContentResponse) -> str:
    """
    Return the text of the first part of the first candidate.

    Falls back to NO_CONTENT_SENTINEL at the first absent or empty level.
    """
    if not response.candidates:
        return NO_CONTENT_SENTINEL
    candidate = response.candidates[0]
    if candidate is None or candidate.content is None or not candidate.content.parts:
        return NO_CONTENT_SENTINEL
    part = candidate.content.parts[0]
    # Missing text is an absent level like the others, not an empty answer.
    if part is None or part.text is None:
        return NO_CONTENT_SENTINEL
    return part.text


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return str(e)
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class GeminiClient:
    """
    Single-shot async client for generateContent.

    The API key is captured at construction and sent as the ``key`` query
    parameter. Calls are never retried; the whole exchange (connect, send,
    read body) is bounded by ``timeout``.
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key
            http_client: Shared AsyncClient (owned by the caller)
            model: Model name used in the endpoint path
            base_url: API base URL, without trailing slash
            timeout: Seconds allowed for one full request
        """
        self._api_key = api_key
        self._http = http_client
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _redact(self, text: str) -> str:
        if self._api_key:
            return text.replace(self._api_key, "***")
        return text

    async def _post(self, body: bytes) -> httpx.Response:
        return await self._http.post(
            self.endpoint,
            params={"key": self._api_key},
            content=body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )

    async def generate_content(self, request: GenerateContentRequest) -> GenerateContentResponse:
        """
        POST one generateContent request and parse the reply.

        Args:
            request: Request envelope

        Returns:
            Parsed response

        Raises:
            UpstreamUnreachable: On transport failure or timeout
            UpstreamError: On a non-2xx status
            UpstreamMalformedResponse: On an undecodable 2xx body
        """
        body = request.model_dump_json(exclude_none=True).encode()

        try:
            resp = await asyncio.wait_for(self._post(body), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamUnreachable(
                f"request timed out after {self.timeout:g}s"
            ) from e
        except httpx.RequestError as e:
            raise UpstreamUnreachable(
                self._redact(f"{type(e).__name__}: {e}")
            ) from e

        if not 200 <= resp.status_code <= 299:
            logger.warning(f"Gemini API returned HTTP {resp.status_code} for model {self.model}")
            raise UpstreamError(resp.status_code)

        return parse_generate_response(resp.content)
