"""Shared test helpers: canned Gemini replies and a recording upstream stub."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import httpx


TEST_API_KEY = "test-api-key-123"

# "hello world" and a tiny JPEG-like header, both valid base64
VALID_B64 = "aGVsbG8gd29ybGQ="
JPEG_B64 = "/9j/4AAQSkZJRgABAQAAAQABAAD/2wBDAAgGBgcGBQgHBwcJCQgKDBQNDAsLDBkSEw8U"


def gemini_reply(text: str) -> Dict[str, Any]:
    """Build a minimal successful generateContent response body."""
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": text}], "role": "model"},
                "finishReason": "STOP",
                "index": 0,
            }
        ],
        "usageMetadata": {"promptTokenCount": 10, "totalTokenCount": 20},
    }


class StubUpstream:
    """Async MockTransport handler that records requests and replays a canned reply."""

    def __init__(
        self,
        status_code: int = 200,
        json_body: Optional[Any] = None,
        content: Optional[bytes] = None,
        delay: float = 0.0,
        error: Optional[Callable[[httpx.Request], Exception]] = None,
    ):
        self.status_code = status_code
        self.json_body = gemini_reply("<p>42</p>") if json_body is None and content is None else json_body
        self.content = content
        self.delay = delay
        self.error = error
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


