"""
Unit tests for the Gemini upstream module.

Covers the request envelope, answer extraction over the optional response
shape, and GeminiClient's error classification.
"""

import asyncio

import httpx
import pytest

from helpers import TEST_API_KEY, VALID_B64, StubUpstream, gemini_reply
from solution_relay.errors import (
    UpstreamError,
    UpstreamMalformedResponse,
    UpstreamUnreachable,
)
from solution_relay.upstream.gemini import (
    NO_CONTENT_SENTINEL,
    SOLUTION_PROMPT,
    GeminiClient,
    GenerateContentResponse,
    build_generate_request,
    extract_solution_text,
    parse_generate_response,
)


def _client(http: httpx.AsyncClient, timeout: float = 15.0) -> GeminiClient:
    return GeminiClient(api_key=TEST_API_KEY, http_client=http, timeout=timeout)


def _http(stub: StubUpstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(stub))


class TestBuildGenerateRequest:
    """Test cases for the upstream request envelope."""

    def test_wire_shape(self) -> None:
        body = build_generate_request(VALID_B64).model_dump(exclude_none=True)

        assert body == {
            "contents": [
                {
                    "parts": [
                        {"text": SOLUTION_PROMPT},
                        {"inline_data": {"mime_type": "image/jpeg", "data": VALID_B64}},
                    ]
                }
            ]
        }

    def test_mime_type_is_always_jpeg(self) -> None:
        # PNG signature, still declared as JPEG
        png_b64 = "iVBORw0KGgo="
        part = build_generate_request(png_b64).contents[0].parts[1]

        assert part.inline_data.mime_type == "image/jpeg"
        assert part.inline_data.data == png_b64


class TestExtractSolutionText:
    """Test cases for answer extraction."""

    def test_first_part_of_first_candidate(self) -> None:
        response = GenerateContentResponse.model_validate(
            {
                "candidates": [
                    {"content": {"parts": [{"text": "first"}, {"text": "second"}]}},
                    {"content": {"parts": [{"text": "other candidate"}]}},
                ]
            }
        )

        assert extract_solution_text(response) == "first"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"candidates": None},
            {"candidates": []},
            {"candidates": [{}]},
            {"candidates": [{"content": None}]},
            {"candidates": [{"content": {}}]},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"content": {"parts": [{}]}}]},
            {"candidates": [None]},
            {"candidates": [{"content": {"parts": [None]}}]},
        ],
    )
    def test_absent_levels_fall_back_to_sentinel(self, body) -> None:
        response = GenerateContentResponse.model_validate(body)

        assert extract_solution_text(response) == NO_CONTENT_SENTINEL

    def test_empty_text_is_returned_as_is(self) -> None:
        response = GenerateContentResponse.model_validate(
            {"candidates": [{"content": {"parts": [{"text": ""}]}}]}
        )

        assert extract_solution_text(response) == ""


class TestParseGenerateResponse:
    """Test cases for response deserialization."""

    def test_ignores_unknown_fields(self) -> None:
        parsed = parse_generate_response(b'{"candidates": [], "promptFeedback": {"x": 1}}')

        assert parsed.candidates == []

    def test_null_body_is_empty_response(self) -> None:
        parsed = parse_generate_response(b"null")

        assert extract_solution_text(parsed) == NO_CONTENT_SENTINEL

    @pytest.mark.parametrize(
        "body",
        [b'{"candidates": [null]}', b'{"candidates": [{"content": {"parts": [null]}}]}'],
    )
    def test_null_list_elements_are_absent(self, body) -> None:
        parsed = parse_generate_response(body)

        assert extract_solution_text(parsed) == NO_CONTENT_SENTINEL

    @pytest.mark.parametrize(
        "body",
        [b"", b"<html>oops</html>", b'{"candidates": "nope"}', b'{"candidates": [{"content": {"parts": [{"text": 5}]}}]}'],
    )
    def test_rejects_bad_bodies(self, body) -> None:
        with pytest.raises(UpstreamMalformedResponse):
            parse_generate_response(body)


class TestGeminiClient:
    """Test cases for GeminiClient.generate_content."""

    @pytest.mark.asyncio
    async def test_posts_to_generate_content_with_key_param(self) -> None:
        stub = StubUpstream(json_body=gemini_reply("answer"))

        async with _http(stub) as http:
            result = await _client(http).generate_content(build_generate_request(VALID_B64))

        assert extract_solution_text(result) == "answer"
        request = stub.requests[0]
        assert request.method == "POST"
        assert request.url.host == "generativelanguage.googleapis.com"
        assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert request.url.params["key"] == TEST_API_KEY
        assert request.headers["content-type"] == "application/json"
        assert stub.last_json["contents"][0]["parts"][1]["inline_data"]["data"] == VALID_B64

    @pytest.mark.asyncio
    async def test_custom_model_and_base_url(self) -> None:
        stub = StubUpstream()

        async with _http(stub) as http:
            client = GeminiClient(
                api_key=TEST_API_KEY,
                http_client=http,
                model="gemini-2.0-flash",
                base_url="http://gemini.local/v1/",
            )
            await client.generate_content(build_generate_request(VALID_B64))

        assert str(stub.requests[0].url).startswith(
            "http://gemini.local/v1/models/gemini-2.0-flash:generateContent?"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 429, 500, 503])
    async def test_non_2xx_raises_upstream_error(self, status) -> None:
        stub = StubUpstream(status_code=status, content=b"not even json")

        async with _http(stub) as http:
            with pytest.raises(UpstreamError) as exc_info:
                await _client(http).generate_content(build_generate_request(VALID_B64))

        assert exc_info.value.upstream_status == status
        assert exc_info.value.to_body()["status"] == status
        assert str(status) in exc_info.value.to_body()["detail"]

    @pytest.mark.asyncio
    async def test_2xx_with_invalid_json_is_malformed(self) -> None:
        stub = StubUpstream(status_code=200, content=b"{truncated")

        async with _http(stub) as http:
            with pytest.raises(UpstreamMalformedResponse):
                await _client(http).generate_content(build_generate_request(VALID_B64))

    @pytest.mark.asyncio
    async def test_transport_error_is_unreachable_and_redacts_key(self) -> None:
        stub = StubUpstream(
            error=lambda req: httpx.ConnectError(f"connection refused for {req.url}", request=req)
        )

        async with _http(stub) as http:
            with pytest.raises(UpstreamUnreachable) as exc_info:
                await _client(http).generate_content(build_generate_request(VALID_B64))

        detail = exc_info.value.detail
        assert "ConnectError" in detail
        assert TEST_API_KEY not in detail
        assert "***" in detail

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self) -> None:
        stub = StubUpstream(delay=5.0)

        async with _http(stub) as http:
            loop = asyncio.get_running_loop()
            started = loop.time()
            with pytest.raises(UpstreamUnreachable) as exc_info:
                await _client(http, timeout=0.1).generate_content(
                    build_generate_request(VALID_B64)
                )
            elapsed = loop.time() - started

        assert "timed out" in exc_info.value.detail
        assert elapsed < 2.0
        # Exactly one attempt, no retry
        assert len(stub.requests) == 1
