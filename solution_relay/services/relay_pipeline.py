"""Relay pipeline: inbound image payload in, extracted solution text out.

One call of :meth:`RelayPipeline.generate_solution` is one linear attempt:
parse -> validate -> build -> credential check -> dispatch -> extract.
Nothing is cached between calls.
"""

import base64
import binascii
import logging

from pydantic import ValidationError

from ..api.models.solution import SolutionRequest
from ..errors import InvalidEncoding, MalformedRequest, MissingCredential
from ..upstream.gemini import (
    GeminiClient,
    build_generate_request,
    extract_solution_text,
)

logger = logging.getLogger(__name__)


def parse_payload(raw_body: bytes) -> SolutionRequest:
    """
    Parse the raw inbound body.

    Raises:
        MalformedRequest: If the body is not a JSON object with a string ``data``
    """
    try:
        return SolutionRequest.model_validate_json(raw_body)
    except ValidationError as e:
        raise MalformedRequest(str(e)) from e


def validate_base64(data: str) -> None:
    """
    Check that ``data`` is standard, padded base64.

    Line breaks are ignored. The decoded bytes are discarded.

    Raises:
        InvalidEncoding: With the decoder's error message
    """
    cleaned = data.replace("\r", "").replace("\n", "")
    try:
        base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncoding(str(e)) from e


class RelayPipeline:
    """
    Relays one image to the upstream API and returns the answer text.

    The credential is captured at construction and treated as read-only;
    the GeminiClient is shared by all requests.
    """

    def __init__(self, credential: str, client: GeminiClient):
        self._credential = credential
        self._client = client

    async def generate_solution(self, raw_body: bytes, request_id: str = "") -> str:
        """
        Run the full relay for one inbound request body.

        Args:
            raw_body: Raw HTTP request body
            request_id: Optional request ID for log correlation

        Returns:
            Extracted answer text, or the no-content sentinel

        Raises:
            RelayError: Any failure, already classified for the client
        """
        payload = parse_payload(raw_body)
        validate_base64(payload.data)

        upstream_request = build_generate_request(payload.data)

        if not self._credential:
            logger.error(f"No Gemini API key configured (request {request_id})")
            raise MissingCredential()

        logger.debug(
            f"Dispatching request {request_id} to {self._client.endpoint} "
            f"({len(payload.data)} base64 chars)"
        )
        upstream_response = await self._client.generate_content(upstream_request)
        return extract_solution_text(upstream_response)
