"""Upstream generative-content API integration.

Key components:
- gemini: wire models, request builder, answer extraction and GeminiClient
"""

from .gemini import (
    GeminiClient,
    GenerateContentRequest,
    GenerateContentResponse,
    NO_CONTENT_SENTINEL,
    build_generate_request,
    extract_solution_text,
)

__all__ = [
    "GeminiClient",
    "GenerateContentRequest",
    "GenerateContentResponse",
    "NO_CONTENT_SENTINEL",
    "build_generate_request",
    "extract_solution_text",
]
