"""Pydantic models for the generate-solution API endpoint."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SolutionRequest(BaseModel):
    """Request model for solution generation."""

    data: str = Field(default="", description="Base64-encoded image bytes")

    @field_validator("data", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Optional[str]):
        # A missing key and an explicit null both mean "no data"
        return "" if value is None else value


class SolutionResponse(BaseModel):
    """Response model for a relayed solution."""

    solution: str = Field(..., description="Answer text extracted from the model output")


class ErrorResponse(BaseModel):
    """Error body returned for every failed relay request."""

    error: str = Field(..., description="Short error message")
    detail: Optional[str] = Field(default=None, description="Underlying error detail")
    status: Optional[int] = Field(default=None, description="Upstream HTTP status, if any")
