"""Pydantic schemas for Talaria API envelopes and event payloads."""

from typing import Optional, List
from pydantic import AliasChoices, BaseModel, Field

from ..domain.models import BookResult


class UploadResponseData(BaseModel):
    """Upload envelope ``data`` object."""

    job_id: Optional[str] = Field(None, alias="jobId", description="Unique job identifier")
    stream_endpoint: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("streamEndpoint", "sseUrl", "streamUrl"),
        description="SSE endpoint for the job",
    )
    auth_token: Optional[str] = Field(None, alias="authToken", description="Bearer token for the stream")
    status_endpoint: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("statusEndpoint", "statusUrl"),
        description="Polling endpoint for the job",
    )

    class Config:
        """Pydantic config."""

        populate_by_name = True


class UploadResponse(BaseModel):
    """Upload response schema (202 Accepted)."""

    success: bool = Field(..., description="Request outcome")
    data: Optional[UploadResponseData] = Field(None, description="Job details")


class ResultsResponseData(BaseModel):
    """Results envelope ``data`` object."""

    job_id: Optional[str] = Field(None, alias="jobId", description="Job identifier")
    status: Optional[str] = Field(None, description="Job status")
    results: List[BookResult] = Field(default_factory=list, description="Recognised books")

    class Config:
        """Pydantic config."""

        populate_by_name = True


class ResultsResponse(BaseModel):
    """Results fetch response schema."""

    success: bool = Field(..., description="Request outcome")
    data: ResultsResponseData = Field(..., description="Job results")


class ProgressPayload(BaseModel):
    """``progress`` event data."""

    message: str


class ErrorPayload(BaseModel):
    """``error`` event data."""

    message: str
    code: Optional[str] = None
    retryable: Optional[bool] = None
    job_id: Optional[str] = Field(None, alias="jobId")


class EnrichmentDegradedPayload(BaseModel):
    """``enrichment_degraded`` event data; every field is optional."""

    job_id: Optional[str] = Field(None, alias="jobId")
    isbn: Optional[str] = None
    title: Optional[str] = None
    reason: Optional[str] = None
    fallback_source: Optional[str] = Field(None, alias="fallbackSource")
    timestamp: Optional[str] = None


class SegmentedPayload(BaseModel):
    """``segmented`` event data."""

    image: str = Field(..., description="Base64 encoded JPEG")
    total_books: int = Field(..., alias="totalBooks")


class BookProgressPayload(BaseModel):
    """``book_progress`` event data."""

    current: int
    total: int
    stage: Optional[str] = None
