"""Value objects decoded from Talaria wire data."""

from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator


class EnrichmentStatus(str, Enum):
    """Metadata enrichment outcome for a recognised book."""

    SUCCESS = "success"
    PENDING = "pending"
    DEGRADED = "degraded"
    FAILED = "failed"


class BookResult(BaseModel):
    """Book metadata recognised from a spine."""

    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Primary author")
    isbn: Optional[str] = Field(None, description="ISBN-10 or ISBN-13")
    cover_url: Optional[str] = Field(None, alias="coverUrl", description="Cover image URL")
    publisher: Optional[str] = Field(None, description="Publisher name")
    published_date: Optional[str] = Field(None, alias="publishedDate", description="Publication date as sent")
    page_count: Optional[int] = Field(None, alias="pageCount", description="Number of pages")
    format: Optional[str] = Field(None, description="Binding or edition format")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Recognition confidence")
    enrichment_status: Optional[EnrichmentStatus] = Field(
        None, alias="enrichmentStatus", description="Enrichment outcome"
    )

    class Config:
        """Pydantic config."""

        populate_by_name = True
        frozen = True

    @field_validator("enrichment_status", mode="before")
    @classmethod
    def tolerate_unknown_status(cls, v: Any) -> Any:
        """Map enrichment states this client does not know to None."""
        if v is None or isinstance(v, EnrichmentStatus):
            return v
        try:
            return EnrichmentStatus(v)
        except ValueError:
            return None


class ProblemDetails(BaseModel):
    """RFC 9457 style error envelope returned on non-2xx responses."""

    success: bool = Field(..., description="Always false for errors")
    type: str = Field(..., description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    code: str = Field(..., description="Machine-readable error code")
    retryable: bool = Field(..., description="Whether retrying may succeed")
    retry_after_ms: Optional[int] = Field(None, alias="retryAfterMs", description="Server-requested delay")
    instance: Optional[str] = Field(None, description="URI of the failing request")
    metadata: Optional[Dict[str, str]] = Field(None, description="Extra diagnostic values")

    class Config:
        """Pydantic config."""

        populate_by_name = True
        frozen = True
