"""Pydantic models aligned with PostgreSQL schema and internal processing."""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_MIME_TYPES = ("application/pdf", "image/jpeg", "image/png", "image/gif")

INVOICE_FIELDS = (
    "invoice_number",
    "invoice_date",
    "vendor_name",
    "total_amount",
    "due_date",
    "currency",
)

_AMOUNT_NOISE = re.compile(r"[^\d.\-]")


def coerce_amount(value: Any) -> Optional[Decimal]:
    """Convert an LLM-reported amount to Decimal, or None if it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    cleaned = _AMOUNT_NOISE.sub("", str(value))
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


# ============================================================================
# Gmail ingestion models (internal processing)
# ============================================================================


class EmailAttachmentRef(BaseModel):
    """Attachment located in a Gmail message part tree, not yet downloaded."""

    message_id: str
    attachment_id: str
    filename: str
    mime_type: str


class ParsedEmail(BaseModel):
    """Headers and attachment references of one Gmail message."""

    message_id: str
    subject: str
    date: str  # ISO-8601
    attachments: list[EmailAttachmentRef] = Field(default_factory=list)


class AttachmentPayload(BaseModel):
    """Downloaded attachment with raw data and its parent email context."""

    filename: str
    mime_type: str
    data: bytes
    size_bytes: int
    message_id: Optional[str] = None
    email_subject: str = "No Subject"
    email_date: str


# ============================================================================
# Extraction models
# ============================================================================


class PageImage(BaseModel):
    """A single page image ready for inference."""

    data: bytes
    mime_type: str
    page_context: str


class UnsupportedFormat(BaseModel):
    """Rasterizer result for MIME types it cannot turn into page images."""

    status: Literal["unsupported_format"] = "unsupported_format"
    mime_type: str
    message: str


class PageExtraction(BaseModel):
    """Invoice fields read from one page."""

    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    due_date: Optional[str] = None
    currency: Optional[str] = None
    page_context: str
    llm_model: str

    model_config = ConfigDict(coerce_numbers_to_str=True)

    @field_validator("total_amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Optional[Decimal]:
        return coerce_amount(value)


class PageExtractionError(BaseModel):
    """Failure to read fields from one page; carries the raw reply when there was one."""

    error: str
    message: str
    page_context: str
    raw_response: Optional[str] = None


PageResult = Union[PageExtraction, PageExtractionError]


class PageSummary(BaseModel):
    """Per-page trace entry kept on the consolidated result."""

    page_context: str
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    due_date: Optional[str] = None
    currency: Optional[str] = None
    has_error: bool = False


class ConsolidatedInvoice(BaseModel):
    """One record per attachment, merged from all of its pages."""

    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    due_date: Optional[str] = None
    currency: Optional[str] = None
    llm_model: Optional[str] = None
    processed_pages: int
    page_data_summary: list[PageSummary] = Field(default_factory=list)


class ExtractionFailed(BaseModel):
    """No usable fields could be extracted from an attachment."""

    status: Literal["extraction_failed"] = "extraction_failed"
    error: str
    message: str
    processed_pages: int = 0
    page_data_summary: list[PageSummary] = Field(default_factory=list)


ExtractionResult = Union[ConsolidatedInvoice, ExtractionFailed]


# ============================================================================
# Database models (aligned with PostgreSQL schema)
# ============================================================================


class WorkflowStatus(str, Enum):
    """User-facing review state of a stored invoice."""

    APPROVED = "approved"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class InvoiceRecord(BaseModel):
    """Invoice row (aligned with database schema)."""

    # Database fields
    id: Optional[str] = None  # Auto-generated UUID
    user_id: str
    message_id: str  # Gmail message id, unique per user

    # Invoice data
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor: Optional[str] = None
    amount: Optional[Decimal] = None
    due_date: Optional[str] = None
    currency: Optional[str] = None
    description: Optional[str] = None

    # Stored file
    file_name: Optional[str] = None
    file_url: Optional[str] = None

    # JSONB fields
    extracted_data: dict[str, Any] = Field(default_factory=dict)

    status: WorkflowStatus = Field(default=WorkflowStatus.APPROVED, validate_default=True)

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class InvoiceUpdate(BaseModel):
    """Fields a user may edit on a stored invoice."""

    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor: Optional[str] = None
    amount: Optional[Decimal] = None
    due_date: Optional[str] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    status: Optional[WorkflowStatus] = None

    # Ownership, dedup key and raw extraction are not editable
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    @field_validator("status")
    @classmethod
    def _status_not_null(cls, value: Optional[str]) -> str:
        # Only runs when status is sent; the column is NOT NULL
        if value is None:
            raise ValueError("status cannot be null")
        return value


class StatusUpdate(BaseModel):
    """Request body for a workflow status change."""

    status: WorkflowStatus

    model_config = ConfigDict(use_enum_values=True)


# ============================================================================
# Pipeline report models
# ============================================================================


class AttachmentStatus(BaseModel):
    """Outcome for one attachment within a pipeline run."""

    filename: str
    message_id: Optional[str] = None
    status: Literal["Processed", "Skipped", "Error"]
    reason: Optional[str] = None
    file_url: Optional[str] = None
    invoice: Optional[InvoiceRecord] = None


class RunMetrics(BaseModel):
    """Timing for one pipeline run."""

    duration_sec: float = 0.0
    listing_time_sec: float = 0.0
    extraction_time_sec: float = 0.0
    upload_time_sec: float = 0.0
    db_time_sec: float = 0.0


class ProcessingReport(BaseModel):
    """Aggregated result of one user-triggered run."""

    message: str
    count: int
    results: list[AttachmentStatus] = Field(default_factory=list)
    metrics: RunMetrics = Field(default_factory=RunMetrics)


# ============================================================================
# Session models
# ============================================================================


class UserInfo(BaseModel):
    """Google profile of the signed-in user."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
