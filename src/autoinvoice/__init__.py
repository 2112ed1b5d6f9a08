"""Invoice extraction from Gmail attachments - attachments in, stored records out."""

# Models
from .models import (
    # Ingestion models
    EmailAttachmentRef,
    ParsedEmail,
    AttachmentPayload,
    # Extraction models
    PageImage,
    UnsupportedFormat,
    PageExtraction,
    PageExtractionError,
    PageSummary,
    ConsolidatedInvoice,
    ExtractionFailed,
    # Database models
    InvoiceRecord,
    InvoiceUpdate,
    WorkflowStatus,
    # Report models
    AttachmentStatus,
    ProcessingReport,
    RunMetrics,
    UserInfo,
)

# Ingestion
from .ingestion import GmailSource

# Processing
from .processing import GmailMessageParser, PageRasterizer

# Semantic
from .semantic import InferenceClient, InvoiceExtractor, consolidate_pages

# Storage
from .storage import DatabaseClient, S3Client

# Pipeline
from .pipeline import InvoicePipeline

# Configuration
from .config import Config

__version__ = "0.1.0"

__all__ = [
    # Models
    "EmailAttachmentRef",
    "ParsedEmail",
    "AttachmentPayload",
    "PageImage",
    "UnsupportedFormat",
    "PageExtraction",
    "PageExtractionError",
    "PageSummary",
    "ConsolidatedInvoice",
    "ExtractionFailed",
    "InvoiceRecord",
    "InvoiceUpdate",
    "WorkflowStatus",
    "AttachmentStatus",
    "ProcessingReport",
    "RunMetrics",
    "UserInfo",
    # Components
    "GmailSource",
    "GmailMessageParser",
    "PageRasterizer",
    "InferenceClient",
    "InvoiceExtractor",
    "consolidate_pages",
    "DatabaseClient",
    "S3Client",
    "InvoicePipeline",
    "Config",
]
