"""
Pytest configuration and shared fakes.

Tests marked `integration` need a real Postgres database and S3 bucket and are
skipped unless --run-integration is given.
"""

import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest

from autoinvoice.errors import StorageError
from autoinvoice.ingestion.base import EmailSource
from autoinvoice.models import (
    AttachmentPayload,
    ConsolidatedInvoice,
    InvoiceRecord,
    PageExtraction,
    PageExtractionError,
)
from autoinvoice.processing import rasterizer as rasterizer_module


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against a real database and bucket"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring DATABASE_URL and S3 settings"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Fakes
# ============================================================================


class FakeEmailSource(EmailSource):
    """Mailbox returning prepared attachments."""

    def __init__(self, attachments=None, error=None, tokens=None):
        self.attachments = attachments or []
        self.error = error
        self.tokens = tokens
        self.calls = []

    def list_messages(self, query, max_results):
        return [{"id": a.message_id, "threadId": a.message_id} for a in self.attachments]

    def get_message(self, message_id):
        return {"id": message_id, "payload": {"headers": [], "parts": []}}

    def download_attachment(self, message_id, attachment_id):
        return b"", 0

    def fetch_invoice_attachments(self, query, max_results):
        self.calls.append((query, max_results))
        if self.error:
            raise self.error
        return list(self.attachments)

    def current_tokens(self):
        return self.tokens


class FakeInference:
    """Inference client answering from a page_context -> result mapping."""

    model_name = "test/vision-model"

    def __init__(self, pages=None, configured=True):
        self.pages = pages or {}
        self.configured = configured
        self.calls = []

    def extract_page(self, image, mime_type, page_context):
        self.calls.append((image, mime_type, page_context))
        result = self.pages.get(page_context)
        if result is None:
            return PageExtractionError(
                error="LLM Response Parsing Error",
                message="no canned answer",
                page_context=page_context,
                raw_response="",
            )
        return result


class SpyExtractor:
    """Extractor double that records calls and returns a fixed result."""

    def __init__(self, result=None, error=None):
        self.result = result or ConsolidatedInvoice(
            invoice_number="SPY-1", vendor_name="Spy Co", llm_model="spy", processed_pages=1
        )
        self.error = error
        self.calls = []

    def extract(self, data, mime_type):
        self.calls.append((data, mime_type))
        if self.error:
            raise self.error
        return self.result


class FakeStorage:
    """Object store keeping uploads in memory."""

    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = {}

    def generate_key(self, user_id, filename):
        return f"{user_id}/{uuid.uuid4().hex}{Path(filename).suffix.lower()}"

    def upload_attachment(self, key, data, content_type="application/octet-stream"):
        if self.fail:
            raise StorageError(f"Upload of {key} failed: bucket unavailable")
        self.uploads[key] = (data, content_type)
        return f"https://storage.example.com/invoice-files/{key}"


class FakeDatabase:
    """In-memory record store with the DatabaseClient interface."""

    def __init__(self):
        self.invoices = {}
        self.handoffs = {}
        self.sessions = {}
        self.exists_checks = []

    def close(self):
        pass

    def invoice_exists(self, user_id, message_id):
        self.exists_checks.append((user_id, message_id))
        return any(i.user_id == user_id and i.message_id == message_id for i in self.invoices.values())

    def insert_invoice(self, invoice):
        if any(i.user_id == invoice.user_id and i.message_id == invoice.message_id
               for i in self.invoices.values()):
            return None
        now = datetime.now(timezone.utc)
        stored = invoice.model_copy(update={"id": str(uuid.uuid4()), "created_at": now, "updated_at": now})
        self.invoices[stored.id] = stored
        return stored

    def list_invoices(self, user_id):
        rows = [i for i in self.invoices.values() if i.user_id == user_id]
        return sorted(rows, key=lambda i: i.created_at, reverse=True)

    def get_invoice(self, invoice_id, user_id):
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.user_id != user_id:
            return None
        return invoice

    def update_invoice(self, invoice_id, user_id, update):
        invoice = self.get_invoice(invoice_id, user_id)
        if invoice is None:
            return None
        changes = update.model_dump(exclude_unset=True)
        updated = InvoiceRecord(**{**invoice.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)})
        self.invoices[invoice_id] = updated
        return updated

    def delete_invoice(self, invoice_id, user_id):
        if self.get_invoice(invoice_id, user_id) is None:
            return False
        del self.invoices[invoice_id]
        return True

    def put_auth_handoff(self, token, payload, ttl_seconds=300):
        self.handoffs[token] = payload

    def pop_auth_handoff(self, token):
        return self.handoffs.pop(token, None)

    def purge_expired_handoffs(self):
        return 0

    def save_google_tokens(self, session_id, user_id, tokens):
        self.sessions[session_id] = (user_id, tokens)

    def get_google_tokens(self, session_id):
        entry = self.sessions.get(session_id)
        return entry[1] if entry else None

    def delete_session(self, session_id):
        return self.sessions.pop(session_id, None) is not None


# ============================================================================
# Fixtures
# ============================================================================


def make_attachment(
    message_id="msg-1",
    filename="invoice.pdf",
    mime_type="application/pdf",
    data=b"%PDF-1.4 test",
):
    return AttachmentPayload(
        filename=filename,
        mime_type=mime_type,
        data=data,
        size_bytes=len(data),
        message_id=message_id,
        email_subject="Your invoice",
        email_date="2024-05-01T10:00:00+00:00",
    )


def make_page(page_context, model="test/vision-model", **fields):
    return PageExtraction(page_context=page_context, llm_model=model, **fields)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_pdf_pages(monkeypatch):
    """Make pdf2image write `page-N.png` files in the given index order.

    Returns a dict the test fills with "indices"; the scratch folder used by
    the last conversion is recorded under "output_folder".
    """
    state = {"indices": [1], "output_folder": None}

    def fake_convert_from_path(pdf_path, output_folder=None, output_file="page", **kwargs):
        state["output_folder"] = output_folder
        for index in state["indices"]:
            (Path(output_folder) / f"{output_file}-{index}.png").write_bytes(f"png-{index}".encode())
        return []

    monkeypatch.setattr(rasterizer_module, "convert_from_path", fake_convert_from_path)
    return state
