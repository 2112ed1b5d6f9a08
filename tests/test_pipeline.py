"""
Unit tests for InvoicePipeline with in-memory collaborators.
"""

from decimal import Decimal

import pytest

from autoinvoice.errors import MailProviderError
from autoinvoice.models import ConsolidatedInvoice, ExtractionFailed
from autoinvoice.pipeline import FAILED_VENDOR, UNKNOWN_VENDOR, InvoicePipeline, build_invoice_record
from autoinvoice.semantic.extractor import InvoiceExtractor

from conftest import (
    FakeEmailSource,
    FakeInference,
    FakeStorage,
    SpyExtractor,
    make_attachment,
    make_page,
)


def _pipeline(source, extractor, storage, db):
    return InvoicePipeline(source, extractor, storage, db, query="subject:invoice", max_results=10)


class TestInvoicePipeline:
    """Tests for InvoicePipeline.run"""

    def test_two_page_pdf_end_to_end(self, fake_pdf_pages, fake_db, fake_storage):
        fake_pdf_pages["indices"] = [1, 2]
        inference = FakeInference({
            "page 1 of 2": make_page("page 1 of 2", invoice_number="INV-1", vendor_name=None, total_amount=None),
            "page 2 of 2": make_page("page 2 of 2", invoice_number=None, vendor_name="Acme", total_amount=99.50),
        })
        pipeline = _pipeline(
            FakeEmailSource([make_attachment("msg-1")]),
            InvoiceExtractor(inference),
            fake_storage,
            fake_db,
        )

        report = pipeline.run("userA")

        assert report.count == 1
        assert report.message == "Processed 1 attachments."
        [status] = report.results
        assert status.status == "Processed"
        assert status.file_url.startswith("https://storage.example.com/invoice-files/userA/")

        [stored] = fake_db.invoices.values()
        assert stored.invoice_number == "INV-1"
        assert stored.vendor == "Acme"
        assert stored.amount == Decimal("99.5")
        assert stored.status == "approved"
        assert stored.extracted_data["processed_pages"] == 2
        assert stored.file_name == "invoice.pdf"

    def test_no_attachments(self, fake_db, fake_storage):
        report = _pipeline(FakeEmailSource([]), SpyExtractor(), fake_storage, fake_db).run("userA")

        assert report.count == 0
        assert report.results == []
        assert report.message == "No new invoices found or processed."

    def test_mail_query_is_passed_to_source(self, fake_db, fake_storage):
        source = FakeEmailSource([])

        _pipeline(source, SpyExtractor(), fake_storage, fake_db).run("userA")

        assert source.calls == [("subject:invoice", 10)]

    def test_listing_failure_propagates(self, fake_db, fake_storage):
        source = FakeEmailSource(error=MailProviderError("Gmail unavailable"))

        with pytest.raises(MailProviderError):
            _pipeline(source, SpyExtractor(), fake_storage, fake_db).run("userA")

    def test_already_processed_message_is_skipped_per_user(self, fake_db, fake_storage):
        extractor = SpyExtractor()
        pipeline = _pipeline(FakeEmailSource([make_attachment("msg123")]), extractor, fake_storage, fake_db)
        pipeline.run("userA")
        extractor.calls.clear()
        fake_storage.uploads.clear()

        second = pipeline.run("userA")

        assert second.results[0].status == "Skipped"
        assert second.results[0].reason == "Already processed and in database"
        assert extractor.calls == []
        assert fake_storage.uploads == {}

        other_user = pipeline.run("userB")

        assert other_user.results[0].status == "Processed"
        assert len(extractor.calls) == 1

    def test_missing_message_id_is_skipped(self, fake_db, fake_storage):
        extractor = SpyExtractor()
        attachment = make_attachment(message_id=None)

        report = _pipeline(FakeEmailSource([attachment]), extractor, fake_storage, fake_db).run("userA")

        assert report.results[0].status == "Skipped"
        assert report.results[0].reason == "Missing messageId"
        assert fake_db.exists_checks == []
        assert extractor.calls == []

    def test_upload_failure_does_not_block_siblings(self, fake_db):
        extractor = SpyExtractor()
        storage = FakeStorage(fail=True)

        report = _pipeline(
            FakeEmailSource([make_attachment("m1"), make_attachment("m2", filename="b.png", mime_type="image/png")]),
            extractor,
            storage,
            fake_db,
        ).run("userA")

        assert [r.status for r in report.results] == ["Error", "Error"]
        assert report.results[0].reason.startswith("Upload to storage failed:")
        assert extractor.calls == []
        assert fake_db.invoices == {}

    def test_unexpected_error_is_isolated(self, fake_db, fake_storage):
        class FlakyExtractor(SpyExtractor):
            def extract(self, data, mime_type):
                if data == b"boom":
                    raise RuntimeError("model crashed")
                return super().extract(data, mime_type)

        attachments = [make_attachment("m1", data=b"boom"), make_attachment("m2", data=b"fine")]

        report = _pipeline(FakeEmailSource(attachments), FlakyExtractor(), fake_storage, fake_db).run("userA")

        assert [r.status for r in report.results] == ["Error", "Processed"]
        assert report.results[0].reason == "model crashed"
        assert report.count == 2

    def test_database_check_failure(self, fake_db, fake_storage):
        def broken(user_id, message_id):
            raise ConnectionError("database unavailable")

        fake_db.invoice_exists = broken
        extractor = SpyExtractor()

        report = _pipeline(FakeEmailSource([make_attachment()]), extractor, fake_storage, fake_db).run("userA")

        assert report.results[0].status == "Error"
        assert report.results[0].reason == "Database check failed: database unavailable"
        assert extractor.calls == []

    def test_insert_conflict_is_reported_as_skipped(self, fake_db, fake_storage):
        # A concurrent run stores the row after this run's existence check
        fake_db.invoice_exists = lambda user_id, message_id: False
        pipeline = _pipeline(FakeEmailSource([make_attachment("m1")]), SpyExtractor(), fake_storage, fake_db)
        pipeline.run("userA")

        report = pipeline.run("userA")

        assert report.results[0].status == "Skipped"
        assert len(fake_db.invoices) == 1

    def test_failed_extraction_is_still_stored(self, fake_db, fake_storage):
        failed = ExtractionFailed(error="Unsupported Format", message="Unsupported file type: text/csv.")

        report = _pipeline(
            FakeEmailSource([make_attachment()]), SpyExtractor(result=failed), fake_storage, fake_db
        ).run("userA")

        assert report.results[0].status == "Processed"
        [stored] = fake_db.invoices.values()
        assert stored.vendor == FAILED_VENDOR
        assert stored.amount is None
        assert stored.extracted_data["error"] == "Unsupported Format"

    def test_conversion_crash_still_stores_failed_record(self, fake_db, fake_storage):
        class BrokenRasterizer:
            def rasterize(self, data, mime_type):
                raise OSError("No space left on device")

        extractor = InvoiceExtractor(FakeInference(), BrokenRasterizer())

        report = _pipeline(FakeEmailSource([make_attachment()]), extractor, fake_storage, fake_db).run("userA")

        assert report.results[0].status == "Processed"
        [stored] = fake_db.invoices.values()
        assert stored.vendor == FAILED_VENDOR
        assert stored.extracted_data["error"] == "Rasterization Failed"

    def test_metrics_are_reported(self, fake_db, fake_storage):
        report = _pipeline(
            FakeEmailSource([make_attachment()]), SpyExtractor(), fake_storage, fake_db
        ).run("userA")

        assert report.metrics.duration_sec >= report.metrics.extraction_time_sec >= 0


class TestBuildInvoiceRecord:
    """Tests for build_invoice_record"""

    def test_missing_vendor_defaults(self):
        extraction = ConsolidatedInvoice(invoice_number="X", llm_model="m", processed_pages=1)

        record = build_invoice_record("u", make_attachment(), "https://files/x.pdf", extraction)

        assert record.vendor == UNKNOWN_VENDOR
        assert record.description == "Invoice data extracted by LLM (m)."
        assert record.file_url == "https://files/x.pdf"

    def test_failure_description_names_file(self):
        extraction = ExtractionFailed(error="Extraction Failed", message="No data could be extracted from any page.")

        record = build_invoice_record("u", make_attachment(filename="scan.pdf"), "url", extraction)

        assert "scan.pdf" in record.description
        assert record.status == "approved"
